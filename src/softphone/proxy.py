"""Backend proxy routes mounted under ``/api``.

Each handler validates its input, forwards to ``BackendClient`` and turns
``BackendError`` / ``ConfigurationError`` into JSON error responses with the
upstream status (or 500).  Validation failures answer 400 before any
upstream request is made.
"""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from softphone import webhooks
from softphone.backend import BackendClient
from softphone.config import can_issue_tokens
from softphone.errors import BackendError, ConfigurationError
from softphone.formatting import format_us_phone_number

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["proxy"])


def _backend(request: Request) -> BackendClient:
    return request.app.state.backend


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=400)


async def _read_json(request: Request) -> dict | None:
    """JSON body, also accepted when sent as text/plain (beacon requests)."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


async def _forward(call, empty_status: int = 200) -> Response:
    try:
        data = await call
    except ConfigurationError as e:
        return JSONResponse({"error": str(e)}, status_code=500)
    except BackendError as e:
        return JSONResponse(e.to_dict(), status_code=e.status_code)
    if data is None:
        return Response(status_code=empty_status)
    return JSONResponse(data)


# ── Agents ──

@router.get("/agents")
async def list_agents(request: Request):
    return await _forward(_backend(request).list_agents())


@router.api_route("/agents/{agent_id}", methods=["PATCH", "PUT"])
async def update_agent(agent_id: str, request: Request):
    body = await _read_json(request)
    if body is None:
        return _bad_request("Request body must be a JSON object.")
    return await _forward(_backend(request).update_agent(agent_id, body))


@router.delete("/agents/{agent_id}")
async def delete_agent(agent_id: str, request: Request):
    return await _forward(_backend(request).delete_agent(agent_id), empty_status=204)


@router.post("/agents/grade/{agent_id}")
async def grade_agent(agent_id: str, request: Request):
    body = await _read_json(request)
    if body is None or body.get("score") is None:
        return _bad_request("Missing 'score' in request body.")
    return await _forward(_backend(request).grade_agent(agent_id, body["score"]))


# ── Leads ──

@router.get("/leads")
async def list_leads(request: Request):
    return await _forward(_backend(request).list_leads())


@router.post("/leads/favorites")
async def favorite_leads(request: Request):
    body = await _read_json(request) or {}
    email, password = body.get("email"), body.get("password")
    if not email or not password:
        return _bad_request("Email and password are required.")
    return await _forward(
        _backend(request).favorite_leads({"email": email, "password": password})
    )


# ── Telephony ──

@router.get("/twilio/token")
async def token(request: Request, identity: str = ""):
    if not identity:
        return _bad_request("Identity is required")
    if can_issue_tokens():
        return JSONResponse({"token": webhooks.issue_access_token(identity)})
    try:
        value = await _backend(request).get_token(identity)
    except ConfigurationError as e:
        return JSONResponse({"error": str(e)}, status_code=500)
    except BackendError as e:
        return JSONResponse({"error": "Failed to fetch token from backend"}, status_code=e.status_code)
    return JSONResponse({"token": value})


@router.post("/twilio/make_call")
async def make_call(request: Request):
    body = await _read_json(request) or {}
    to = body.get("to")
    if not to:
        return _bad_request("Missing 'to' in request body.")
    return await _forward(
        _backend(request).make_call(str(body.get("agent_id", "")), format_us_phone_number(str(to)))
    )


@router.get("/twilio/call_logs")
async def list_call_logs(request: Request, agent_id: str | None = None):
    return await _forward(_backend(request).list_call_logs(agent_id))


@router.post("/twilio/call_logs")
async def create_call_log(request: Request):
    body = await _read_json(request)
    if body is None:
        return _bad_request("Request body must be a JSON object.")
    return await _forward(_backend(request).create_call_log(body), empty_status=204)


@router.post("/twilio/send_voicemail")
async def send_voicemail(request: Request):
    body = await _read_json(request) or {}
    phone = body.get("to") or body.get("phone")
    script = body.get("script")
    if not phone or not script:
        return _bad_request("Both 'phone' and 'script' fields are required")
    if body.get("callId"):
        logger.info("Voicemail requested for call %s", body["callId"])
    return await _forward(
        _backend(request).send_voicemail(format_us_phone_number(str(phone)), script),
        empty_status=204,
    )


@router.get("/twilio/transcript/{call_sid}")
async def transcript(call_sid: str, request: Request):
    return await _forward(_backend(request).get_transcript(call_sid))


# ── Outreach ──

@router.post("/send_email")
async def send_email(request: Request):
    body = await _read_json(request)
    if body is None:
        return _bad_request("Request body must be a JSON object.")
    return await _forward(_backend(request).send_email(body), empty_status=204)
