import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from twilio.rest import Client

from softphone import ai_flows, proxy, webhooks
from softphone.backend import BackendClient
from softphone.config import backend_base_url, get_setting, validate_config
from softphone.models import Agent, Lead
from softphone.softphone import Softphone
from softphone.telephony import TwilioDevice

logger = logging.getLogger(__name__)


def twilio_device_factory(token: str, agent: Agent) -> TwilioDevice:
    """Server-side device: rings the agent's phone into each conference."""
    base_url = get_setting("PUBLIC_BASE_URL").rstrip("/")
    client = Client(get_setting("TWILIO_ACCOUNT_SID"), get_setting("TWILIO_AUTH_TOKEN"))
    return TwilioDevice(
        token=token,
        identity=agent.id,
        agent_phone=agent.phone,
        client=client,
        caller_id=get_setting("TWILIO_CALLER_ID"),
        status_callback_url=f"{base_url}{webhooks.STATUS_PATH}",
    )


# ── Session routes ──

class LoginRequest(BaseModel):
    agent_id: str | None = None
    agent: dict | None = None


class DialRequest(BaseModel):
    to: str
    lead_id: str | None = None


class NotesRequest(BaseModel):
    notes: str
    summary: str | None = None


class VoicemailRequest(BaseModel):
    to: str
    script: str
    lead_id: str | None = None


class GradeRequest(BaseModel):
    score: float


session_router = APIRouter(prefix="/session", tags=["session"])


def _softphone(request: Request) -> Softphone:
    return request.app.state.softphone


def _snapshot(softphone: Softphone, status_code: int = 200) -> JSONResponse:
    return JSONResponse(softphone.state.to_dict(), status_code=status_code)


def _failure(softphone: Softphone, default: str) -> JSONResponse:
    errors = [n for n in softphone.notifier.pending() if n.is_error]
    message = errors[-1].description if errors else default
    return JSONResponse({"error": message}, status_code=409)


@session_router.get("")
async def get_session(request: Request):
    return _snapshot(_softphone(request))


@session_router.post("/login")
async def login(body: LoginRequest, request: Request):
    softphone = _softphone(request)
    if body.agent:
        agent = Agent.from_dict(body.agent)
    elif body.agent_id:
        agents = await softphone.fetch_agents()
        agent = next((a for a in agents if a.id == str(body.agent_id)), None)
        if agent is None:
            return JSONResponse({"error": f"Unknown agent {body.agent_id}"}, status_code=404)
    else:
        return JSONResponse({"error": "agent_id or agent is required"}, status_code=400)
    await softphone.login(agent)
    return _snapshot(softphone)


@session_router.post("/logout")
async def logout(request: Request):
    softphone = _softphone(request)
    await softphone.logout()
    return _snapshot(softphone)


@session_router.post("/device")
async def initialize_device(request: Request):
    softphone = _softphone(request)
    await softphone.initialize_device()
    return _snapshot(softphone)


@session_router.post("/calls")
async def start_call(body: DialRequest, request: Request):
    softphone = _softphone(request)
    call = await softphone.start_outgoing_call(body.to, body.lead_id)
    if call is None:
        return _failure(softphone, "Call could not be started")
    return JSONResponse({"call": call.to_dict()}, status_code=201)


@session_router.post("/calls/hangup")
async def hang_up(request: Request):
    softphone = _softphone(request)
    await softphone.end_active_call()
    return _snapshot(softphone)


@session_router.post("/calls/accept")
async def accept(request: Request):
    softphone = _softphone(request)
    await softphone.accept_incoming_call()
    return _snapshot(softphone)


@session_router.post("/calls/reject")
async def reject(request: Request):
    softphone = _softphone(request)
    await softphone.reject_incoming_call()
    return _snapshot(softphone)


@session_router.put("/calls/{call_id}/notes")
async def update_notes(call_id: str, body: NotesRequest, request: Request):
    softphone = _softphone(request)
    if softphone.state.find_call(call_id) is None:
        return JSONResponse({"error": f"Unknown call {call_id}"}, status_code=404)
    await softphone.update_notes_and_summary(call_id, body.notes, body.summary)
    return JSONResponse(softphone.state.find_call(call_id).to_dict())


@session_router.post("/calls/{call_id}/summary")
async def summarize(call_id: str, request: Request):
    softphone = _softphone(request)
    summary = await softphone.summarize_call(call_id)
    if summary is None:
        return _failure(softphone, "Summary could not be generated")
    return {"summary": summary}


@session_router.post("/calls/{call_id}/transcript")
async def transcript(call_id: str, request: Request):
    softphone = _softphone(request)
    text = await softphone.fetch_transcript(call_id)
    if text is None:
        return _failure(softphone, "Transcript unavailable")
    return {"transcript": text}


@session_router.post("/history/refresh")
async def refresh_history(request: Request):
    softphone = _softphone(request)
    await softphone.fetch_history()
    return _snapshot(softphone)


@session_router.post("/voicemail")
async def voicemail(body: VoicemailRequest, request: Request):
    softphone = _softphone(request)
    record = await softphone.send_voicemail(body.to, body.script, body.lead_id)
    if record is None:
        return _failure(softphone, "Voicemail could not be sent")
    return JSONResponse({"call": record.to_dict()}, status_code=201)


@session_router.post("/email")
async def email(body: dict, request: Request):
    softphone = _softphone(request)
    if not await softphone.send_email(Lead.from_dict(body)):
        return _failure(softphone, "Email could not be sent")
    return _snapshot(softphone)


@session_router.post("/agents/{agent_id}/grade")
async def grade(agent_id: str, body: GradeRequest, request: Request):
    softphone = _softphone(request)
    result = await softphone.grade_agent(agent_id, body.score)
    if result is None:
        return _failure(softphone, "Agent could not be graded")
    return result


@session_router.post("/softphone/toggle")
async def toggle(request: Request):
    softphone = _softphone(request)
    softphone.toggle_softphone()
    return _snapshot(softphone)


@session_router.post("/post-call-sheet/close")
async def close_sheet(request: Request):
    softphone = _softphone(request)
    softphone.close_post_call_sheet()
    return _snapshot(softphone)


@session_router.get("/notifications")
async def notifications(request: Request):
    return [n.to_dict() for n in _softphone(request).notifier.drain()]


# ── App ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_config()
    yield
    await app.state.softphone.logout()
    await app.state.backend.close()


def create_app(softphone: Softphone | None = None, backend: BackendClient | None = None) -> FastAPI:
    if backend is None:
        backend = softphone.backend if softphone is not None else BackendClient(backend_base_url())
    if softphone is None:
        softphone = Softphone(
            backend,
            twilio_device_factory,
            summarizer=ai_flows.generate_summary_action,
        )

    app = FastAPI(title="Softphone Console", lifespan=lifespan)
    app.state.backend = backend
    app.state.softphone = softphone

    app.include_router(proxy.router)
    app.include_router(webhooks.router)
    app.include_router(ai_flows.router)
    app.include_router(session_router)

    @app.get("/health")
    async def health():
        return PlainTextResponse("ok")

    return app


def main():
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.getenv("PORT", "8765")))


if __name__ == "__main__":
    main()
