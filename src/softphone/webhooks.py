"""Voice access tokens and the signed Twilio voice/status webhooks."""

import logging
import os
from urllib.parse import parse_qsl

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response
from twilio.jwt.access_token import AccessToken
from twilio.jwt.access_token.grants import VoiceGrant
from twilio.request_validator import RequestValidator
from twilio.twiml.voice_response import VoiceResponse

from softphone.config import get_setting
from softphone.telephony import TwilioDevice

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/twilio", tags=["twilio"])

TOKEN_TTL = 3600
STATUS_PATH = "/api/twilio/status"
CONFERENCE_EVENTS = ["start", "end", "join", "leave"]


def issue_access_token(identity: str) -> str:
    """Signed JWT for the voice SDK: outgoing via the TwiML app, incoming allowed."""
    token = AccessToken(
        get_setting("TWILIO_ACCOUNT_SID"),
        get_setting("TWILIO_API_KEY_SID"),
        get_setting("TWILIO_API_KEY_SECRET"),
        identity=identity,
        ttl=TOKEN_TTL,
    )
    token.add_grant(VoiceGrant(
        outgoing_application_sid=get_setting("TWILIO_TWIML_APP_SID"),
        incoming_allow=True,
    ))
    jwt = token.to_jwt()
    return jwt.decode() if isinstance(jwt, bytes) else jwt


def conference_name(a: str, b: str) -> str:
    """Same room for a pair of numbers regardless of who called whom."""
    return "-".join(sorted([a or "", b or ""]))


def _public_base_url() -> str:
    return os.getenv("PUBLIC_BASE_URL", "").strip().rstrip("/")


async def _verified_form(request: Request) -> tuple[dict | None, Response | None]:
    """Parse the form body and check X-Twilio-Signature over URL + params.

    Returns (form, None) when valid, otherwise (None, error response).
    """
    auth_token = os.getenv("TWILIO_AUTH_TOKEN", "")
    base_url = _public_base_url()
    if not auth_token or not base_url:
        logger.error("Twilio webhook called without TWILIO_AUTH_TOKEN/PUBLIC_BASE_URL")
        return None, PlainTextResponse("Configuration error", status_code=500)

    raw = (await request.body()).decode()
    form = dict(parse_qsl(raw, keep_blank_values=True))

    signature = request.headers.get("X-Twilio-Signature")
    if not signature:
        logger.warning("Twilio webhook without signature on %s", request.url.path)
        return None, Response(status_code=400)

    url = f"{base_url}{request.url.path}"
    if not RequestValidator(auth_token).validate(url, form, signature):
        logger.warning("Invalid Twilio signature on %s", request.url.path)
        return None, Response(status_code=403)
    return form, None


def _session_device(request: Request) -> TwilioDevice | None:
    softphone = getattr(request.app.state, "softphone", None)
    device = softphone.device if softphone is not None else None
    return device if isinstance(device, TwilioDevice) else None


@router.post("/voice")
async def voice(request: Request):
    form, error = await _verified_form(request)
    if error is not None:
        return error

    conference = conference_name(form.get("From", ""), form.get("To", ""))
    logger.info("Inbound call %s into conference %s", form.get("CallSid"), conference)

    response = VoiceResponse()
    dial = response.dial()
    dial.conference(
        conference,
        status_callback=f"{_public_base_url()}{STATUS_PATH}",
        status_callback_event=" ".join(CONFERENCE_EVENTS),
        end_conference_on_exit=True,
    )

    device = _session_device(request)
    if device is not None:
        await device.handle_incoming(form, conference)

    return Response(content=str(response), media_type="text/xml")


@router.post("/status")
async def status(request: Request):
    form, error = await _verified_form(request)
    if error is not None:
        return error
    device = _session_device(request)
    if device is not None:
        await device.handle_status(form)
    else:
        logger.debug("Status callback %s with no active device", form.get("CallSid"))
    return Response(status_code=204)
