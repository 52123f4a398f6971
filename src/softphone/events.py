"""Typed telephony events.

Device and call-leg callbacks arrive with loosely shaped arguments (an
exception here, a dict there, a leg object for incoming calls).  They are
converted into one of the dataclasses below right where the callback is
registered, so the session only ever sees these types.
"""

import logging
from dataclasses import dataclass
from typing import Any, ClassVar

from softphone.states import CallStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceReady:
    kind: ClassVar[str] = "device_ready"


@dataclass(frozen=True)
class DeviceError:
    kind: ClassVar[str] = "device_error"
    message: str
    code: int | None = None


@dataclass(frozen=True)
class IncomingCall:
    kind: ClassVar[str] = "incoming_call"
    call_sid: str
    from_number: str
    to_number: str
    leg: Any = None


@dataclass(frozen=True)
class CallAccepted:
    kind: ClassVar[str] = "accept"
    call_sid: str


@dataclass(frozen=True)
class CallDisconnected:
    kind: ClassVar[str] = "disconnect"
    call_sid: str


@dataclass(frozen=True)
class CallCanceled:
    kind: ClassVar[str] = "cancel"
    call_sid: str


@dataclass(frozen=True)
class CallRejected:
    kind: ClassVar[str] = "reject"
    call_sid: str


@dataclass(frozen=True)
class CallError:
    kind: ClassVar[str] = "error"
    call_sid: str
    message: str
    code: int | None = None


DeviceEvent = DeviceReady | DeviceError | IncomingCall
CallEvent = CallAccepted | CallDisconnected | CallCanceled | CallRejected | CallError

DEVICE_EVENT_NAMES = ("ready", "error", "incoming")
CALL_EVENT_NAMES = ("accept", "disconnect", "cancel", "reject", "error")

CALL_EVENT_STATUS = {
    CallAccepted: CallStatus.IN_PROGRESS,
    CallDisconnected: CallStatus.COMPLETED,
    CallCanceled: CallStatus.CANCELED,
    CallRejected: CallStatus.BUSY,
    CallError: CallStatus.FAILED,
}


def _describe_error(args: tuple) -> tuple[str, int | None]:
    if not args:
        return "Unknown telephony error", None
    err = args[0]
    if isinstance(err, dict):
        return str(err.get("message") or "Unknown telephony error"), err.get("code")
    code = getattr(err, "code", None)
    return str(err) or type(err).__name__, code if isinstance(code, int) else None


def device_event(name: str, *args) -> DeviceEvent | None:
    if name == "ready":
        return DeviceReady()
    if name == "error":
        message, code = _describe_error(args)
        return DeviceError(message=message, code=code)
    if name == "incoming":
        leg = args[0] if args else None
        params = getattr(leg, "parameters", None) or {}
        sid = params.get("CallSid") or getattr(leg, "sid", "") or ""
        return IncomingCall(
            call_sid=sid,
            from_number=params.get("From", ""),
            to_number=params.get("To", ""),
            leg=leg,
        )
    logger.warning("Unknown device event %r", name)
    return None


def leg_event(name: str, call_sid: str, *args) -> CallEvent | None:
    if name == "accept":
        return CallAccepted(call_sid)
    if name == "disconnect":
        return CallDisconnected(call_sid)
    if name == "cancel":
        return CallCanceled(call_sid)
    if name == "reject":
        return CallRejected(call_sid)
    if name == "error":
        message, code = _describe_error(args)
        return CallError(call_sid, message=message, code=code)
    logger.warning("Unknown call event %r for %s", name, call_sid)
    return None
