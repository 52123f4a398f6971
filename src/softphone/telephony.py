"""Telephony device and call-leg handles.

``TelephonyDevice`` / ``CallLeg`` define what the session needs from a
calling SDK: named events, registration, connecting into a conference, and
per-leg accept/reject/disconnect.  ``TwilioDevice`` implements them on the
Twilio REST API: instead of a browser endpoint, the agent's own phone is
dialed into the conference, and the call-status webhook drives the leg
events.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable

from twilio.base.exceptions import TwilioRestException
from twilio.twiml.voice_response import VoiceResponse

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]

STATUS_CALLBACK_EVENTS = ["initiated", "ringing", "answered", "completed"]

# Twilio CallStatus -> leg event name
STATUS_EVENTS = {
    "in-progress": "accept",
    "answered": "accept",
    "completed": "disconnect",
    "busy": "reject",
    "no-answer": "reject",
    "failed": "error",
    "canceled": "cancel",
}

# Conference StatusCallbackEvent -> equivalent CallStatus for that participant
CONFERENCE_STATUSES = {
    "participant-join": "in-progress",
    "participant-leave": "completed",
}


class EventEmitter:
    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def on(self, name: str, handler: Handler) -> None:
        self._handlers[name].append(handler)

    def remove_all_listeners(self) -> None:
        self._handlers.clear()

    async def emit(self, name: str, *args) -> None:
        for handler in list(self._handlers.get(name, [])):
            result = handler(*args)
            if inspect.isawaitable(result):
                await result


class CallLeg(EventEmitter):
    """One connected call leg. Events: accept, disconnect, cancel, reject, error."""

    def __init__(self, sid: str, parameters: dict | None = None):
        super().__init__()
        self.sid = sid
        self.parameters = parameters or {}
        self.closed = False

    async def accept(self) -> None:
        pass

    async def reject(self) -> None:
        self.closed = True

    async def disconnect(self) -> None:
        self.closed = True


class TelephonyDevice(EventEmitter, ABC):
    """A registered softphone endpoint. Events: ready, error, incoming."""

    @abstractmethod
    async def register(self) -> None:
        ...

    @abstractmethod
    async def connect(self, params: dict) -> CallLeg:
        ...

    def destroy(self) -> None:
        self.remove_all_listeners()


def conference_twiml(conference: str) -> str:
    response = VoiceResponse()
    dial = response.dial()
    dial.conference(conference, end_conference_on_exit=True)
    return str(response)


class TwilioCallLeg(CallLeg):
    def __init__(
        self,
        device: "TwilioDevice",
        sid: str,
        parameters: dict,
        conference: str,
        inbound: bool = False,
    ):
        super().__init__(sid, parameters)
        self.device = device
        self.conference = conference
        self.inbound = inbound
        self.accepted = False
        self.agent_sid: str | None = None

    async def accept(self) -> None:
        """Answer an inbound call by dialing the agent into its conference."""
        if not self.inbound or self.agent_sid:
            return
        self.agent_sid = await self.device._dial_agent(self.conference)
        self.device._legs[self.agent_sid] = self

    async def reject(self) -> None:
        await self._hang_up(self.sid)
        self.closed = True

    async def disconnect(self) -> None:
        if self.closed:
            return
        self.closed = True
        for sid in (self.sid, self.agent_sid):
            if sid:
                await self._hang_up(sid)

    async def _hang_up(self, sid: str) -> None:
        try:
            await asyncio.to_thread(
                self.device.client.calls(sid).update, status="completed",
            )
        except TwilioRestException as e:
            # Already finished on Twilio's side
            logger.warning("Hang up of %s failed: %s", sid, e)

    def event_for(self, sid: str, call_status: str) -> str | None:
        name = STATUS_EVENTS.get(call_status)
        if name is None:
            return None
        # The caller leaving an inbound call before the agent answered is a cancel
        if self.inbound and sid == self.sid and name in ("accept", "disconnect"):
            if name == "accept":
                return None
            return "disconnect" if self.accepted else "cancel"
        return name


class TwilioDevice(TelephonyDevice):
    def __init__(
        self,
        *,
        token: str,
        identity: str,
        agent_phone: str,
        client,  # twilio.rest.Client
        caller_id: str,
        status_callback_url: str,
    ):
        super().__init__()
        self.token = token
        self.identity = identity
        self.agent_phone = agent_phone
        self.client = client
        self.caller_id = caller_id
        self.status_callback_url = status_callback_url
        self.registered = False
        self._legs: dict[str, TwilioCallLeg] = {}

    async def register(self) -> None:
        if not self.token:
            raise ValueError("Voice access token is empty")
        if not self.agent_phone:
            raise ValueError(f"Agent {self.identity} has no phone number to ring")
        account = self.client.api.v2010.accounts(self.client.account_sid)
        await asyncio.to_thread(account.fetch)
        self.registered = True
        logger.info("Twilio device registered for %s", self.identity)
        await self.emit("ready")

    async def _dial_agent(self, conference: str) -> str:
        call = await asyncio.to_thread(
            self.client.calls.create,
            to=self.agent_phone,
            from_=self.caller_id,
            twiml=conference_twiml(conference),
            status_callback=self.status_callback_url,
            status_callback_event=STATUS_CALLBACK_EVENTS,
            status_callback_method="POST",
        )
        return call.sid

    async def connect(self, params: dict) -> CallLeg:
        if not self.registered:
            raise RuntimeError("Device is not registered")
        conference = params.get("To", "")
        sid = await self._dial_agent(conference)
        leg = TwilioCallLeg(self, sid, {"CallSid": sid, "To": conference}, conference)
        self._legs[sid] = leg
        return leg

    async def handle_incoming(self, form: dict, conference: str) -> None:
        sid = form.get("CallSid", "")
        if not sid or sid in self._legs:
            return
        params = {"CallSid": sid, "From": form.get("From", ""), "To": form.get("To", "")}
        leg = TwilioCallLeg(self, sid, params, conference, inbound=True)
        self._legs[sid] = leg
        await self.emit("incoming", leg)

    async def handle_status(self, form: dict) -> None:
        sid = form.get("CallSid", "")
        leg = self._legs.get(sid)
        if leg is None:
            logger.debug("Status callback for unknown call %s", sid)
            return
        call_status = form.get("CallStatus") or CONFERENCE_STATUSES.get(
            form.get("StatusCallbackEvent", ""), "",
        )
        name = leg.event_for(sid, call_status)
        if name is None:
            return
        if name == "accept":
            leg.accepted = True
            await leg.emit("accept")
            return

        for key in [k for k, v in self._legs.items() if v is leg]:
            del self._legs[key]
        leg.closed = True
        if name == "error":
            await leg.emit("error", {
                "message": form.get("ErrorMessage") or "Call failed",
                "code": int(form["ErrorCode"]) if form.get("ErrorCode", "").isdigit() else None,
            })
        else:
            await leg.emit(name)

    def destroy(self) -> None:
        self._legs.clear()
        self.registered = False
        super().destroy()
