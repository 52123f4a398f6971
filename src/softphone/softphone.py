"""Call session orchestration.

``Softphone`` is the single owner of a session: the immutable
``SessionState`` (changed only through ``dispatch``), and a private handle
table holding the telephony device and the connected call leg.  User
actions (dial, hang up, accept) and device/leg events both funnel through
here; every failure ends in a notification, never an escaped exception.

Ordering: state changes are synchronous, I/O is awaited.  Before the first
await of an operation that frees the call slot, the slot and the leg are
claimed, so a user hang-up racing a provider disconnect ends the call once.
"""

import asyncio
import logging
import math
import time
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from softphone.errors import (
    BackendError,
    CallInProgressError,
    DeviceNotReadyError,
    NoAgentError,
    SoftphoneError,
)
from softphone.events import (
    CALL_EVENT_NAMES,
    CALL_EVENT_STATUS,
    CallAccepted,
    CallError,
    DeviceError,
    IncomingCall,
    device_event,
    leg_event,
)
from softphone.formatting import format_us_phone_number
from softphone.models import Agent, Call, Lead
from softphone.notifications import Notifier
from softphone.reducer import (
    AddOrUpdateCall,
    ClosePostCallSheet,
    OpenPostCallSheet,
    ReplaceTemporaryId,
    ResetSession,
    SetActiveCall,
    SetCallHistory,
    SetCurrentAgent,
    SetDeviceStatus,
    SetMicrophonePermission,
    SetSoftphoneOpen,
    ShowIncomingCall,
    ToggleSoftphone,
    UpdateAgentScore,
    UpdateNotesAndSummary,
    reduce,
)
from softphone.session import SessionState
from softphone.state_machine import StateMachine
from softphone.states import ActionTaken, CallDirection, CallStatus, DeviceStatus
from softphone.telephony import CallLeg, TelephonyDevice

logger = logging.getLogger(__name__)

DeviceFactory = Callable[[str, Agent], TelephonyDevice]
TokenProvider = Callable[[str], Awaitable[str]]
Summarizer = Callable[[str], Awaitable[dict]]


@dataclass
class _Handles:
    device: TelephonyDevice | None = None
    active_leg: CallLeg | None = None


def _iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _parse_time(value: Any) -> float | None:
    """Epoch seconds from an ISO-8601 string, epoch seconds, or epoch millis."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return value / 1000.0 if value > 1e12 else float(value)
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _parse_duration(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if math.isfinite(seconds) else None


def build_call_log_payload(call: Call, agent: Agent) -> dict:
    """Normalized call-log body for the backend."""
    return {
        "call_sid": call.id,
        "lead_id": call.lead_id,
        "agent_id": call.agent_id or agent.id,
        "phone": call.counterpart,
        "direction": call.direction.value,
        "status": call.status.value,
        "start_time": _iso(call.start_time),
        "end_time": _iso(call.end_time),
        "duration": call.duration,
        "notes": call.notes,
        "summary": call.summary,
        "action_taken": call.action_taken.value,
    }


def call_from_log(log: dict, agent: Agent) -> Call | None:
    """Map a backend call-log record onto a Call.

    Only completed calls are logged, so the status is always ``completed``.
    """
    start = _parse_time(log.get("start_time"))
    if start is None:
        logger.warning("Skipping call log %s without a start time", log.get("id"))
        return None
    try:
        direction = CallDirection(log.get("direction") or "outgoing")
    except ValueError:
        direction = CallDirection.OUTGOING
    try:
        action = ActionTaken(log.get("action_taken") or "call")
    except ValueError:
        action = ActionTaken.CALL

    phone = str(log.get("phone") or log.get("to") or "")
    if direction == CallDirection.OUTGOING:
        from_number, to_number = agent.phone, phone
    else:
        from_number, to_number = phone, agent.phone

    end = _parse_time(log.get("end_time"))
    duration = _parse_duration(log.get("duration"))
    if duration is None:
        if log.get("duration") not in (None, ""):
            logger.warning(
                "Call log %s has an unreadable duration %r",
                log.get("call_sid"), log.get("duration"),
            )
        duration = end - start if end is not None else 0
    call_id = log.get("call_sid") or log.get("id") or log.get("call_id") or f"log_{int(start)}"
    lead_id = log.get("lead_id")

    return Call(
        id=str(call_id),
        direction=direction,
        from_number=from_number,
        to_number=to_number,
        status=CallStatus.COMPLETED,
        start_time=start,
        end_time=end,
        duration=max(0, int(duration)),
        notes=log.get("notes") or "",
        summary=log.get("summary") or "",
        agent_id=str(log.get("agent_id") or agent.id),
        lead_id=str(lead_id) if lead_id is not None else None,
        action_taken=action,
    )


def _temp_id() -> str:
    return f"temp_{uuid.uuid4().hex}"


class Softphone:
    def __init__(
        self,
        backend,
        device_factory: DeviceFactory,
        *,
        notifier: Notifier | None = None,
        token_provider: TokenProvider | None = None,
        summarizer: Summarizer | None = None,
        machine: StateMachine | None = None,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = _temp_id,
    ):
        self.backend = backend
        self.device_factory = device_factory
        self.notifier = notifier or Notifier()
        self.token_provider = token_provider or backend.get_token
        self.summarizer = summarizer
        self.machine = machine or StateMachine()
        self.clock = clock
        self.id_factory = id_factory
        self.state = SessionState()
        self._handles = _Handles()
        self._session = 0
        self._listeners: list[Callable[[SessionState], None]] = []
        self._effects: set[asyncio.Task] = set()

    # ── State ──

    def dispatch(self, action) -> SessionState:
        prev = self.state
        self.state = reduce(prev, action)
        if self.state is prev:
            return prev
        for listener in list(self._listeners):
            listener(self.state)
        self._run_effects(prev, self.state)
        return self.state

    def subscribe(self, listener: Callable[[SessionState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _run_effects(self, prev: SessionState, new: SessionState) -> None:
        # Agent presence becoming true brings the device and history up.
        if prev.current_agent is None and new.current_agent is not None:
            self._schedule(self.initialize_device())
            self._schedule(self.fetch_history())

    def _schedule(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._effects.add(task)
        task.add_done_callback(self._effects.discard)

    async def settle(self) -> None:
        """Wait for scheduled side effects (device init, history fetch)."""
        while self._effects:
            await asyncio.gather(*list(self._effects))

    @property
    def device(self) -> TelephonyDevice | None:
        return self._handles.device

    def _is_active(self, call_id: str) -> bool:
        active = self.state.active_call
        return active is not None and active.id == call_id

    def _set_call_status(self, status: CallStatus) -> bool:
        active = self.state.active_call
        if active is None:
            return False
        advanced = self.machine.advance(active, status)
        if advanced is None:
            return False
        self.dispatch(SetActiveCall(advanced))
        self.dispatch(AddOrUpdateCall(advanced))
        return True

    # ── Session ──

    async def login(self, agent: Agent) -> None:
        if self.state.current_agent is not None:
            await self.logout()
        logger.info("Agent %s logged in", agent.id)
        self.dispatch(SetCurrentAgent(agent))
        await self.settle()

    async def logout(self) -> None:
        self._session += 1
        device, leg = self._handles.device, self._handles.active_leg
        self._handles = _Handles()
        if leg is not None:
            try:
                await leg.disconnect()
            except Exception as e:
                logger.warning("Disconnecting call %s on logout failed: %s", leg.sid, e)
        if device is not None:
            device.destroy()
        self.dispatch(ResetSession())
        logger.info("Session reset")

    def toggle_softphone(self) -> None:
        self.dispatch(ToggleSoftphone())

    def set_softphone_open(self, open: bool) -> None:
        self.dispatch(SetSoftphoneOpen(open))

    def close_post_call_sheet(self) -> None:
        self.dispatch(ClosePostCallSheet())

    # ── Device lifecycle ──

    async def initialize_device(self) -> None:
        agent = self.state.current_agent
        if agent is None:
            logger.warning("Device initialization skipped: no agent logged in")
            return
        if self.state.device_status == DeviceStatus.INITIALIZING:
            logger.debug("Device initialization already running")
            return
        if self.state.device_status == DeviceStatus.READY and self._handles.device is not None:
            return

        session = self._session
        self.dispatch(SetDeviceStatus(DeviceStatus.INITIALIZING))
        device = None
        try:
            token = await self.token_provider(agent.id)
            if session != self._session:
                logger.info("Discarding device token for agent %s: session ended", agent.id)
                return
            device = self.device_factory(token, agent)
            for name in ("ready", "error", "incoming"):
                device.on(name, self._device_handler(device, name))
            self._handles.device = device
            await device.register()
        except Exception as e:
            logger.error("Device initialization failed for agent %s: %s", agent.id, e)
            if device is not None:
                device.destroy()
            if self._handles.device is device:
                self._handles.device = None
            if session != self._session:
                return
            self.dispatch(SetDeviceStatus(DeviceStatus.ERROR))
            self.notifier.error("Softphone Error", f"Could not initialize the calling device: {e}")
            return

        if session != self._session or self._handles.device is not device:
            # Logged out (or replaced) while registering
            device.destroy()
            if self._handles.device is device:
                self._handles.device = None
            return
        self.dispatch(SetDeviceStatus(DeviceStatus.READY))
        self.dispatch(SetMicrophonePermission(True))
        logger.info("Device ready for agent %s", agent.id)

    def _device_handler(self, device: TelephonyDevice, name: str):
        async def handler(*args):
            if device is not self._handles.device:
                logger.debug("Ignoring %s from a released device", name)
                return
            event = device_event(name, *args)
            if event is None:
                return
            await getattr(self, f"_on_{event.kind}")(event)

        return handler

    async def _on_device_ready(self, event) -> None:
        self.dispatch(SetDeviceStatus(DeviceStatus.READY))
        self.dispatch(SetMicrophonePermission(True))

    async def _on_device_error(self, event: DeviceError) -> None:
        if self.state.device_status == DeviceStatus.INITIALIZING:
            # register() raises too; initialize_device reports it
            logger.warning("Device error during registration: %s", event.message)
            return
        logger.error("Device error (code=%s): %s", event.code, event.message)
        device = self._handles.device
        self._handles.device = None
        if device is not None:
            device.destroy()
        self.dispatch(SetDeviceStatus(DeviceStatus.ERROR))
        self.notifier.error("Softphone Error", event.message)

    async def _on_incoming_call(self, event: IncomingCall) -> None:
        await self.handle_incoming(event)

    # ── Outgoing calls ──

    def _check_can_dial(self) -> Agent:
        agent = self.state.current_agent
        if agent is None:
            raise NoAgentError("Log in as an agent before placing calls.")
        if self.state.device_status != DeviceStatus.READY or self._handles.device is None:
            raise DeviceNotReadyError("The calling device is not ready.")
        if self.state.active_call is not None:
            raise CallInProgressError("A call is already in progress.")
        return agent

    async def start_outgoing_call(self, to: str, lead_id: str | None = None) -> Call | None:
        try:
            agent = self._check_can_dial()
        except SoftphoneError as e:
            self.notifier.error("Cannot Start Call", str(e))
            return None
        number = format_us_phone_number(to.strip() if to else "")
        if not number:
            self.notifier.error("Cannot Start Call", "A phone number is required.")
            return None

        device = self._handles.device
        temp_id = self.id_factory()
        call = Call(
            id=temp_id,
            direction=CallDirection.OUTGOING,
            from_number=agent.phone,
            to_number=number,
            status=CallStatus.QUEUED,
            start_time=self.clock(),
            agent_id=agent.id,
            lead_id=lead_id,
        )
        self.dispatch(SetActiveCall(call))
        self.dispatch(AddOrUpdateCall(call))
        self.dispatch(SetSoftphoneOpen(True))
        self._set_call_status(CallStatus.RINGING_OUTGOING)
        logger.info("Dialing %s for agent %s (lead=%s)", number, agent.id, lead_id)

        try:
            result = await self.backend.make_call(agent.id, number)
            conference = result.get("conference") if isinstance(result, dict) else None
            if not conference:
                raise BackendError(502, "Backend did not return a conference for the call")
            leg = await device.connect({"To": conference})
        except Exception as e:
            logger.error("Outgoing call to %s failed: %s", number, e)
            self.notifier.error("Call Failed", f"Could not connect the call to {number}: {e}")
            if self._is_active(temp_id):
                await self.end_active_call(CallStatus.FAILED)
            return None

        if not self._is_active(temp_id):
            # Hung up (or logged out) while the call was being set up
            logger.info("Call %s ended during setup; dropping leg %s", temp_id, leg.sid)
            await leg.disconnect()
            return None

        self._handles.active_leg = leg
        if leg.sid and leg.sid != temp_id:
            self.dispatch(ReplaceTemporaryId(temp_id, leg.sid))
        self._attach_leg_listeners(leg)
        return self.state.active_call

    # ── Incoming calls ──

    async def handle_incoming(self, event: IncomingCall) -> None:
        agent = self.state.current_agent
        leg = event.leg
        if agent is None:
            logger.warning("Incoming call %s with no agent logged in", event.call_sid)
            return
        if self.state.active_call is not None:
            logger.warning("Rejecting incoming call %s: a call is already active", event.call_sid)
            if leg is not None:
                await leg.reject()
            return

        call = Call(
            id=event.call_sid,
            direction=CallDirection.INCOMING,
            from_number=event.from_number,
            to_number=event.to_number or agent.phone,
            status=CallStatus.RINGING_INCOMING,
            start_time=self.clock(),
            agent_id=agent.id,
        )
        self._handles.active_leg = leg
        self.dispatch(AddOrUpdateCall(call))
        self.dispatch(SetActiveCall(call))
        self.dispatch(ShowIncomingCall(True))
        self.dispatch(SetSoftphoneOpen(True))
        if leg is not None:
            self._attach_leg_listeners(leg)
        logger.info("Incoming call %s from %s", call.id, call.from_number)

    async def accept_incoming_call(self) -> None:
        active, leg = self.state.active_call, self._handles.active_leg
        if active is None or leg is None or active.status != CallStatus.RINGING_INCOMING:
            self.notifier.error("No Incoming Call", "There is no ringing call to answer.")
            return
        self.dispatch(ShowIncomingCall(False))
        try:
            await leg.accept()
        except Exception as e:
            logger.error("Accepting call %s failed: %s", active.id, e)
            self.notifier.error("Call Failed", f"Could not answer the call: {e}")
            await self.end_active_call(CallStatus.FAILED)

    async def reject_incoming_call(self) -> None:
        active, leg = self.state.active_call, self._handles.active_leg
        if active is None or leg is None or active.status != CallStatus.RINGING_INCOMING:
            logger.warning("Reject requested with no ringing incoming call")
            return
        self._handles.active_leg = None
        try:
            await leg.reject()
        except Exception as e:
            logger.warning("Rejecting call %s failed: %s", active.id, e)
        await self.end_active_call(CallStatus.BUSY)

    # ── Leg events ──

    def _attach_leg_listeners(self, leg: CallLeg) -> None:
        for name in CALL_EVENT_NAMES:
            leg.on(name, self._leg_handler(leg, name))

    def _leg_handler(self, leg: CallLeg, name: str):
        async def handler(*args):
            event = leg_event(name, leg.sid, *args)
            if event is not None:
                await self._on_call_event(leg, event)

        return handler

    async def _on_call_event(self, leg: CallLeg, event) -> None:
        active = self.state.active_call
        if leg is not self._handles.active_leg or active is None:
            logger.debug("Ignoring %s for inactive leg %s", event.kind, leg.sid)
            return
        status = CALL_EVENT_STATUS[type(event)]
        if not self.machine.can_transition(active.status, status):
            logger.warning(
                "Ignoring %s for call %s in status %s",
                event.kind, active.id, active.status.value,
            )
            return

        if isinstance(event, CallAccepted):
            self._set_call_status(CallStatus.IN_PROGRESS)
            self.dispatch(ShowIncomingCall(False))
            return
        if isinstance(event, CallError):
            self.notifier.error("Call Error", event.message)
        await self.end_active_call(status)

    # ── Ending and persistence ──

    async def end_active_call(self, status: CallStatus = CallStatus.COMPLETED) -> None:
        call = self.state.active_call
        if call is None:
            return
        end_time = self.clock()
        final = replace(
            call,
            status=status,
            end_time=end_time,
            duration=max(0, int(end_time - call.start_time)),
        )
        leg = self._handles.active_leg
        self._handles.active_leg = None

        self.dispatch(AddOrUpdateCall(final))
        self.dispatch(SetActiveCall(None))
        self.dispatch(ShowIncomingCall(False))
        if status == CallStatus.COMPLETED and final.lead_id:
            self.dispatch(OpenPostCallSheet(final.id))
        logger.info("Call %s ended: %s after %ss", final.id, status.value, final.duration)

        if leg is not None:
            try:
                await leg.disconnect()
            except Exception as e:
                logger.warning("Disconnecting call %s failed: %s", final.id, e)
        await self.persist_call(final)

    async def persist_call(self, call: Call) -> bool:
        agent = self.state.current_agent
        if agent is None:
            logger.warning("No current agent; call %s not logged", call.id)
            return False
        if call.direction == CallDirection.OUTGOING and not call.lead_id:
            logger.info("Call %s was a manual dial with no lead; not logged", call.id)
            return False
        try:
            await self.backend.create_call_log(build_call_log_payload(call, agent))
        except SoftphoneError as e:
            self.notifier.error("Save Failed", f"Could not save the call log: {e}")
            return False
        return True

    # ── History ──

    async def fetch_history(self) -> None:
        agent = self.state.current_agent
        if agent is None:
            logger.warning("History fetch skipped: no agent logged in")
            return
        try:
            data = await self.backend.list_call_logs(agent.id)
        except SoftphoneError as e:
            self.notifier.error("History Unavailable", str(e))
            return
        logs = data.get("call_logs") if isinstance(data, dict) else data
        if not isinstance(logs, list):
            logger.error("Unexpected call log response: %r", data)
            self.notifier.error("API Error", "Received unexpected data format from the call logs API.")
            return

        current = self.state.current_agent
        if current is None or current.id != agent.id:
            return
        calls = [c for c in (call_from_log(log, agent) for log in logs) if c is not None]
        self.dispatch(SetCallHistory(tuple(calls)))

    async def update_notes_and_summary(
        self, call_id: str, notes: str, summary: str | None = None,
    ) -> None:
        self.dispatch(UpdateNotesAndSummary(call_id, notes, summary))
        if self.state.post_call_sheet_call_id == call_id:
            self.dispatch(ClosePostCallSheet())
        call = self.state.find_call(call_id)
        if call is None:
            logger.warning("Notes update for unknown call %s", call_id)
            return
        if self.state.current_agent is None:
            return
        await self.persist_call(call)

    async def summarize_call(self, call_id: str) -> str | None:
        call = self.state.find_call(call_id)
        if call is None:
            self.notifier.error("Summary Failed", f"Unknown call {call_id}.")
            return None
        if not call.notes.strip():
            self.notifier.error("Summary Failed", "Notes/transcript cannot be empty.")
            return None
        if self.summarizer is None:
            self.notifier.error("Summary Failed", "AI summarization is not configured.")
            return None

        result = await self.summarizer(call.notes)
        if result.get("error"):
            self.notifier.error("Summary Failed", result["error"])
            return None
        summary = result.get("summary", "")
        await self.update_notes_and_summary(call_id, call.notes, summary)
        self.notifier.notify("Summary Generated", "AI summary has been successfully created.")
        return summary

    async def fetch_transcript(self, call_id: str) -> str | None:
        call = self.state.find_call(call_id)
        if call is None:
            self.notifier.error("Transcript Unavailable", f"Unknown call {call_id}.")
            return None
        # A live call keeps its status; only finished records show the fetch
        marked = not self._is_active(call_id)
        if marked:
            self.dispatch(AddOrUpdateCall(replace(call, status=CallStatus.FETCHING_TRANSCRIPT)))
        try:
            data = await self.backend.get_transcript(call_id)
        except SoftphoneError as e:
            self.notifier.error("Transcript Unavailable", str(e))
            return None
        finally:
            restored = self.state.find_call(call_id)
            if marked and restored is not None and restored.status == CallStatus.FETCHING_TRANSCRIPT:
                self.dispatch(AddOrUpdateCall(replace(restored, status=call.status)))

        transcript = data.get("transcript") if isinstance(data, dict) else data
        if not transcript:
            self.notifier.notify("No Transcript", "No transcript is available for this call yet.")
            return None
        await self.update_notes_and_summary(call_id, str(transcript), call.summary or None)
        return str(transcript)

    # ── Outreach ──

    async def send_voicemail(self, to: str, script: str, lead_id: str | None = None) -> Call | None:
        agent = self.state.current_agent
        if agent is None:
            self.notifier.error("Voicemail Not Sent", "Log in as an agent first.")
            return None
        number = format_us_phone_number(to.strip() if to else "")
        if not number or not (script or "").strip():
            self.notifier.error("Voicemail Not Sent", "A phone number and a script are required.")
            return None

        record = Call(
            id=self.id_factory(),
            direction=CallDirection.OUTGOING,
            from_number=agent.phone,
            to_number=number,
            status=CallStatus.VOICEMAIL_DROPPING,
            start_time=self.clock(),
            notes=script,
            agent_id=agent.id,
            lead_id=lead_id,
            action_taken=ActionTaken.VOICEMAIL,
        )
        self.dispatch(AddOrUpdateCall(record))
        try:
            await self.backend.send_voicemail(number, script)
        except SoftphoneError as e:
            failed = replace(self.machine.advance(record, CallStatus.FAILED), end_time=self.clock())
            self.dispatch(AddOrUpdateCall(failed))
            self.notifier.error("Voicemail Not Sent", str(e))
            return failed

        end_time = self.clock()
        dropped = replace(
            self.machine.advance(record, CallStatus.VOICEMAIL_DROPPED),
            end_time=end_time,
            duration=max(0, int(end_time - record.start_time)),
        )
        self.dispatch(AddOrUpdateCall(dropped))
        self.notifier.notify("Voicemail Sent", f"Voicemail dropped to {number}.")
        await self.persist_call(dropped)
        return dropped

    async def send_email(self, lead: Lead) -> bool:
        agent = self.state.current_agent
        if agent is None:
            self.notifier.error("Email Not Sent", "Log in as an agent first.")
            return False
        try:
            await self.backend.send_email({**lead.to_dict(), "agent_id": agent.id})
        except SoftphoneError as e:
            self.notifier.error("Email Not Sent", str(e))
            return False

        now = self.clock()
        self.dispatch(AddOrUpdateCall(Call(
            id=self.id_factory(),
            direction=CallDirection.OUTGOING,
            from_number=agent.email,
            to_number=lead.company_phone,
            status=CallStatus.EMAILED,
            start_time=now,
            end_time=now,
            agent_id=agent.id,
            lead_id=lead.lead_id,
            action_taken=ActionTaken.EMAIL,
        )))
        self.notifier.notify("Email Sent", f"Email sent to {lead.company or lead.lead_id}.")
        return True

    # ── Directory ──

    async def fetch_agents(self) -> list[Agent]:
        items = await self._fetch_list(self.backend.list_agents, "agents")
        return [Agent.from_dict(item) for item in items]

    async def fetch_leads(self) -> list[Lead]:
        items = await self._fetch_list(self.backend.list_leads, "leads")
        return [Lead.from_dict(item) for item in items]

    async def _fetch_list(self, fetch, key: str) -> list[dict]:
        try:
            data = await fetch()
        except SoftphoneError as e:
            self.notifier.error("API Error", str(e) or f"Could not fetch {key}.")
            return []
        if isinstance(data, dict) and isinstance(data.get(key), list):
            return data[key]
        if isinstance(data, list):
            return data
        logger.error("API response is not in the expected format for %s: %r", key, data)
        self.notifier.error("API Error", f"Received unexpected data format from the {key} API.")
        return []

    async def grade_agent(self, agent_id: str, score: float) -> dict | None:
        try:
            result = await self.backend.grade_agent(agent_id, score)
        except SoftphoneError as e:
            self.notifier.error("Grading Failed", str(e))
            return None
        given = result.get("score_given")
        if given is not None:
            self.dispatch(UpdateAgentScore(str(agent_id), given))
        self.notifier.notify("Agent Graded", f"Agent {agent_id} scored {given}.")
        return result
