"""Pure state transitions for the call session.

``reduce(state, action)`` never performs I/O and never raises: every action
maps to a new ``SessionState`` (or the same one), and unknown actions are
returned unchanged.  History stays id-unique and sorted by start time,
newest first, after every transition.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable

from softphone.models import Agent, Call
from softphone.session import SessionState
from softphone.states import DeviceStatus


@dataclass(frozen=True)
class ToggleSoftphone:
    pass


@dataclass(frozen=True)
class SetSoftphoneOpen:
    open: bool


@dataclass(frozen=True)
class SetDeviceStatus:
    status: DeviceStatus


@dataclass(frozen=True)
class SetMicrophonePermission:
    granted: bool


@dataclass(frozen=True)
class SetActiveCall:
    call: Call | None


@dataclass(frozen=True)
class UpdateActiveCall:
    changes: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AddOrUpdateCall:
    call: Call


@dataclass(frozen=True)
class ReplaceTemporaryId:
    temp_id: str
    final_id: str


@dataclass(frozen=True)
class SetCallHistory:
    calls: tuple[Call, ...]


@dataclass(frozen=True)
class UpdateNotesAndSummary:
    call_id: str
    notes: str
    summary: str | None = None


@dataclass(frozen=True)
class OpenPostCallSheet:
    call_id: str


@dataclass(frozen=True)
class ClosePostCallSheet:
    pass


@dataclass(frozen=True)
class SetCurrentAgent:
    agent: Agent | None


@dataclass(frozen=True)
class UpdateAgentScore:
    agent_id: str
    score: float


@dataclass(frozen=True)
class ShowIncomingCall:
    show: bool


@dataclass(frozen=True)
class ResetSession:
    pass


def sort_history(calls: Iterable[Call]) -> tuple[Call, ...]:
    """Newest first. Stable, so equal start times keep insertion order."""
    return tuple(sorted(calls, key=lambda c: c.start_time, reverse=True))


def _toggle_softphone(state: SessionState, action: ToggleSoftphone) -> SessionState:
    return replace(state, softphone_open=not state.softphone_open)


def _set_softphone_open(state: SessionState, action: SetSoftphoneOpen) -> SessionState:
    return replace(state, softphone_open=action.open)


def _set_device_status(state: SessionState, action: SetDeviceStatus) -> SessionState:
    return replace(state, device_status=action.status)


def _set_microphone_permission(state: SessionState, action: SetMicrophonePermission) -> SessionState:
    # Sticky: a grant survives later "not granted" reports until the session resets.
    return replace(state, microphone_granted=state.microphone_granted or action.granted)


def _set_active_call(state: SessionState, action: SetActiveCall) -> SessionState:
    return replace(state, active_call=action.call)


def _update_active_call(state: SessionState, action: UpdateActiveCall) -> SessionState:
    if state.active_call is None:
        return state
    return replace(state, active_call=replace(state.active_call, **action.changes))


def _add_or_update_call(state: SessionState, action: AddOrUpdateCall) -> SessionState:
    rest = [c for c in state.call_history if c.id != action.call.id]
    return replace(state, call_history=sort_history([action.call, *rest]))


def _replace_temporary_id(state: SessionState, action: ReplaceTemporaryId) -> SessionState:
    temp = state.find_call(action.temp_id)
    active = state.active_call
    if active is not None and active.id == action.temp_id:
        active = replace(active, id=action.final_id)
    if temp is None:
        return replace(state, active_call=active)

    renamed = replace(temp, id=action.final_id)
    rest = [
        c for c in state.call_history
        if c.id not in (action.temp_id, action.final_id)
    ]
    return replace(state, call_history=sort_history([renamed, *rest]), active_call=active)


def _set_call_history(state: SessionState, action: SetCallHistory) -> SessionState:
    unique: dict[str, Call] = {}
    for call in action.calls:
        unique[call.id] = call
    return replace(state, call_history=sort_history(unique.values()))


def _update_notes_and_summary(state: SessionState, action: UpdateNotesAndSummary) -> SessionState:
    if state.find_call(action.call_id) is None:
        return state
    changes: dict[str, Any] = {"notes": action.notes}
    if action.summary is not None:
        changes["summary"] = action.summary
    history = tuple(
        replace(c, **changes) if c.id == action.call_id else c
        for c in state.call_history
    )
    return replace(state, call_history=history)


def _open_post_call_sheet(state: SessionState, action: OpenPostCallSheet) -> SessionState:
    return replace(state, post_call_sheet_call_id=action.call_id)


def _close_post_call_sheet(state: SessionState, action: ClosePostCallSheet) -> SessionState:
    return replace(state, post_call_sheet_call_id=None)


def _set_current_agent(state: SessionState, action: SetCurrentAgent) -> SessionState:
    return replace(state, current_agent=action.agent)


def _update_agent_score(state: SessionState, action: UpdateAgentScore) -> SessionState:
    agent = state.current_agent
    if agent is None or agent.id != action.agent_id:
        return state
    return replace(state, current_agent=replace(agent, score=action.score))


def _show_incoming_call(state: SessionState, action: ShowIncomingCall) -> SessionState:
    return replace(state, show_incoming_call=action.show)


def _reset_session(state: SessionState, action: ResetSession) -> SessionState:
    return SessionState()


REDUCERS: dict[type, Callable[[SessionState, Any], SessionState]] = {
    ToggleSoftphone: _toggle_softphone,
    SetSoftphoneOpen: _set_softphone_open,
    SetDeviceStatus: _set_device_status,
    SetMicrophonePermission: _set_microphone_permission,
    SetActiveCall: _set_active_call,
    UpdateActiveCall: _update_active_call,
    AddOrUpdateCall: _add_or_update_call,
    ReplaceTemporaryId: _replace_temporary_id,
    SetCallHistory: _set_call_history,
    UpdateNotesAndSummary: _update_notes_and_summary,
    OpenPostCallSheet: _open_post_call_sheet,
    ClosePostCallSheet: _close_post_call_sheet,
    SetCurrentAgent: _set_current_agent,
    UpdateAgentScore: _update_agent_score,
    ShowIncomingCall: _show_incoming_call,
    ResetSession: _reset_session,
}


def reduce(state: SessionState, action: Any) -> SessionState:
    handler = REDUCERS.get(type(action))
    if handler is None:
        return state
    return handler(state, action)
