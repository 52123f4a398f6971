import logging
from dataclasses import replace

from softphone.models import Call
from softphone.states import CallStatus

logger = logging.getLogger(__name__)

_LIVE_EXITS = {CallStatus.BUSY, CallStatus.FAILED, CallStatus.CANCELED}

TRANSITIONS = {
    CallStatus.QUEUED: {CallStatus.RINGING_OUTGOING, CallStatus.FAILED, CallStatus.CANCELED},
    CallStatus.RINGING_OUTGOING: {CallStatus.IN_PROGRESS, CallStatus.COMPLETED} | _LIVE_EXITS,
    CallStatus.RINGING_INCOMING: {CallStatus.IN_PROGRESS, CallStatus.COMPLETED} | _LIVE_EXITS,
    CallStatus.IN_PROGRESS: {CallStatus.COMPLETED} | _LIVE_EXITS,
    CallStatus.VOICEMAIL_DROPPING: {CallStatus.VOICEMAIL_DROPPED, CallStatus.FAILED},
    CallStatus.FETCHING_TRANSCRIPT: {s for s in CallStatus if s.is_terminal},
    CallStatus.COMPLETED: set(),
    CallStatus.BUSY: set(),
    CallStatus.FAILED: set(),
    CallStatus.CANCELED: set(),
    CallStatus.VOICEMAIL_DROPPED: set(),
    CallStatus.EMAILED: set(),
}


class StateMachine:
    """Call status graph.

    A ringing call may end as ``completed`` directly: the provider can report
    a disconnect without a preceding accept when the far end hangs up during
    setup.
    """

    def valid_transitions(self, status: CallStatus) -> set[CallStatus]:
        return TRANSITIONS.get(status, set())

    def can_transition(self, current: CallStatus, new: CallStatus) -> bool:
        return new in self.valid_transitions(current)

    def advance(self, call: Call, new: CallStatus) -> Call | None:
        """Return ``call`` moved to ``new``, or None if the edge does not exist."""
        if not self.can_transition(call.status, new):
            logger.warning(
                "Ignoring transition %s -> %s for call %s",
                call.status.value, new.value, call.id,
            )
            return None
        return replace(call, status=new)
