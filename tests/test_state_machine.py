from softphone.models import Call
from softphone.states import CallDirection, CallStatus


def make_call(status):
    return Call(
        id="c1",
        direction=CallDirection.OUTGOING,
        from_number="+15550001111",
        to_number="+15551234567",
        status=status,
        start_time=0.0,
    )


class TestTransitions:
    def test_outgoing_path(self, machine):
        assert machine.can_transition(CallStatus.QUEUED, CallStatus.RINGING_OUTGOING)
        assert machine.can_transition(CallStatus.RINGING_OUTGOING, CallStatus.IN_PROGRESS)
        assert machine.can_transition(CallStatus.IN_PROGRESS, CallStatus.COMPLETED)

    def test_ringing_can_end_directly(self, machine):
        for end in (CallStatus.COMPLETED, CallStatus.CANCELED, CallStatus.BUSY, CallStatus.FAILED):
            assert machine.can_transition(CallStatus.RINGING_INCOMING, end)

    def test_terminal_statuses_have_no_exits(self, machine):
        for status in CallStatus:
            if status.is_terminal:
                assert machine.valid_transitions(status) == set()

    def test_in_progress_cannot_ring_again(self, machine):
        assert not machine.can_transition(CallStatus.IN_PROGRESS, CallStatus.RINGING_OUTGOING)

    def test_voicemail_flow(self, machine):
        assert machine.valid_transitions(CallStatus.VOICEMAIL_DROPPING) == {
            CallStatus.VOICEMAIL_DROPPED, CallStatus.FAILED,
        }


class TestAdvance:
    def test_valid_edge(self, machine):
        call = machine.advance(make_call(CallStatus.QUEUED), CallStatus.RINGING_OUTGOING)
        assert call.status == CallStatus.RINGING_OUTGOING

    def test_invalid_edge_returns_none(self, machine, caplog):
        assert machine.advance(make_call(CallStatus.COMPLETED), CallStatus.IN_PROGRESS) is None
        assert "Ignoring transition" in caplog.text
