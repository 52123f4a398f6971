from softphone.states import CallStatus, DeviceStatus


def test_ringing_statuses():
    assert CallStatus.RINGING_OUTGOING.is_ringing
    assert CallStatus.RINGING_INCOMING.is_ringing
    assert not CallStatus.IN_PROGRESS.is_ringing


def test_terminal_statuses():
    terminal = {s for s in CallStatus if s.is_terminal}
    assert terminal == {
        CallStatus.COMPLETED, CallStatus.BUSY, CallStatus.FAILED,
        CallStatus.CANCELED, CallStatus.VOICEMAIL_DROPPED, CallStatus.EMAILED,
    }


def test_wire_values():
    assert CallStatus("in-progress") == CallStatus.IN_PROGRESS
    assert CallStatus.VOICEMAIL_DROPPING.value == "voicemail-dropping"
    assert DeviceStatus("uninitialized") == DeviceStatus.UNINITIALIZED
