from unittest.mock import MagicMock

import pytest
from twilio.base.exceptions import TwilioRestException

from softphone.telephony import EventEmitter, TelephonyDevice, TwilioDevice, conference_twiml


@pytest.fixture
def client():
    c = MagicMock()
    c.account_sid = "AC123"
    c.calls.create.return_value = MagicMock(sid="CA_agent")
    return c


@pytest.fixture
def device(client):
    return TwilioDevice(
        token="jwt",
        identity="A1",
        agent_phone="+15550001111",
        client=client,
        caller_id="+15550009999",
        status_callback_url="https://softphone.example.com/api/twilio/status",
    )


class Recorder:
    def __init__(self, emitter, names):
        self.events = []
        for name in names:
            emitter.on(name, self._handler(name))

    def _handler(self, name):
        async def handler(*args):
            self.events.append((name, args))
        return handler


class TestEventEmitter:
    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self):
        emitter = EventEmitter()
        seen = []
        emitter.on("x", lambda v: seen.append(("sync", v)))

        async def handler(v):
            seen.append(("async", v))

        emitter.on("x", handler)
        await emitter.emit("x", 1)
        assert seen == [("sync", 1), ("async", 1)]

    @pytest.mark.asyncio
    async def test_remove_all_listeners(self):
        emitter = EventEmitter()
        seen = []
        emitter.on("x", seen.append)
        emitter.remove_all_listeners()
        await emitter.emit("x", 1)
        assert seen == []


def test_device_without_connect_cannot_be_built():
    class RegisterOnly(TelephonyDevice):
        async def register(self):
            pass

    with pytest.raises(TypeError):
        RegisterOnly()


def test_conference_twiml():
    xml = conference_twiml("room-1")
    assert "<Conference" in xml
    assert "room-1</Conference>" in xml
    assert 'endConferenceOnExit="true"' in xml


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_emits_ready(self, device, client):
        recorder = Recorder(device, ["ready"])
        await device.register()
        assert device.registered is True
        assert recorder.events == [("ready", ())]
        client.api.v2010.accounts.assert_called_once_with("AC123")

    @pytest.mark.asyncio
    async def test_register_needs_agent_phone(self, client):
        device = TwilioDevice(
            token="jwt", identity="A1", agent_phone="", client=client,
            caller_id="+15550009999", status_callback_url="https://x/status",
        )
        with pytest.raises(ValueError, match="no phone number"):
            await device.register()

    @pytest.mark.asyncio
    async def test_connect_requires_registration(self, device):
        with pytest.raises(RuntimeError):
            await device.connect({"To": "room-1"})


class TestOutboundLeg:
    @pytest.mark.asyncio
    async def test_connect_dials_agent_into_conference(self, device, client):
        await device.register()
        leg = await device.connect({"To": "room-1"})
        assert leg.sid == "CA_agent"
        kwargs = client.calls.create.call_args.kwargs
        assert kwargs["to"] == "+15550001111"
        assert kwargs["from_"] == "+15550009999"
        assert "room-1" in kwargs["twiml"]
        assert kwargs["status_callback"] == "https://softphone.example.com/api/twilio/status"

    @pytest.mark.asyncio
    async def test_status_callbacks_drive_events(self, device):
        await device.register()
        leg = await device.connect({"To": "room-1"})
        recorder = Recorder(leg, ["accept", "disconnect"])
        await device.handle_status({"CallSid": "CA_agent", "CallStatus": "in-progress"})
        await device.handle_status({"CallSid": "CA_agent", "CallStatus": "completed"})
        assert [name for name, _ in recorder.events] == ["accept", "disconnect"]
        assert leg.closed is True

    @pytest.mark.asyncio
    async def test_failed_status_is_error(self, device):
        await device.register()
        leg = await device.connect({"To": "room-1"})
        recorder = Recorder(leg, ["error"])
        await device.handle_status({
            "CallSid": "CA_agent", "CallStatus": "failed",
            "ErrorCode": "13224", "ErrorMessage": "Invalid number",
        })
        assert recorder.events == [("error", ({"message": "Invalid number", "code": 13224},))]

    @pytest.mark.asyncio
    async def test_no_answer_is_reject(self, device):
        await device.register()
        leg = await device.connect({"To": "room-1"})
        recorder = Recorder(leg, ["reject"])
        await device.handle_status({"CallSid": "CA_agent", "CallStatus": "no-answer"})
        assert len(recorder.events) == 1

    @pytest.mark.asyncio
    async def test_disconnect_hangs_up(self, device, client):
        await device.register()
        leg = await device.connect({"To": "room-1"})
        await leg.disconnect()
        client.calls.assert_called_with("CA_agent")
        client.calls.return_value.update.assert_called_with(status="completed")

    @pytest.mark.asyncio
    async def test_hangup_of_finished_call_is_tolerated(self, device, client):
        await device.register()
        leg = await device.connect({"To": "room-1"})
        client.calls.return_value.update.side_effect = TwilioRestException(404, "uri", "not found")
        await leg.disconnect()
        assert leg.closed is True


class TestInboundLeg:
    @pytest.mark.asyncio
    async def test_incoming_then_accept(self, device, client):
        recorder = Recorder(device, ["incoming"])
        await device.handle_incoming(
            {"CallSid": "CA_in", "From": "+15557654321", "To": "+15550009999"}, "room-in",
        )
        leg = recorder.events[0][1][0]
        assert leg.sid == "CA_in"
        assert leg.parameters["From"] == "+15557654321"

        await leg.accept()
        assert leg.agent_sid == "CA_agent"
        assert "room-in" in client.calls.create.call_args.kwargs["twiml"]

        leg_events = Recorder(leg, ["accept", "disconnect"])
        await device.handle_status({"CallSid": "CA_agent", "CallStatus": "in-progress"})
        await device.handle_status({"CallSid": "CA_in", "CallStatus": "completed"})
        assert [name for name, _ in leg_events.events] == ["accept", "disconnect"]

    @pytest.mark.asyncio
    async def test_caller_hangs_up_before_answer(self, device):
        recorder = Recorder(device, ["incoming"])
        await device.handle_incoming({"CallSid": "CA_in", "From": "+1", "To": "+2"}, "room-in")
        leg = recorder.events[0][1][0]
        leg_events = Recorder(leg, ["cancel", "accept"])
        await device.handle_status({"CallSid": "CA_in", "CallStatus": "in-progress"})
        await device.handle_status({"CallSid": "CA_in", "StatusCallbackEvent": "participant-leave"})
        assert [name for name, _ in leg_events.events] == ["cancel"]

    @pytest.mark.asyncio
    async def test_duplicate_incoming_ignored(self, device):
        recorder = Recorder(device, ["incoming"])
        form = {"CallSid": "CA_in", "From": "+1", "To": "+2"}
        await device.handle_incoming(form, "room-in")
        await device.handle_incoming(form, "room-in")
        assert len(recorder.events) == 1

    def test_destroy_clears_legs(self, device):
        device._legs["CA_x"] = MagicMock()
        device.destroy()
        assert device._legs == {}
        assert device.registered is False
