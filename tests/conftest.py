from unittest.mock import AsyncMock, MagicMock

import pytest

from softphone.models import Agent
from softphone.softphone import Softphone
from softphone.state_machine import StateMachine
from softphone.telephony import CallLeg, TelephonyDevice


class FakeLeg(CallLeg):
    def __init__(self, sid, parameters=None):
        super().__init__(sid, parameters)
        self.accepted = 0
        self.rejected = 0
        self.disconnected = 0

    async def accept(self):
        self.accepted += 1

    async def reject(self):
        self.rejected += 1
        self.closed = True

    async def disconnect(self):
        self.disconnected += 1
        self.closed = True


class FakeDevice(TelephonyDevice):
    def __init__(self, token, agent, fail_register=False, connect_error=None, leg_sid="CA_out"):
        super().__init__()
        self.token = token
        self.agent = agent
        self.fail_register = fail_register
        self.connect_error = connect_error
        self.leg_sid = leg_sid
        self.connected = []
        self.legs = []
        self.destroyed = False

    async def register(self):
        if self.fail_register:
            raise RuntimeError("registration failed")
        await self.emit("ready")

    async def connect(self, params):
        self.connected.append(params)
        if self.connect_error is not None:
            raise self.connect_error
        leg = FakeLeg(self.leg_sid, {"CallSid": self.leg_sid, "To": params.get("To")})
        self.legs.append(leg)
        return leg

    async def ring(self, sid, from_number, to_number=""):
        """Simulate an inbound call reaching this device."""
        leg = FakeLeg(sid, {"CallSid": sid, "From": from_number, "To": to_number})
        self.legs.append(leg)
        await self.emit("incoming", leg)
        return leg

    def destroy(self):
        self.destroyed = True
        super().destroy()


class DeviceFactory:
    def __init__(self):
        self.devices = []
        self.fail_register = False
        self.connect_error = None
        self.leg_sid = "CA_out"

    def __call__(self, token, agent):
        device = FakeDevice(
            token, agent,
            fail_register=self.fail_register,
            connect_error=self.connect_error,
            leg_sid=self.leg_sid,
        )
        self.devices.append(device)
        return device

    @property
    def last(self):
        return self.devices[-1]


class Clock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def agent():
    return Agent(id="A1", name="Amit", email="amit@example.com", phone="+15550001111")


@pytest.fixture
def backend():
    b = MagicMock()
    b.get_token = AsyncMock(return_value="token-abc")
    b.make_call = AsyncMock(return_value={"conference": "room-1"})
    b.create_call_log = AsyncMock(return_value={"status": "success"})
    b.list_call_logs = AsyncMock(return_value={"call_logs": []})
    b.get_transcript = AsyncMock(return_value={"transcript": "hello there"})
    b.send_voicemail = AsyncMock(return_value={"status": "queued"})
    b.send_email = AsyncMock(return_value={"status": "sent"})
    b.list_agents = AsyncMock(return_value={"agents": []})
    b.list_leads = AsyncMock(return_value=[])
    b.grade_agent = AsyncMock(return_value={"agent_id": "A1", "score_given": 8})
    return b


@pytest.fixture
def factory():
    return DeviceFactory()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def machine():
    return StateMachine()


@pytest.fixture
def phone(backend, factory, clock):
    ids = iter(f"temp_{n}" for n in range(1, 100))
    return Softphone(backend, factory, clock=clock, id_factory=lambda: next(ids))
