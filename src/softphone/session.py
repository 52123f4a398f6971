from dataclasses import dataclass

from softphone.models import Agent, Call
from softphone.states import DeviceStatus


@dataclass(frozen=True)
class SessionState:
    # Calls
    call_history: tuple[Call, ...] = ()
    active_call: Call | None = None

    # Device lifecycle
    device_status: DeviceStatus = DeviceStatus.UNINITIALIZED
    microphone_granted: bool = False

    # Identity
    current_agent: Agent | None = None

    # UI visibility
    softphone_open: bool = False
    show_incoming_call: bool = False
    post_call_sheet_call_id: str | None = None

    def find_call(self, call_id: str) -> Call | None:
        for call in self.call_history:
            if call.id == call_id:
                return call
        return None

    def to_dict(self) -> dict:
        return {
            "call_history": [c.to_dict() for c in self.call_history],
            "active_call": self.active_call.to_dict() if self.active_call else None,
            "device_status": self.device_status.value,
            "microphone_granted": self.microphone_granted,
            "current_agent": self.current_agent.to_dict() if self.current_agent else None,
            "softphone_open": self.softphone_open,
            "show_incoming_call": self.show_incoming_call,
            "post_call_sheet_call_id": self.post_call_sheet_call_id,
        }
