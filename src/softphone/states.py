from enum import Enum

RINGING_STATUSES = {"ringing-outgoing", "ringing-incoming"}
TERMINAL_STATUSES = {
    "completed", "busy", "failed", "canceled",
    "voicemail-dropped", "emailed",
}


class CallStatus(Enum):
    QUEUED = "queued"
    RINGING_OUTGOING = "ringing-outgoing"
    RINGING_INCOMING = "ringing-incoming"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BUSY = "busy"
    FAILED = "failed"
    CANCELED = "canceled"
    VOICEMAIL_DROPPING = "voicemail-dropping"
    VOICEMAIL_DROPPED = "voicemail-dropped"
    FETCHING_TRANSCRIPT = "fetching-transcript"
    EMAILED = "emailed"

    @property
    def is_ringing(self) -> bool:
        return self.value in RINGING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.value in TERMINAL_STATUSES


class CallDirection(Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class ActionTaken(Enum):
    CALL = "call"
    VOICEMAIL = "voicemail"
    EMAIL = "email"


class DeviceStatus(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    ERROR = "error"
