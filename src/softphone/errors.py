class SoftphoneError(Exception):
    """Base class for failures the session reports to the user."""


class ConfigurationError(SoftphoneError):
    """A required setting is missing. Fatal for the request that needed it."""


class BackendError(SoftphoneError):
    """Non-success answer (or transport failure) from the backend API.

    ``status_code`` is the upstream status so proxies can propagate it;
    ``details`` carries the message extracted from the upstream body.
    """

    def __init__(self, status_code: int, error: str, details: str = ""):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.details:
            body["details"] = self.details
        return body


class NoAgentError(SoftphoneError):
    pass


class DeviceNotReadyError(SoftphoneError):
    pass


class CallInProgressError(SoftphoneError):
    """A second outgoing call was requested while the call slot is taken."""
