"""Environment configuration.

Nothing is required at startup: the server boots without a backend or
telephony credentials and each request that needs a missing setting fails
on its own with a 500 and a fixed message.  ``validate_config`` is called
from the server at startup so the gaps show up in the logs early.
"""

import os
import logging

from softphone.errors import ConfigurationError

logger = logging.getLogger(__name__)

BYPASS_HEADER = "ngrok-skip-browser-warning"

OPTIONAL_VARS = [
    "BASE_URL",
    "PUBLIC_BASE_URL",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_API_KEY_SID",
    "TWILIO_API_KEY_SECRET",
    "TWILIO_TWIML_APP_SID",
    "TWILIO_CALLER_ID",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "LOG_LEVEL",
]

TOKEN_VARS = [
    "TWILIO_ACCOUNT_SID",
    "TWILIO_API_KEY_SID",
    "TWILIO_API_KEY_SECRET",
    "TWILIO_TWIML_APP_SID",
]


def validate_config() -> list[str]:
    """Log a warning for every unset variable and return their names."""
    missing = [var for var in OPTIONAL_VARS if not os.getenv(var)]
    for var in missing:
        logger.warning("Optional env var %s is not set", var)
    return missing


def get_setting(name: str, message: str = "") -> str:
    """Return a non-empty env var or raise ConfigurationError."""
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigurationError(message or f"{name} is not configured.")
    return value


def backend_base_url() -> str:
    return os.getenv("BASE_URL", "").strip().rstrip("/")


def can_issue_tokens() -> bool:
    """True when every credential for local voice-token signing is present."""
    return all(os.getenv(var) for var in TOKEN_VARS)
