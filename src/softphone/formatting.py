import re

_NON_DIGITS = re.compile(r"\D")


def format_us_phone_number(phone_number: str) -> str:
    """Normalize a US number to E.164 (+1XXXXXXXXXX).

    International numbers keep their digits behind a single "+"; anything
    that does not look like a phone number is returned untouched.
    """
    if not phone_number:
        return ""
    digits = _NON_DIGITS.sub("", phone_number)

    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    if phone_number.startswith("+") and digits:
        return f"+{digits}"
    return phone_number


def format_duration(seconds: float) -> str:
    """Render seconds as MM:SS, or HH:MM:SS from one hour up."""
    if seconds is None or seconds != seconds or seconds < 0:
        return "00:00"
    total = int(seconds)
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h:02d}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"
