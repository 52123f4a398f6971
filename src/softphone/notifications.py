import logging
from collections import deque

from softphone.models import Notification

logger = logging.getLogger(__name__)


class Notifier:
    """Collects user-visible notifications for the session.

    Every notification is also logged so nothing reported to the user is
    lost when no client is polling.
    """

    def __init__(self, maxlen: int = 50):
        self._pending: deque[Notification] = deque(maxlen=maxlen)

    def notify(self, title: str, description: str = "", variant: str = "default") -> Notification:
        note = Notification(title=title, description=description, variant=variant)
        if note.is_error:
            logger.warning("%s: %s", title, description)
        else:
            logger.info("%s: %s", title, description)
        self._pending.append(note)
        return note

    def error(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description, variant="destructive")

    def pending(self) -> list[Notification]:
        return list(self._pending)

    def drain(self) -> list[Notification]:
        notes = list(self._pending)
        self._pending.clear()
        return notes
