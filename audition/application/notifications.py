from typing import List

import structlog

from audition.core.interfaces import Notifier
from .models import Notification, NotificationLevel

logger = structlog.get_logger(__name__)

_LOG_METHODS = {
    NotificationLevel.INFO: "info",
    NotificationLevel.SUCCESS: "info",
    NotificationLevel.WARNING: "warning",
    NotificationLevel.ERROR: "error",
}


class NotificationLog(Notifier):
    """Keeps every notification in order and mirrors it to the log."""

    def __init__(self):
        self.items: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.items.append(notification)
        log = getattr(logger, _LOG_METHODS[notification.level])
        log("notification", title=notification.title, message=notification.message)

    def titles(self) -> List[str]:
        return [n.title for n in self.items]
