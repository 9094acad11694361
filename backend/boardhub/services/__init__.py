"""Services package."""

from boardhub.services.notification import NotificationService, present_notification
from boardhub.services.realtime import ConnectionManager, RefreshDebouncer, manager

__all__ = [
    "NotificationService",
    "present_notification",
    "ConnectionManager",
    "RefreshDebouncer",
    "manager",
]
