"""Notification inbox and the dispatcher feeding it from workflow events."""

from .dispatcher import NotificationDispatcher, NotificationSink
from .models import Notification, NotificationPriority, NotificationType
from .repository import NotificationRepository
from .service import NotificationService

__all__ = [
    "Notification",
    "NotificationDispatcher",
    "NotificationPriority",
    "NotificationRepository",
    "NotificationService",
    "NotificationSink",
    "NotificationType",
]
