from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


class NotificationType(str, Enum):
    TICKET_CREATED = "TICKET_CREATED"
    TICKET_APPROVED = "TICKET_APPROVED"
    TICKET_REJECTED = "TICKET_REJECTED"
    COMMENT_ADDED = "COMMENT_ADDED"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


NOTIFICATION_TITLES: Mapping[NotificationType, str] = {
    NotificationType.TICKET_CREATED: "New Ticket Created",
    NotificationType.TICKET_APPROVED: "Ticket Approved",
    NotificationType.TICKET_REJECTED: "Ticket Rejected",
    NotificationType.COMMENT_ADDED: "New Comment",
}

_TICKET_PRIORITY_LEVELS: Mapping[str, NotificationPriority] = {
    "LOW": NotificationPriority.LOW,
    "MEDIUM": NotificationPriority.MEDIUM,
    "HIGH": NotificationPriority.HIGH,
    "CRITICAL": NotificationPriority.CRITICAL,
    "URGENT": NotificationPriority.CRITICAL,
}


def priority_for_ticket(ticket_priority: str) -> NotificationPriority:
    return _TICKET_PRIORITY_LEVELS.get(ticket_priority.upper(), NotificationPriority.MEDIUM)


@dataclass(slots=True)
class Notification:
    """One inbox entry for one recipient."""

    id: str
    recipient_id: str
    ticket_id: str | None
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    created_at: datetime
    is_read: bool = False
    metadata: Mapping[str, Any] = field(default_factory=dict)
