"""Database models and utilities."""

from .models import (
    ActorTable,
    NotificationTable,
    ProjectTable,
    TeamTable,
    TicketAuditLogTable,
    TicketCommentTable,
    TicketTable,
)

__all__ = [
    "ActorTable",
    "NotificationTable",
    "ProjectTable",
    "TeamTable",
    "TicketAuditLogTable",
    "TicketCommentTable",
    "TicketTable",
]
