"""Ticket domain models, lifecycle and workflow events."""

from .events import CommentAdded, EventBus, TicketDecided, TicketProposed, TicketSnapshot
from .models import Comment, DecisionMetadata, Ticket, TicketAuditEntry, TicketDraft
from .state import Decision, TicketStateMachine, TicketStatus

__all__ = [
    "Comment",
    "CommentAdded",
    "Decision",
    "DecisionMetadata",
    "EventBus",
    "Ticket",
    "TicketAuditEntry",
    "TicketDecided",
    "TicketDraft",
    "TicketProposed",
    "TicketSnapshot",
    "TicketStateMachine",
    "TicketStatus",
]
