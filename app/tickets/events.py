"""Workflow events and the in-process bus that fans them out."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, MutableMapping

from app.security.roles import Role

from .state import TicketStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TicketSnapshot:
    """Ticket fields observers need to pick recipients and render messages."""

    ticket_id: str
    title: str
    team_id: str
    created_by: str
    priority: str


@dataclass(frozen=True, slots=True)
class TicketProposed:
    ticket: TicketSnapshot
    creator_id: str
    creator_role: Role
    status: TicketStatus
    occurred_at: datetime


@dataclass(frozen=True, slots=True)
class TicketDecided:
    ticket: TicketSnapshot
    status: TicketStatus
    actor_id: str
    actor_role: Role
    occurred_at: datetime
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CommentAdded:
    ticket: TicketSnapshot
    comment_id: str
    author_id: str
    is_internal: bool
    prior_commenter_ids: tuple[str, ...]
    occurred_at: datetime


WorkflowEvent = TicketProposed | TicketDecided | CommentAdded
EventHandler = Callable[[Any], Awaitable[None]]


class EventBus:
    """Deliver events to subscribed handlers in subscription order.

    A failing handler is logged and does not prevent later handlers from
    running; :meth:`publish` never raises on handler errors.
    """

    def __init__(self) -> None:
        self._handlers: MutableMapping[type, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    async def publish(self, event: WorkflowEvent) -> int:
        """Publish ``event`` and return how many handlers completed."""

        completed = 0
        for handler in list(self._handlers.get(type(event), ())):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Event handler %r failed for %s on ticket %s",
                    handler,
                    type(event).__name__,
                    event.ticket.ticket_id,
                )
                continue
            completed += 1
        return completed


def snapshot_of(ticket: Any) -> TicketSnapshot:
    return TicketSnapshot(
        ticket_id=ticket.id,
        title=ticket.title,
        team_id=ticket.team_id,
        created_by=ticket.created_by,
        priority=ticket.priority.value,
    )
