"""Turn workflow events into per-recipient notifications."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Protocol

from app.directory.models import Actor
from app.directory.repository import DirectoryRepository
from app.metrics import MetricsRegistry, register_default_metrics
from app.security.roles import Role, at_least, roles_at_least
from app.tickets.events import CommentAdded, EventBus, TicketDecided, TicketProposed, TicketSnapshot
from app.tickets.state import TicketStatus

from .models import NOTIFICATION_TITLES, Notification, NotificationType, priority_for_ticket

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def deliver(self, notification: Notification) -> bool:
        """Store or send ``notification``; return ``False`` when it was not accepted."""


class NotificationDispatcher:
    """Compute recipients for workflow events and deliver one notification each.

    Delivery is attempted independently for every recipient. A failing
    recipient is logged and counted; the others still receive theirs and the
    originating request never sees the failure.
    """

    def __init__(
        self,
        directory: DirectoryRepository,
        sink: NotificationSink,
        *,
        notify_admins_on_approval: bool = True,
        notify_admins_on_proposal: bool = True,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._directory = directory
        self._sink = sink
        self._notify_admins_on_approval = notify_admins_on_approval
        self._notify_admins_on_proposal = notify_admins_on_proposal
        self._metrics = register_default_metrics(metrics)

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(TicketProposed, self.on_ticket_proposed)
        bus.subscribe(TicketDecided, self.on_ticket_decided)
        bus.subscribe(CommentAdded, self.on_comment_added)

    async def on_ticket_proposed(self, event: TicketProposed) -> int:
        recipients: list[str] = []
        if self._notify_admins_on_proposal:
            recipients.extend(await self._actor_ids(roles_at_least(Role.ADMIN)))
        if event.creator_role is Role.USER:
            manager_id = await self._team_manager_id(event.ticket.team_id)
            if manager_id:
                recipients.append(manager_id)
        recipients = [recipient for recipient in recipients if recipient != event.creator_id]

        message = f'A new ticket "{event.ticket.title}" is awaiting approval.'
        return await self._dispatch(
            recipients,
            event.ticket,
            NotificationType.TICKET_CREATED,
            message,
            metadata={"status": event.status.value, "created_by": event.creator_id},
        )

    async def on_ticket_decided(self, event: TicketDecided) -> int:
        approved = event.status is TicketStatus.APPROVED
        recipients = [event.ticket.created_by]
        manager_id = await self._team_manager_id(event.ticket.team_id)
        if manager_id:
            recipients.append(manager_id)
        if approved and self._notify_admins_on_approval:
            recipients.extend(
                admin_id
                for admin_id in await self._actor_ids([Role.ADMIN])
                if admin_id != event.actor_id
            )

        if approved:
            notification_type = NotificationType.TICKET_APPROVED
            message = f'Ticket "{event.ticket.title}" has been approved.'
        else:
            notification_type = NotificationType.TICKET_REJECTED
            reason = event.metadata.get("rejection_reason", "")
            message = f'Ticket "{event.ticket.title}" has been rejected. Reason: {reason}'

        metadata = {"status": event.status.value, "decided_by": event.actor_id, **event.metadata}
        return await self._dispatch(recipients, event.ticket, notification_type, message, metadata=metadata)

    async def on_comment_added(self, event: CommentAdded) -> int:
        candidates = [
            actor_id
            for actor_id in dict.fromkeys((event.ticket.created_by, *event.prior_commenter_ids))
            if actor_id != event.author_id
        ]
        if event.is_internal:
            actors = await self._directory.get_actors(candidates)
            candidates = [
                actor_id
                for actor_id in candidates
                if actor_id in actors and at_least(actors[actor_id].role, Role.ADMIN)
            ]

        message = f'New comment on ticket "{event.ticket.title}".'
        return await self._dispatch(
            candidates,
            event.ticket,
            NotificationType.COMMENT_ADDED,
            message,
            metadata={
                "comment_id": event.comment_id,
                "author_id": event.author_id,
                "is_internal": event.is_internal,
            },
        )

    async def _dispatch(
        self,
        recipients: Iterable[str],
        ticket: TicketSnapshot,
        notification_type: NotificationType,
        message: str,
        *,
        metadata: dict,
    ) -> int:
        delivered = failed = 0
        for recipient_id in dict.fromkeys(recipients):
            notification = Notification(
                id=str(uuid.uuid4()),
                recipient_id=recipient_id,
                ticket_id=ticket.ticket_id,
                type=notification_type,
                title=NOTIFICATION_TITLES[notification_type],
                message=message,
                priority=priority_for_ticket(ticket.priority),
                created_at=datetime.now(timezone.utc),
                metadata=dict(metadata),
            )
            try:
                accepted = await self._sink.deliver(notification)
            except Exception:
                logger.exception(
                    "Failed to deliver %s notification for ticket %s to %s",
                    notification_type.value,
                    ticket.ticket_id,
                    recipient_id,
                )
                accepted = False
            else:
                if not accepted:
                    logger.warning(
                        "Sink refused %s notification for ticket %s to %s",
                        notification_type.value,
                        ticket.ticket_id,
                        recipient_id,
                    )

            if accepted:
                delivered += 1
            else:
                failed += 1

        # Counted after the loop so every recipient gets its attempt first.
        labels = {"type": notification_type.value}
        if delivered:
            self._metrics.counter("notifications_delivered_total").inc(delivered, labels=labels)
        if failed:
            self._metrics.counter("notification_delivery_failures_total").inc(failed, labels=labels)
        logger.debug(
            "Delivered %d %s notification(s) for ticket %s", delivered, notification_type.value, ticket.ticket_id
        )
        return delivered

    async def _team_manager_id(self, team_id: str) -> str | None:
        team = await self._directory.get_team(team_id)
        return team.manager_id if team is not None else None

    async def _actor_ids(self, roles: Iterable[Role]) -> list[str]:
        actors: list[Actor] = await self._directory.list_actors(roles=list(roles), active_only=True)
        return [actor.id for actor in actors]

