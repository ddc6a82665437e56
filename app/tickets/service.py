from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from app.core.errors import AlreadyDecidedError, ConflictError, NotFoundError, ValidationError
from app.directory.models import Actor
from app.directory.repository import DirectoryRepository
from app.metrics import MetricsRegistry, register_default_metrics
from app.security.policy import AuthorizationGate, TicketContext
from app.security.roles import Action, Role, at_least

from .events import CommentAdded, EventBus, TicketProposed, WorkflowEvent, snapshot_of
from .models import Comment, Ticket, TicketAuditEntry, TicketChanges, TicketDraft
from .repository import TicketRepository
from .state import TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)

COMMENT_MAX_LENGTH = 5000


def ticket_context(ticket: Ticket) -> TicketContext:
    return TicketContext(team_id=ticket.team_id, created_by=ticket.created_by)


class TicketService:
    """High level orchestration for proposing, reading and commenting on tickets.

    Approve and reject decisions live in :class:`app.tickets.workflow.WorkflowEngine`.
    """

    def __init__(
        self,
        repository: TicketRepository,
        directory: DirectoryRepository,
        *,
        events: EventBus | None = None,
        gate: AuthorizationGate | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._repository = repository
        self._directory = directory
        self._events = events or EventBus()
        self._gate = gate or AuthorizationGate()
        self._metrics = register_default_metrics(metrics)

    async def propose(self, draft: TicketDraft, creator: Actor) -> Ticket:
        valid = draft.validated()
        self._gate.ensure(creator, Action.PROPOSE, TicketContext(team_id=valid.team_id, created_by=creator.id))

        team = await self._directory.get_team(valid.team_id)
        if team is None:
            raise NotFoundError(f"Team {valid.team_id} not found")
        if not team.is_active:
            raise ValidationError(f"Team {valid.team_id} is not active")
        if await self._directory.get_project(valid.project_id) is None:
            raise NotFoundError(f"Project {valid.project_id} not found")

        now = datetime.now(timezone.utc)
        status = TicketStateMachine.initial_state(submit=valid.submit)
        ticket = Ticket(
            id=str(uuid.uuid4()),
            title=valid.title,
            description=valid.description,
            type=valid.type,
            category=valid.category,
            department=valid.department,
            priority=valid.priority,
            due_date=valid.due_date,
            expected_closure=None,
            project_id=valid.project_id,
            team_id=valid.team_id,
            created_by=creator.id,
            status=status,
            decided_by=None,
            decided_at=None,
            rejection_reason=None,
            version=1,
            updated_by=creator.id,
            created_at=now,
            updated_at=now,
        )
        audit = TicketAuditEntry(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            action="created",
            actor=creator.id,
            from_status=None,
            to_status=status,
            created_at=now,
        )
        await self._repository.create_ticket(ticket, audit)
        self._metrics.counter("tickets_proposed_total").inc()
        logger.info("Ticket %s proposed by %s in state %s", ticket.id, creator.id, status.value)

        if status is TicketStatus.PENDING:
            await self._publish(
                TicketProposed(
                    ticket=snapshot_of(ticket),
                    creator_id=creator.id,
                    creator_role=creator.role,
                    status=status,
                    occurred_at=now,
                )
            )
        return ticket

    async def submit(self, ticket_id: str, actor: Actor) -> Ticket:
        """Move a saved draft from ``CREATED`` to ``PENDING``."""

        ticket = await self._load(ticket_id)
        self._gate.ensure(actor, Action.SUBMIT, ticket_context(ticket))
        TicketStateMachine.assert_transition(ticket.status, TicketStatus.PENDING)

        now = datetime.now(timezone.utc)
        audit = TicketAuditEntry(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            action="submitted",
            actor=actor.id,
            from_status=ticket.status,
            to_status=TicketStatus.PENDING,
            created_at=now,
        )
        updated = await self._repository.transition(
            ticket.id,
            expected_version=ticket.version,
            from_statuses=(TicketStatus.CREATED,),
            values={"status": TicketStatus.PENDING.value, "updated_by": actor.id, "updated_at": now},
            audit=audit,
        )
        if updated is None:
            current = await self._load(ticket_id)
            TicketStateMachine.assert_transition(current.status, TicketStatus.PENDING)
            raise ConflictError(f"Ticket {ticket_id} was modified concurrently; reload and retry")

        await self._publish(
            TicketProposed(
                ticket=snapshot_of(updated),
                creator_id=updated.created_by,
                creator_role=await self._role_of(updated.created_by),
                status=TicketStatus.PENDING,
                occurred_at=now,
            )
        )
        return updated

    async def update(self, ticket_id: str, changes: TicketChanges, actor: Actor) -> Ticket:
        """Edit the content of a ticket that is still awaiting a decision.

        Allowed to the creator and to admin and above. Status, team and
        decision fields are not editable here.
        """

        ticket = await self._load(ticket_id)
        if TicketStateMachine.is_terminal(ticket.status):
            raise AlreadyDecidedError(f"Ticket {ticket_id} is already {ticket.status.value}")
        self._gate.ensure(actor, Action.UPDATE_TICKET, ticket_context(ticket))

        values = changes.validated()
        if "project_id" in values and await self._directory.get_project(values["project_id"]) is None:
            raise NotFoundError(f"Project {values['project_id']} not found")

        now = datetime.now(timezone.utc)
        audit = TicketAuditEntry(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            action="updated",
            actor=actor.id,
            from_status=ticket.status,
            to_status=ticket.status,
            created_at=now,
            metadata={"fields": ",".join(sorted(values))},
        )
        updated = await self._repository.transition(
            ticket.id,
            expected_version=ticket.version,
            from_statuses=tuple(TicketStateMachine.AWAITING_DECISION),
            values={**values, "updated_by": actor.id, "updated_at": now},
            audit=audit,
        )
        if updated is None:
            current = await self._load(ticket_id)
            if TicketStateMachine.is_terminal(current.status):
                raise AlreadyDecidedError(f"Ticket {ticket_id} is already {current.status.value}")
            raise ConflictError(f"Ticket {ticket_id} was modified concurrently; reload and retry")

        logger.info("Ticket %s updated by %s (%s)", ticket.id, actor.id, ", ".join(sorted(values)))
        return updated

    async def get_ticket(self, ticket_id: str, actor: Actor) -> Ticket:
        ticket = await self._load(ticket_id)
        self._gate.ensure(actor, Action.READ_TICKET, ticket_context(ticket))
        return ticket

    async def list_tickets(
        self,
        actor: Actor,
        *,
        status: TicketStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Ticket]:
        if at_least(actor.role, Role.ADMIN):
            return await self._repository.list_tickets(status=status, limit=limit, offset=offset)
        if actor.role is Role.TEAM_MANAGER:
            return await self._repository.list_tickets(
                status=status, team_id=actor.team_id, limit=limit, offset=offset
            )
        return await self._repository.list_tickets(
            status=status, team_id=actor.team_id, created_by=actor.id, limit=limit, offset=offset
        )

    async def add_comment(self, ticket_id: str, author: Actor, content: str, is_internal: bool = False) -> Comment:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")

        text = (content or "").strip()
        if not text:
            raise ValidationError("Comment content must not be empty")
        if len(text) > COMMENT_MAX_LENGTH:
            raise ValidationError(f"Comment content must be at most {COMMENT_MAX_LENGTH} characters")

        self._gate.ensure(author, Action.COMMENT, ticket_context(ticket))

        prior = await self._repository.list_comments(ticket.id)
        now = datetime.now(timezone.utc)
        comment = Comment(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            author_id=author.id,
            content=text,
            is_internal=is_internal,
            created_at=now,
        )
        audit = TicketAuditEntry(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            action="comment_added",
            actor=author.id,
            from_status=ticket.status,
            to_status=ticket.status,
            created_at=now,
            metadata={"comment_id": comment.id, "is_internal": str(is_internal).lower()},
        )
        await self._repository.add_comment(comment, audit)

        await self._publish(
            CommentAdded(
                ticket=snapshot_of(ticket),
                comment_id=comment.id,
                author_id=author.id,
                is_internal=is_internal,
                prior_commenter_ids=tuple(dict.fromkeys(item.author_id for item in prior)),
                occurred_at=now,
            )
        )
        return comment

    async def list_comments(self, ticket_id: str, actor: Actor) -> list[Comment]:
        ticket = await self._load(ticket_id)
        self._gate.ensure(actor, Action.READ_TICKET, ticket_context(ticket))
        return await self._repository.list_comments(ticket.id, include_internal=self._gate.can_see_internal(actor))

    async def get_audit_log(self, ticket_id: str, actor: Actor) -> list[TicketAuditEntry]:
        ticket = await self._load(ticket_id)
        self._gate.ensure(actor, Action.READ_TICKET, ticket_context(ticket))
        return await self._repository.get_audit_log(ticket.id)

    async def _load(self, ticket_id: str) -> Ticket:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def _role_of(self, actor_id: str) -> Role:
        actor = await self._directory.get_actor(actor_id)
        return actor.role if actor is not None else Role.USER

    async def _publish(self, event: WorkflowEvent) -> None:
        try:
            await self._events.publish(event)
        except Exception:
            logger.exception("Failed to publish %s for ticket %s", type(event).__name__, event.ticket.ticket_id)
