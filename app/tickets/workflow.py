"""Approve and reject decisions for tickets awaiting a decision."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, MutableMapping

from app.core.errors import (
    AlreadyDecidedError,
    ConflictError,
    NotFoundError,
    TicketingError,
    ValidationError,
)
from app.core.logging import get_tracer
from app.directory.models import Actor
from app.metrics import MetricsRegistry, register_default_metrics
from app.security.policy import AuthorizationGate, TicketContext
from app.security.roles import Action

from .events import EventBus, TicketDecided, snapshot_of
from .models import DecisionMetadata, Ticket, TicketAuditEntry, TicketPriority, parse_date, parse_priority
from .repository import TicketRepository
from .state import Decision, TicketStateMachine

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

REJECTION_REASON_MAX_LENGTH = 1000


class TicketLocks:
    """Per-ticket :class:`asyncio.Lock` objects, dropped once nobody holds them."""

    def __init__(self) -> None:
        self._locks: MutableMapping[str, asyncio.Lock] = {}
        self._waiters: MutableMapping[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, ticket_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(ticket_id, asyncio.Lock())
        self._waiters[ticket_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[ticket_id] -= 1
            if self._waiters[ticket_id] == 0:
                del self._waiters[ticket_id]
                self._locks.pop(ticket_id, None)

    def __len__(self) -> int:
        return len(self._locks)


class _ValidDecision:
    __slots__ = ("rejection_reason", "priority", "expected_closure")

    def __init__(
        self,
        rejection_reason: str | None,
        priority: TicketPriority | None,
        expected_closure: date | None,
    ) -> None:
        self.rejection_reason = rejection_reason
        self.priority = priority
        self.expected_closure = expected_closure


def _validate_metadata(decision: Decision, metadata: DecisionMetadata) -> _ValidDecision:
    reason = (metadata.rejection_reason or "").strip() or None
    priority = parse_priority(metadata.priority) if metadata.priority else None
    expected_closure = (
        parse_date(metadata.expected_closure, "expected_closure") if metadata.expected_closure else None
    )

    if decision is Decision.REJECT:
        if reason is None:
            raise ValidationError("A rejection reason is required to reject a ticket")
        if len(reason) > REJECTION_REASON_MAX_LENGTH:
            raise ValidationError(
                f"rejection_reason must be at most {REJECTION_REASON_MAX_LENGTH} characters"
            )
        if expected_closure is not None:
            raise ValidationError("expected_closure can only accompany an approval")
    elif reason is not None:
        raise ValidationError("rejection_reason can only accompany a rejection")

    return _ValidDecision(reason, priority, expected_closure)


class WorkflowEngine:
    """Drive a ticket from awaiting-decision to ``APPROVED`` or ``REJECTED``.

    The terminal-state check runs before the authorization gate, so a second
    decision fails with :class:`AlreadyDecidedError` whatever the caller's
    role. The check and the write are serialised per ticket twice over: an
    in-process lock, and a version-checked update in the repository for
    writers in other processes. The ``TicketDecided`` event is published after
    the commit; publication failures never undo the decision.
    """

    def __init__(
        self,
        repository: TicketRepository,
        *,
        events: EventBus | None = None,
        gate: AuthorizationGate | None = None,
        locks: TicketLocks | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._repository = repository
        self._events = events or EventBus()
        self._gate = gate or AuthorizationGate()
        self._locks = locks or TicketLocks()
        self._metrics = register_default_metrics(metrics)

    async def decide(
        self,
        ticket_id: str,
        decision: Decision,
        actor: Actor,
        metadata: DecisionMetadata | None = None,
    ) -> Ticket:
        metadata = metadata or DecisionMetadata()
        with tracer.start_as_current_span("ticket.decide") as span:
            span.set_attribute("ticket.id", ticket_id)
            span.set_attribute("ticket.decision", decision.value)
            span.set_attribute("actor.role", actor.role.value)
            with self._metrics.time_distribution("ticket_decision_duration_seconds"):
                try:
                    async with self._locks.hold(ticket_id):
                        ticket = await self._apply(ticket_id, decision, actor, metadata)
                except TicketingError as exc:
                    self._metrics.counter("ticket_decision_failures_total").inc(labels={"reason": exc.code})
                    span.set_attribute("ticket.decision_error", exc.code)
                    raise

        self._metrics.counter("ticket_decisions_total").inc(labels={"decision": decision.value.lower()})
        logger.info(
            "Ticket %s %s by %s (%s)",
            ticket.id,
            ticket.status.value.lower(),
            actor.id,
            actor.role.value,
        )
        await self._publish(ticket, actor)
        return ticket

    async def _apply(
        self, ticket_id: str, decision: Decision, actor: Actor, metadata: DecisionMetadata
    ) -> Ticket:
        ticket = await self._repository.get_ticket(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        if TicketStateMachine.is_terminal(ticket.status):
            raise AlreadyDecidedError(f"Ticket {ticket_id} is already {ticket.status.value}")

        action = Action.APPROVE if decision is Decision.APPROVE else Action.REJECT
        self._gate.ensure(actor, action, TicketContext(team_id=ticket.team_id, created_by=ticket.created_by))
        valid = _validate_metadata(decision, metadata)

        target = decision.target_status
        TicketStateMachine.assert_transition(ticket.status, target)

        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {
            "status": target.value,
            "decided_by": actor.id,
            "decided_at": now,
            "rejection_reason": valid.rejection_reason,
            "updated_by": actor.id,
            "updated_at": now,
        }
        if valid.priority is not None:
            values["priority"] = valid.priority.value
        if valid.expected_closure is not None:
            values["expected_closure"] = valid.expected_closure

        audit = TicketAuditEntry(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            action="approved" if decision is Decision.APPROVE else "rejected",
            actor=actor.id,
            from_status=ticket.status,
            to_status=target,
            created_at=now,
            metadata=_audit_metadata(valid, ticket),
        )
        updated = await self._repository.transition(
            ticket.id,
            expected_version=ticket.version,
            from_statuses=tuple(TicketStateMachine.AWAITING_DECISION),
            values=values,
            audit=audit,
        )
        if updated is not None:
            return updated

        current = await self._repository.get_ticket(ticket_id)
        logger.warning("Lost decision race on ticket %s for actor %s", ticket_id, actor.id)
        if current is not None and TicketStateMachine.is_terminal(current.status):
            raise AlreadyDecidedError(f"Ticket {ticket_id} is already {current.status.value}")
        raise ConflictError(f"Ticket {ticket_id} was modified concurrently; reload and retry")

    async def _publish(self, ticket: Ticket, actor: Actor) -> None:
        metadata = {"priority": ticket.priority.value}
        if ticket.rejection_reason:
            metadata["rejection_reason"] = ticket.rejection_reason
        if ticket.expected_closure:
            metadata["expected_closure"] = ticket.expected_closure.isoformat()
        event = TicketDecided(
            ticket=snapshot_of(ticket),
            status=ticket.status,
            actor_id=actor.id,
            actor_role=actor.role,
            occurred_at=ticket.decided_at or datetime.now(timezone.utc),
            metadata=metadata,
        )
        try:
            await self._events.publish(event)
        except Exception:
            logger.exception("Failed to publish decision for ticket %s", ticket.id)


def _audit_metadata(valid: _ValidDecision, ticket: Ticket) -> dict[str, str]:
    data: dict[str, str] = {}
    if valid.rejection_reason:
        data["rejection_reason"] = valid.rejection_reason
    if valid.priority is not None and valid.priority is not ticket.priority:
        data["priority_from"] = ticket.priority.value
        data["priority"] = valid.priority.value
    if valid.expected_closure is not None:
        data["expected_closure"] = valid.expected_closure.isoformat()
    return data

