import asyncio
from datetime import date
from unittest.mock import AsyncMock

import pytest

from app.core.errors import AlreadyDecidedError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.metrics import MetricsRegistry, metrics_registry
from app.notifications.models import NotificationType
from app.tickets.models import DecisionMetadata, TicketPriority
from app.tickets.repository import TicketRepository
from app.tickets.state import Decision, TicketStatus
from app.tickets.workflow import TicketLocks, WorkflowEngine


class RacingRepository(TicketRepository):
    """Runs ``competitor`` once, right before the first status write."""

    def __init__(self, session_factory, competitor):
        super().__init__(session_factory)
        self._competitor = competitor

    async def transition(self, ticket_id, **kwargs):
        if self._competitor is not None:
            competitor, self._competitor = self._competitor, None
            await competitor()
        return await super().transition(ticket_id, **kwargs)


@pytest.mark.asyncio
@pytest.mark.parametrize("decision", [Decision.APPROVE, Decision.REJECT])
@pytest.mark.parametrize("decider", ["admin", "super_admin"])
async def test_admins_decide_pending_ticket_once(services, org, make_draft, decision, decider):
    ticket = await services.tickets.propose(make_draft(), org.user)
    actor = getattr(org, decider)
    metadata = DecisionMetadata(rejection_reason="Out of budget" if decision is Decision.REJECT else None)

    decided = await services.workflow.decide(ticket.id, decision, actor, metadata)

    assert decided.status is decision.target_status
    assert decided.decided_by == actor.id
    assert decided.decided_at is not None
    assert decided.version == ticket.version + 1

    with pytest.raises(AlreadyDecidedError):
        await services.workflow.decide(ticket.id, decision, actor, metadata)


@pytest.mark.asyncio
async def test_created_ticket_can_be_decided_immediately(services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(submit=False), org.user)
    decided = await services.workflow.decide(ticket.id, Decision.APPROVE, org.admin)
    assert decided.status is TicketStatus.APPROVED


@pytest.mark.asyncio
@pytest.mark.parametrize("decider", ["user", "manager"])
@pytest.mark.parametrize("submit", [True, False])
async def test_roles_below_admin_are_forbidden(services, org, make_draft, decider, submit):
    ticket = await services.tickets.propose(make_draft(submit=submit), org.user)

    for decision in Decision:
        with pytest.raises(ForbiddenError):
            await services.workflow.decide(
                ticket.id, decision, getattr(org, decider), DecisionMetadata(rejection_reason="no")
            )

    unchanged = await services.ticket_repository.get_ticket(ticket.id)
    assert unchanged.status is ticket.status
    assert unchanged.version == ticket.version


@pytest.mark.asyncio
@pytest.mark.parametrize("decider", ["user", "manager", "admin", "super_admin"])
async def test_terminal_ticket_refuses_every_role(services, org, make_draft, decider):
    ticket = await services.tickets.propose(make_draft(), org.user)
    await services.workflow.decide(ticket.id, Decision.REJECT, org.admin, DecisionMetadata(rejection_reason="dup"))

    with pytest.raises(AlreadyDecidedError) as exc:
        await services.workflow.decide(ticket.id, Decision.APPROVE, getattr(org, decider))
    assert exc.value.code == "already_decided"
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_reject_requires_reason_and_keeps_it(services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)

    with pytest.raises(ValidationError):
        await services.workflow.decide(ticket.id, Decision.REJECT, org.admin)
    with pytest.raises(ValidationError):
        await services.workflow.decide(
            ticket.id, Decision.REJECT, org.admin, DecisionMetadata(rejection_reason="   ")
        )
    assert (await services.ticket_repository.get_ticket(ticket.id)).status is TicketStatus.PENDING

    rejected = await services.workflow.decide(
        ticket.id, Decision.REJECT, org.admin, DecisionMetadata(rejection_reason="Duplicate of OPS-12")
    )
    stored = await services.tickets.get_ticket(ticket.id, org.user)
    assert rejected.rejection_reason == stored.rejection_reason == "Duplicate of OPS-12"


@pytest.mark.asyncio
async def test_approval_may_update_priority_and_expected_closure(services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)

    approved = await services.workflow.decide(
        ticket.id,
        Decision.APPROVE,
        org.admin,
        DecisionMetadata(priority="critical", expected_closure="2026-12-01"),
    )

    assert approved.priority is TicketPriority.CRITICAL
    assert approved.expected_closure == date(2026, 12, 1)
    assert approved.rejection_reason is None

    audit = await services.tickets.get_audit_log(ticket.id, org.admin)
    assert audit[-1].action == "approved"
    assert audit[-1].from_status is TicketStatus.PENDING
    assert audit[-1].to_status is TicketStatus.APPROVED
    assert audit[-1].metadata == {
        "priority_from": "HIGH",
        "priority": "CRITICAL",
        "expected_closure": "2026-12-01",
    }


@pytest.mark.asyncio
async def test_metadata_must_match_the_decision(services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)

    with pytest.raises(ValidationError):
        await services.workflow.decide(
            ticket.id, Decision.APPROVE, org.admin, DecisionMetadata(rejection_reason="why not")
        )
    with pytest.raises(ValidationError):
        await services.workflow.decide(
            ticket.id,
            Decision.REJECT,
            org.admin,
            DecisionMetadata(rejection_reason="no", expected_closure="2026-12-01"),
        )
    with pytest.raises(ValidationError):
        await services.workflow.decide(ticket.id, Decision.APPROVE, org.admin, DecisionMetadata(priority="asap"))


@pytest.mark.asyncio
async def test_unknown_ticket_is_not_found(services, org):
    with pytest.raises(NotFoundError):
        await services.workflow.decide("missing", Decision.APPROVE, org.admin)


@pytest.mark.asyncio
async def test_second_approval_by_super_admin_keeps_first_metadata(services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)
    first = await services.workflow.decide(
        ticket.id, Decision.APPROVE, org.admin, DecisionMetadata(priority="LOW", expected_closure="2026-11-20")
    )

    with pytest.raises(AlreadyDecidedError):
        await services.workflow.decide(
            ticket.id,
            Decision.APPROVE,
            org.super_admin,
            DecisionMetadata(priority="URGENT", expected_closure="2027-01-01"),
        )

    stored = await services.ticket_repository.get_ticket(ticket.id)
    assert stored.status is TicketStatus.APPROVED
    assert stored.decided_by == org.admin.id
    assert stored.priority is TicketPriority.LOW
    assert stored.expected_closure == date(2026, 11, 20)
    assert stored.version == first.version


@pytest.mark.asyncio
async def test_manager_reject_forbidden_then_super_admin_rejects(services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)

    with pytest.raises(ForbiddenError):
        await services.workflow.decide(
            ticket.id, Decision.REJECT, org.manager, DecisionMetadata(rejection_reason="not feasible")
        )

    rejected = await services.workflow.decide(
        ticket.id, Decision.REJECT, org.super_admin, DecisionMetadata(rejection_reason="not feasible")
    )
    assert rejected.status is TicketStatus.REJECTED
    assert (await services.ticket_repository.get_ticket(ticket.id)).rejection_reason == "not feasible"


@pytest.mark.asyncio
async def test_concurrent_decisions_have_exactly_one_winner(services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)

    results = await asyncio.gather(
        services.workflow.decide(ticket.id, Decision.APPROVE, org.admin),
        services.workflow.decide(
            ticket.id, Decision.REJECT, org.super_admin, DecisionMetadata(rejection_reason="no")
        ),
        return_exceptions=True,
    )

    winners = [result for result in results if not isinstance(result, Exception)]
    losers = [result for result in results if isinstance(result, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], (AlreadyDecidedError, ConflictError))

    stored = await services.ticket_repository.get_ticket(ticket.id)
    assert stored.status is winners[0].status
    decisions = [
        entry for entry in await services.tickets.get_audit_log(ticket.id, org.admin) if entry.action != "created"
    ]
    assert len(decisions) == 1


@pytest.mark.asyncio
async def test_lost_race_across_processes_reports_already_decided(services, org, make_draft, session_factory):
    ticket = await services.tickets.propose(make_draft(), org.user)
    rival = WorkflowEngine(TicketRepository(session_factory))

    async def rival_approves():
        await rival.decide(ticket.id, Decision.APPROVE, org.super_admin)

    engine = WorkflowEngine(RacingRepository(session_factory, rival_approves))

    with pytest.raises(AlreadyDecidedError):
        await engine.decide(ticket.id, Decision.REJECT, org.admin, DecisionMetadata(rejection_reason="late"))

    stored = await services.ticket_repository.get_ticket(ticket.id)
    assert stored.status is TicketStatus.APPROVED
    assert stored.decided_by == org.super_admin.id
    assert stored.rejection_reason is None


@pytest.mark.asyncio
async def test_lost_race_on_non_terminal_change_is_a_conflict(services, org, make_draft, session_factory):
    ticket = await services.tickets.propose(make_draft(submit=False), org.user)

    async def creator_submits():
        await services.tickets.submit(ticket.id, org.user)

    engine = WorkflowEngine(RacingRepository(session_factory, creator_submits))

    with pytest.raises(ConflictError) as exc:
        await engine.decide(ticket.id, Decision.APPROVE, org.admin)
    assert exc.value.retryable is True

    stored = await services.ticket_repository.get_ticket(ticket.id)
    assert stored.status is TicketStatus.PENDING
    retried = await engine.decide(ticket.id, Decision.APPROVE, org.admin)
    assert retried.status is TicketStatus.APPROVED


@pytest.mark.asyncio
async def test_publication_failure_does_not_undo_decision(session_factory, services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)
    events = AsyncMock()
    events.publish = AsyncMock(side_effect=RuntimeError("bus down"))
    engine = WorkflowEngine(TicketRepository(session_factory), events=events)

    decided = await engine.decide(ticket.id, Decision.APPROVE, org.admin)

    assert decided.status is TicketStatus.APPROVED
    assert (await services.ticket_repository.get_ticket(ticket.id)).status is TicketStatus.APPROVED
    events.publish.assert_awaited_once()


@pytest.mark.asyncio
async def test_decision_notifies_creator_manager_and_other_admins(services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)
    await services.workflow.decide(ticket.id, Decision.APPROVE, org.super_admin)

    for recipient in (org.user, org.manager, org.admin):
        approvals = [
            item
            for item in await services.notifications.list_for(recipient.id)
            if item.type is NotificationType.TICKET_APPROVED
        ]
        assert len(approvals) == 1
    assert await services.notifications.list_for(org.teammate.id) == []


@pytest.mark.asyncio
async def test_rejection_notification_carries_reason(services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)
    await services.workflow.decide(
        ticket.id, Decision.REJECT, org.admin, DecisionMetadata(rejection_reason="not feasible")
    )

    [notice] = await services.notifications.list_for(org.user.id)
    assert notice.type is NotificationType.TICKET_REJECTED
    assert notice.metadata["rejection_reason"] == "not feasible"
    assert "not feasible" in notice.message


@pytest.mark.asyncio
async def test_decision_metrics_are_recorded(services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)
    await services.workflow.decide(ticket.id, Decision.APPROVE, org.admin)
    with pytest.raises(AlreadyDecidedError):
        await services.workflow.decide(ticket.id, Decision.APPROVE, org.admin)

    assert metrics_registry.counter("ticket_decisions_total").value(labels={"decision": "approve"}) == 1
    failures = metrics_registry.counter("ticket_decision_failures_total")
    assert failures.value(labels={"reason": "already_decided"}) == 1


@pytest.mark.asyncio
async def test_ticket_locks_are_released():
    locks = TicketLocks()
    async with locks.hold("t-1"):
        assert len(locks) == 1
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_engine_with_its_own_registry_records_labelled_metrics(session_factory, services, org, make_draft):
    ticket = await services.tickets.propose(make_draft(), org.user)
    registry = MetricsRegistry()
    engine = WorkflowEngine(TicketRepository(session_factory), metrics=registry)

    approved = await engine.decide(ticket.id, Decision.APPROVE, org.admin)
    with pytest.raises(AlreadyDecidedError):
        await engine.decide(ticket.id, Decision.APPROVE, org.admin)

    assert approved.status is TicketStatus.APPROVED
    assert registry.counter("ticket_decisions_total").value(labels={"decision": "approve"}) == 1
    assert registry.counter("ticket_decision_failures_total").value(labels={"reason": "already_decided"}) == 1
    assert metrics_registry.counter("ticket_decisions_total").value(labels={"decision": "approve"}) == 0
