from __future__ import annotations

from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.dependencies.auth import CurrentActor
from app.dependencies.tickets import TicketServiceDep, WorkflowEngineDep
from app.tickets.models import (
    Comment,
    DecisionMetadata,
    Department,
    Ticket,
    TicketAuditEntry,
    TicketCategory,
    TicketChanges,
    TicketDraft,
    TicketPriority,
    TicketType,
)
from app.tickets.state import Decision, TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    """Proposal payload.

    Required fields are optional here so that the domain layer can report
    every missing field in a single validation error.
    """

    title: str | None = None
    description: str = Field(default="", max_length=10000)
    type: str | None = None
    category: str | None = None
    department: str | None = None
    priority: str | None = None
    project_id: str | None = None
    team_id: str | None = None
    due_date: str | None = None
    submit: bool = True


class TicketUpdateRequest(BaseModel):
    """Fields left out of the payload keep their current value."""

    title: str | None = None
    description: str | None = Field(default=None, max_length=10000)
    type: str | None = None
    category: str | None = None
    department: str | None = None
    priority: str | None = None
    due_date: str | None = None
    project_id: str | None = None


class TicketDecisionRequest(BaseModel):
    decision: Decision
    rejection_reason: str | None = None
    priority: str | None = None
    expected_closure: str | None = None

    @field_validator("decision", mode="before")
    @classmethod
    def _normalise_decision(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value


class CommentCreateRequest(BaseModel):
    content: str
    is_internal: bool = False


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    type: TicketType
    category: TicketCategory
    department: Department | None
    priority: TicketPriority
    due_date: date
    expected_closure: date | None
    project_id: str
    team_id: str
    created_by: str
    status: TicketStatus
    decided_by: str | None
    decided_at: datetime | None
    rejection_reason: str | None
    version: int
    updated_by: str
    created_at: datetime
    updated_at: datetime


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    author_id: str
    content: str
    is_internal: bool
    created_at: datetime


class TicketAuditResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    action: str
    actor: str
    from_status: TicketStatus | None
    to_status: TicketStatus | None
    metadata: dict[str, Any]
    created_at: datetime


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _to_comment_response(comment: Comment) -> CommentResponse:
    return CommentResponse.model_validate(comment)


def _to_audit_response(entry: TicketAuditEntry) -> TicketAuditResponse:
    return TicketAuditResponse.model_validate(entry)


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def propose_ticket(
    payload: TicketCreateRequest,
    service: TicketServiceDep,
    actor: CurrentActor,
) -> TicketResponse:
    draft = TicketDraft(**payload.model_dump())
    ticket = await service.propose(draft, actor)
    return _to_response(ticket)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    service: TicketServiceDep,
    actor: CurrentActor,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[TicketResponse]:
    tickets = await service.list_tickets(actor, status=status_filter, limit=limit, offset=offset)
    return [_to_response(ticket) for ticket in tickets]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, service: TicketServiceDep, actor: CurrentActor) -> TicketResponse:
    return _to_response(await service.get_ticket(ticket_id, actor))


@router.put("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdateRequest,
    service: TicketServiceDep,
    actor: CurrentActor,
) -> TicketResponse:
    changes = TicketChanges(**payload.model_dump())
    return _to_response(await service.update(ticket_id, changes, actor))


@router.post("/{ticket_id}/submit", response_model=TicketResponse)
async def submit_ticket(ticket_id: str, service: TicketServiceDep, actor: CurrentActor) -> TicketResponse:
    return _to_response(await service.submit(ticket_id, actor))


@router.post("/{ticket_id}/decision", response_model=TicketResponse)
async def decide_ticket(
    ticket_id: str,
    payload: TicketDecisionRequest,
    engine: WorkflowEngineDep,
    actor: CurrentActor,
) -> TicketResponse:
    metadata = DecisionMetadata(
        rejection_reason=payload.rejection_reason,
        priority=payload.priority,
        expected_closure=payload.expected_closure,
    )
    ticket = await engine.decide(ticket_id, payload.decision, actor, metadata)
    return _to_response(ticket)


@router.post("/{ticket_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    ticket_id: str,
    payload: CommentCreateRequest,
    service: TicketServiceDep,
    actor: CurrentActor,
) -> CommentResponse:
    comment = await service.add_comment(ticket_id, actor, payload.content, is_internal=payload.is_internal)
    return _to_comment_response(comment)


@router.get("/{ticket_id}/comments", response_model=list[CommentResponse])
async def list_comments(ticket_id: str, service: TicketServiceDep, actor: CurrentActor) -> list[CommentResponse]:
    comments = await service.list_comments(ticket_id, actor)
    return [_to_comment_response(comment) for comment in comments]


@router.get("/{ticket_id}/audit", response_model=list[TicketAuditResponse])
async def get_ticket_audit(
    ticket_id: str, service: TicketServiceDep, actor: CurrentActor
) -> list[TicketAuditResponse]:
    entries = await service.get_audit_log(ticket_id, actor)
    return [_to_audit_response(entry) for entry in entries]
