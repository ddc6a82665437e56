"""SQLModel table definitions for the ticketing data layer."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class ActorTable(SQLModel, table=True):
    """Accounts of every role; ``parent_id`` binds an actor to its parent."""

    __tablename__ = "actors"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(100), nullable=False))
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    role: str = Field(sa_column=Column(String(50), nullable=False, index=True))
    parent_id: str | None = Field(default=None, sa_column=Column(String(36), nullable=True, index=True))
    token_digest: str = Field(sa_column=Column(String(64), nullable=False, unique=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TeamTable(SQLModel, table=True):
    """Teams; the manager account is created together with the team."""

    __tablename__ = "teams"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(100), nullable=False, unique=True))
    manager_id: str | None = Field(
        default=None,
        sa_column=Column(String(36), ForeignKey("actors.id", ondelete="SET NULL"), nullable=True),
    )
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class ProjectTable(SQLModel, table=True):
    """Projects tickets are filed against."""

    __tablename__ = "projects"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(100), nullable=False))
    code: str = Field(sa_column=Column(String(20), nullable=False, unique=True))
    description: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    created_by: str = Field(sa_column=Column(String(36), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketTable(SQLModel, table=True):
    """Ticket records moving through the approval workflow."""

    __tablename__ = "tickets"

    id: str = Field(primary_key=True, index=True)
    title: str = Field(sa_column=Column(String(200), nullable=False))
    description: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    type: str = Field(sa_column=Column(String(50), nullable=False))
    category: str = Field(sa_column=Column(String(50), nullable=False))
    department: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    priority: str = Field(sa_column=Column(String(20), nullable=False))
    due_date: date = Field(sa_column=Column(Date, nullable=False))
    expected_closure: date | None = Field(default=None, sa_column=Column(Date, nullable=True))
    project_id: str = Field(
        sa_column=Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    )
    team_id: str = Field(sa_column=Column(String(36), ForeignKey("teams.id"), nullable=False, index=True))
    created_by: str = Field(sa_column=Column(String(36), nullable=False, index=True))
    status: str = Field(sa_column=Column(String(20), nullable=False, index=True))
    decided_by: str | None = Field(default=None, sa_column=Column(String(36), nullable=True))
    decided_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    rejection_reason: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    version: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    updated_by: str = Field(sa_column=Column(String(36), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketCommentTable(SQLModel, table=True):
    """Immutable comments attached to a ticket."""

    __tablename__ = "ticket_comments"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    author_id: str = Field(sa_column=Column(String(36), nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))
    is_internal: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketAuditLogTable(SQLModel, table=True):
    """Audit trail describing discrete ticket actions."""

    __tablename__ = "ticket_audit_logs"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    action: str = Field(sa_column=Column(String(100), nullable=False))
    actor: str = Field(sa_column=Column(String(36), nullable=False))
    from_status: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    to_status: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    metadata_: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class NotificationTable(SQLModel, table=True):
    """Per-recipient notifications produced by workflow events."""

    __tablename__ = "notifications"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    recipient_id: str = Field(sa_column=Column(String(36), nullable=False, index=True))
    ticket_id: str | None = Field(
        default=None,
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=True),
    )
    type: str = Field(sa_column=Column(String(50), nullable=False))
    title: str = Field(sa_column=Column(String(200), nullable=False))
    message: str = Field(sa_column=Column(Text, nullable=False))
    priority: str = Field(default="medium", sa_column=Column(String(20), nullable=False, default="medium"))
    is_read: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    metadata_: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
