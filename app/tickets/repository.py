from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any, Mapping, Sequence

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from packages.db.models import TicketAuditLogTable, TicketCommentTable, TicketTable

from .models import (
    Comment,
    Department,
    Ticket,
    TicketAuditEntry,
    TicketCategory,
    TicketPriority,
    TicketType,
)
from .state import TicketStatus


class TicketRepository:
    """Persistence helper wrapping `tickets`, `ticket_comments` and audit logs.

    Writes are version checked: :meth:`transition` only updates a row whose
    ``version`` and status still match what the caller loaded.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_ticket(self, ticket: Ticket, audit: TicketAuditEntry) -> Ticket:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    TicketTable(
                        id=ticket.id,
                        title=ticket.title,
                        description=ticket.description,
                        type=ticket.type.value,
                        category=ticket.category.value,
                        department=ticket.department.value if ticket.department else None,
                        priority=ticket.priority.value,
                        due_date=ticket.due_date,
                        expected_closure=ticket.expected_closure,
                        project_id=ticket.project_id,
                        team_id=ticket.team_id,
                        created_by=ticket.created_by,
                        status=ticket.status.value,
                        decided_by=ticket.decided_by,
                        decided_at=ticket.decided_at,
                        rejection_reason=ticket.rejection_reason,
                        version=ticket.version,
                        updated_by=ticket.updated_by,
                        created_at=ticket.created_at,
                        updated_at=ticket.updated_at,
                    )
                )
                session.add(self._audit_to_table(audit))
        return ticket

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            return None if row is None else self._table_to_ticket(row)

    async def list_tickets(
        self,
        *,
        status: TicketStatus | None = None,
        team_id: str | None = None,
        created_by: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Ticket]:
        statement = select(TicketTable)
        if status is not None:
            statement = statement.where(TicketTable.status == status.value)
        if team_id is not None and created_by is not None:
            statement = statement.where(
                (TicketTable.team_id == team_id) | (TicketTable.created_by == created_by)
            )
        elif team_id is not None:
            statement = statement.where(TicketTable.team_id == team_id)
        elif created_by is not None:
            statement = statement.where(TicketTable.created_by == created_by)
        statement = statement.order_by(TicketTable.created_at.desc()).limit(limit).offset(offset)
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [self._table_to_ticket(row) for row in result.scalars().all()]

    async def transition(
        self,
        ticket_id: str,
        *,
        expected_version: int,
        from_statuses: Sequence[TicketStatus],
        values: Mapping[str, Any],
        audit: TicketAuditEntry,
    ) -> Ticket | None:
        """Apply ``values`` and record ``audit`` in one transaction.

        Returns ``None`` when the row changed since it was read (different
        version or status), in which case nothing is written.
        """

        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(TicketTable)
                    .where(TicketTable.id == ticket_id)
                    .where(TicketTable.version == expected_version)
                    .where(TicketTable.status.in_([status.value for status in from_statuses]))
                    .values(version=expected_version + 1, **values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    return None
                session.add(self._audit_to_table(audit))
            row = await session.get(TicketTable, ticket_id, populate_existing=True)
            return None if row is None else self._table_to_ticket(row)

    async def add_comment(self, comment: Comment, audit: TicketAuditEntry) -> Comment:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    TicketCommentTable(
                        id=comment.id,
                        ticket_id=comment.ticket_id,
                        author_id=comment.author_id,
                        content=comment.content,
                        is_internal=comment.is_internal,
                        created_at=comment.created_at,
                    )
                )
                session.add(self._audit_to_table(audit))
        return comment

    async def list_comments(self, ticket_id: str, *, include_internal: bool = True) -> list[Comment]:
        statement = select(TicketCommentTable).where(TicketCommentTable.ticket_id == ticket_id)
        if not include_internal:
            statement = statement.where(TicketCommentTable.is_internal == False)  # noqa: E712
        statement = statement.order_by(TicketCommentTable.created_at.asc())
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [self._table_to_comment(row) for row in result.scalars().all()]

    async def get_audit_log(self, ticket_id: str) -> list[TicketAuditEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketAuditLogTable)
                .where(TicketAuditLogTable.ticket_id == ticket_id)
                .order_by(TicketAuditLogTable.created_at.asc())
            )
            return [self._table_to_audit(row) for row in result.scalars().all()]

    @staticmethod
    def _audit_to_table(audit: TicketAuditEntry) -> TicketAuditLogTable:
        return TicketAuditLogTable(
            id=audit.id or str(uuid.uuid4()),
            ticket_id=audit.ticket_id,
            action=audit.action,
            actor=audit.actor,
            from_status=audit.from_status.value if audit.from_status else None,
            to_status=audit.to_status.value if audit.to_status else None,
            metadata_=dict(audit.metadata),
            created_at=audit.created_at,
        )

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            title=row.title,
            description=row.description or "",
            type=TicketType(row.type),
            category=TicketCategory(row.category),
            department=Department(row.department) if row.department else None,
            priority=TicketPriority(row.priority),
            due_date=_ensure_date(row.due_date),
            expected_closure=_ensure_date(row.expected_closure) if row.expected_closure else None,
            project_id=row.project_id,
            team_id=row.team_id,
            created_by=row.created_by,
            status=TicketStatus(row.status),
            decided_by=row.decided_by,
            decided_at=_ensure_datetime(row.decided_at) if row.decided_at else None,
            rejection_reason=row.rejection_reason,
            version=int(row.version),
            updated_by=row.updated_by,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
        )

    @staticmethod
    def _table_to_comment(row: TicketCommentTable) -> Comment:
        return Comment(
            id=row.id,
            ticket_id=row.ticket_id,
            author_id=row.author_id,
            content=row.content,
            is_internal=bool(row.is_internal),
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_audit(row: TicketAuditLogTable) -> TicketAuditEntry:
        from_status = row.from_status
        to_status = row.to_status
        return TicketAuditEntry(
            id=row.id,
            ticket_id=row.ticket_id,
            action=row.action,
            actor=row.actor,
            from_status=TicketStatus(from_status) if from_status else None,
            to_status=TicketStatus(to_status) if to_status else None,
            metadata=dict(row.metadata_ or {}),
            created_at=_ensure_datetime(row.created_at),
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")


def _ensure_date(value: date | datetime | None) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError("Expected date value from database")
