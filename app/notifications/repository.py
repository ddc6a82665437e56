from __future__ import annotations

from datetime import timezone

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from packages.db.models import NotificationTable

from .models import Notification, NotificationPriority, NotificationType


class NotificationRepository:
    """Persistence for per-recipient notifications.

    :meth:`deliver` doubles as the default notification sink: it writes the
    row in its own transaction so one recipient's failure never touches
    another's.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def deliver(self, notification: Notification) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    NotificationTable(
                        id=notification.id,
                        recipient_id=notification.recipient_id,
                        ticket_id=notification.ticket_id,
                        type=notification.type.value,
                        title=notification.title,
                        message=notification.message,
                        priority=notification.priority.value,
                        is_read=notification.is_read,
                        metadata_=dict(notification.metadata),
                        created_at=notification.created_at,
                    )
                )
        return True

    async def get(self, notification_id: str) -> Notification | None:
        async with self._session_factory() as session:
            row = await session.get(NotificationTable, notification_id)
            return None if row is None else self._table_to_notification(row)

    async def list_for(
        self,
        recipient_id: str,
        *,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        statement = select(NotificationTable).where(NotificationTable.recipient_id == recipient_id)
        if unread_only:
            statement = statement.where(NotificationTable.is_read == False)  # noqa: E712
        statement = statement.order_by(NotificationTable.created_at.desc()).limit(limit).offset(offset)
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [self._table_to_notification(row) for row in result.scalars().all()]

    async def unread_count(self, recipient_id: str) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(NotificationTable)
                .where(NotificationTable.recipient_id == recipient_id)
                .where(NotificationTable.is_read == False)  # noqa: E712
            )
            return int(result.scalar_one())

    async def mark_read(self, notification_id: str) -> Notification | None:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(NotificationTable, notification_id)
                if row is None:
                    return None
                row.is_read = True
            return self._table_to_notification(row)

    async def mark_all_read(self, recipient_id: str) -> int:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(NotificationTable)
                    .where(NotificationTable.recipient_id == recipient_id)
                    .where(NotificationTable.is_read == False)  # noqa: E712
                    .values(is_read=True)
                    .execution_options(synchronize_session=False)
                )
            return int(result.rowcount or 0)

    @staticmethod
    def _table_to_notification(row: NotificationTable) -> Notification:
        created_at = row.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Notification(
            id=row.id,
            recipient_id=row.recipient_id,
            ticket_id=row.ticket_id,
            type=NotificationType(row.type),
            title=row.title,
            message=row.message,
            priority=NotificationPriority(row.priority),
            created_at=created_at,
            is_read=bool(row.is_read),
            metadata=dict(row.metadata_ or {}),
        )
