from __future__ import annotations

import logging

from app.core.errors import ForbiddenError, NotFoundError
from app.directory.models import Actor

from .models import Notification
from .repository import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationService:
    """Inbox operations for the authenticated recipient."""

    def __init__(self, repository: NotificationRepository) -> None:
        self._repository = repository

    async def list_for(
        self,
        recipient: Actor,
        *,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        return await self._repository.list_for(recipient.id, unread_only=unread_only, limit=limit, offset=offset)

    async def unread_count(self, recipient: Actor) -> int:
        return await self._repository.unread_count(recipient.id)

    async def mark_read(self, notification_id: str, recipient: Actor) -> Notification:
        notification = await self._repository.get(notification_id)
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        if notification.recipient_id != recipient.id:
            raise ForbiddenError("Notifications can only be marked read by their recipient")
        if notification.is_read:
            return notification

        updated = await self._repository.mark_read(notification_id)
        if updated is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        return updated

    async def mark_all_read(self, recipient: Actor) -> int:
        count = await self._repository.mark_all_read(recipient.id)
        logger.debug("Marked %d notification(s) read for %s", count, recipient.id)
        return count
