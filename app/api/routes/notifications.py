from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict

from app.dependencies.auth import CurrentActor
from app.dependencies.tickets import NotificationServiceDep
from app.notifications.models import Notification, NotificationPriority, NotificationType

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient_id: str
    ticket_id: str | None
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    is_read: bool
    metadata: dict[str, Any]
    created_at: datetime


class UnreadCountResponse(BaseModel):
    unread: int


class MarkAllReadResponse(BaseModel):
    updated: int


def _to_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse.model_validate(notification)


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    service: NotificationServiceDep,
    actor: CurrentActor,
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[NotificationResponse]:
    notifications = await service.list_for(actor, unread_only=unread_only, limit=limit, offset=offset)
    return [_to_response(item) for item in notifications]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(service: NotificationServiceDep, actor: CurrentActor) -> UnreadCountResponse:
    return UnreadCountResponse(unread=await service.unread_count(actor))


@router.put("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(service: NotificationServiceDep, actor: CurrentActor) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=await service.mark_all_read(actor))


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str, service: NotificationServiceDep, actor: CurrentActor
) -> NotificationResponse:
    return _to_response(await service.mark_read(notification_id, actor))
