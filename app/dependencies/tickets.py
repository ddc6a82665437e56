from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from app.directory.service import DirectoryService
from app.notifications.service import NotificationService
from app.tickets.service import TicketService
from app.tickets.workflow import WorkflowEngine

from .auth import get_directory_service


def _service(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} is not configured")
    return service


async def get_ticket_service(request: Request) -> TicketService:
    return _service(request, "ticket_service", "Ticket service")


async def get_workflow_engine(request: Request) -> WorkflowEngine:
    return _service(request, "workflow_engine", "Workflow engine")


async def get_notification_service(request: Request) -> NotificationService:
    return _service(request, "notification_service", "Notification service")


DirectoryServiceDep = Annotated[DirectoryService, Depends(get_directory_service)]
TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
WorkflowEngineDep = Annotated[WorkflowEngine, Depends(get_workflow_engine)]
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
