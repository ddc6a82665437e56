from __future__ import annotations

from fastapi import APIRouter, Query
from pydantic import BaseModel

from app.dependencies.auth import AdminActor
from app.dependencies.tickets import DirectoryServiceDep
from app.security.roles import Role

from .auth import ActorResponse, actor_response

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[ActorResponse])
async def list_users(
    directory: DirectoryServiceDep,
    actor: AdminActor,
    role: Role | None = Query(default=None),
) -> list[ActorResponse]:
    actors = await directory.list_actors(actor, role=role)
    return [actor_response(item) for item in actors]


class StatusUpdateRequest(BaseModel):
    is_active: bool


@router.put("/{actor_id}/status", response_model=ActorResponse)
async def set_user_status(
    actor_id: str,
    payload: StatusUpdateRequest,
    directory: DirectoryServiceDep,
    actor: AdminActor,
) -> ActorResponse:
    return actor_response(await directory.set_actor_active(actor, actor_id, payload.is_active))
