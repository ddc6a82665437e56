from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import ForbiddenError
from app.directory.models import Actor
from app.directory.service import DirectoryService
from app.security.roles import Role, at_least

bearer_scheme = HTTPBearer(auto_error=False)


async def get_directory_service(request: Request) -> DirectoryService:
    service = getattr(request.app.state, "directory_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Directory service is not configured")
    return service


async def get_current_actor(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    directory: Annotated[DirectoryService, Depends(get_directory_service)],
) -> Actor:
    """Resolve the bearer token to the calling actor.

    A missing, unknown or deactivated token raises
    :class:`~app.core.errors.AuthenticationError`, rendered as ``401``.
    """

    cached = getattr(request.state, "actor", None)
    if cached is not None:
        return cached
    actor = await directory.authenticate(credentials.credentials if credentials else None)
    request.state.actor = actor
    return actor


def role_required(role: Role) -> Callable[..., Actor]:
    """Dependency factory ensuring the current actor holds at least ``role``."""

    async def dependency(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        if not at_least(actor.role, role):
            raise ForbiddenError(f"This endpoint requires role {role.value} or above")
        return actor

    return dependency


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
TeamManagerActor = Annotated[Actor, Depends(role_required(Role.TEAM_MANAGER))]
AdminActor = Annotated[Actor, Depends(role_required(Role.ADMIN))]
