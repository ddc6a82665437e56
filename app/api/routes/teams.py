from __future__ import annotations

from fastapi import APIRouter

from app.dependencies.auth import AdminActor, CurrentActor
from app.dependencies.tickets import DirectoryServiceDep

from .auth import TeamResponse, team_response
from .users import StatusUpdateRequest

router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("", response_model=list[TeamResponse])
async def list_teams(directory: DirectoryServiceDep, _: CurrentActor) -> list[TeamResponse]:
    return [team_response(team) for team in await directory.list_teams()]


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(team_id: str, directory: DirectoryServiceDep, _: CurrentActor) -> TeamResponse:
    return team_response(await directory.get_team(team_id))


@router.put("/{team_id}/status", response_model=TeamResponse)
async def set_team_status(
    team_id: str,
    payload: StatusUpdateRequest,
    directory: DirectoryServiceDep,
    actor: AdminActor,
) -> TeamResponse:
    return team_response(await directory.set_team_active(actor, team_id, payload.is_active))
