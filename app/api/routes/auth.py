from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict, Field

from app.dependencies.auth import CurrentActor
from app.dependencies.tickets import DirectoryServiceDep
from app.directory.models import Actor, Registration, Team
from app.security.roles import Role

router = APIRouter(prefix="/auth", tags=["auth"])


class SuperAdminRegistrationRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=255)


class AdminRegistrationRequest(SuperAdminRegistrationRequest):
    super_admin_id: str


class UserRegistrationRequest(SuperAdminRegistrationRequest):
    team_id: str


class TeamRegistrationRequest(BaseModel):
    team_name: str = Field(..., min_length=3, max_length=100)
    manager_name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=255)


class ActorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    role: Role
    parent_id: str | None
    team_id: str | None
    is_active: bool
    created_at: datetime | None


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    manager_id: str | None
    is_active: bool
    created_at: datetime


class RegistrationResponse(BaseModel):
    actor: ActorResponse
    token: str
    team: TeamResponse | None = None


def actor_response(actor: Actor) -> ActorResponse:
    return ActorResponse.model_validate(actor)


def team_response(team: Team) -> TeamResponse:
    return TeamResponse.model_validate(team)


def _registration_response(registration: Registration) -> RegistrationResponse:
    return RegistrationResponse(
        actor=actor_response(registration.actor),
        token=registration.token,
        team=team_response(registration.team) if registration.team else None,
    )


@router.post("/register/super-admin", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def register_super_admin(
    payload: SuperAdminRegistrationRequest, directory: DirectoryServiceDep
) -> RegistrationResponse:
    registration = await directory.register_super_admin(name=payload.name, email=payload.email)
    return _registration_response(registration)


@router.post("/register/admin", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def register_admin(payload: AdminRegistrationRequest, directory: DirectoryServiceDep) -> RegistrationResponse:
    registration = await directory.register_admin(
        name=payload.name, email=payload.email, super_admin_id=payload.super_admin_id
    )
    return _registration_response(registration)


@router.post("/register/team", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def register_team(payload: TeamRegistrationRequest, directory: DirectoryServiceDep) -> RegistrationResponse:
    registration = await directory.register_team(
        team_name=payload.team_name, manager_name=payload.manager_name, email=payload.email
    )
    return _registration_response(registration)


@router.post("/register/user", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def register_user(payload: UserRegistrationRequest, directory: DirectoryServiceDep) -> RegistrationResponse:
    registration = await directory.register_user(name=payload.name, email=payload.email, team_id=payload.team_id)
    return _registration_response(registration)


@router.get("/me", response_model=ActorResponse)
async def me(actor: CurrentActor) -> ActorResponse:
    return actor_response(actor)
