from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict, Field

from app.dependencies.auth import CurrentActor, TeamManagerActor
from app.dependencies.tickets import DirectoryServiceDep

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    code: str = Field(..., min_length=2, max_length=20)
    description: str = Field(default="", max_length=2000)


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    code: str
    description: str
    created_by: str
    created_at: datetime


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreateRequest, directory: DirectoryServiceDep, actor: TeamManagerActor
) -> ProjectResponse:
    project = await directory.create_project(
        actor, name=payload.name, code=payload.code, description=payload.description
    )
    return ProjectResponse.model_validate(project)


@router.get("", response_model=list[ProjectResponse])
async def list_projects(directory: DirectoryServiceDep, _: CurrentActor) -> list[ProjectResponse]:
    return [ProjectResponse.model_validate(project) for project in await directory.list_projects()]


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, directory: DirectoryServiceDep, _: CurrentActor) -> ProjectResponse:
    return ProjectResponse.model_validate(await directory.get_project(project_id))
