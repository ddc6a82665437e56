from __future__ import annotations

from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.security.roles import Role
from packages.db.models import ActorTable, ProjectTable, TeamTable

from .models import Actor, Project, Team


class DirectoryRepository:
    """Persistence for actors, teams and projects."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add_actor(self, actor: Actor, *, token_digest: str) -> Actor:
        async with self._session_factory() as session:
            async with session.begin():
                row = self._actor_to_table(actor, token_digest)
                session.add(row)
        return self._table_to_actor(row)

    async def create_team_with_manager(self, team: Team, manager: Actor, *, token_digest: str) -> tuple[Team, Actor]:
        async with self._session_factory() as session:
            async with session.begin():
                team_row = TeamTable(
                    id=team.id,
                    name=team.name,
                    manager_id=None,
                    is_active=team.is_active,
                    created_at=team.created_at,
                )
                session.add(team_row)
                await session.flush()
                manager_row = self._actor_to_table(manager, token_digest)
                session.add(manager_row)
                await session.flush()
                team_row.manager_id = manager_row.id
        return self._table_to_team(team_row), self._table_to_actor(manager_row)

    async def get_actor(self, actor_id: str) -> Actor | None:
        async with self._session_factory() as session:
            row = await session.get(ActorTable, actor_id)
            return None if row is None else self._table_to_actor(row)

    async def get_actors(self, actor_ids: Iterable[str]) -> dict[str, Actor]:
        ids = list(dict.fromkeys(actor_ids))
        if not ids:
            return {}
        async with self._session_factory() as session:
            result = await session.execute(select(ActorTable).where(ActorTable.id.in_(ids)))
            return {row.id: self._table_to_actor(row) for row in result.scalars().all()}

    async def get_actor_by_token_digest(self, token_digest: str) -> Actor | None:
        async with self._session_factory() as session:
            result = await session.execute(select(ActorTable).where(ActorTable.token_digest == token_digest))
            row = result.scalar_one_or_none()
            return None if row is None else self._table_to_actor(row)

    async def email_exists(self, email: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(select(ActorTable.id).where(ActorTable.email == email))
            return result.first() is not None

    async def list_actors(self, *, roles: Sequence[Role] | None = None, active_only: bool = False) -> list[Actor]:
        statement = select(ActorTable).order_by(ActorTable.created_at.asc())
        if roles:
            statement = statement.where(ActorTable.role.in_([role.value for role in roles]))
        if active_only:
            statement = statement.where(ActorTable.is_active == True)  # noqa: E712
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [self._table_to_actor(row) for row in result.scalars().all()]

    async def set_actor_active(self, actor_id: str, is_active: bool) -> Actor | None:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(ActorTable, actor_id)
                if row is None:
                    return None
                row.is_active = is_active
            return self._table_to_actor(row)

    async def get_team(self, team_id: str) -> Team | None:
        async with self._session_factory() as session:
            row = await session.get(TeamTable, team_id)
            return None if row is None else self._table_to_team(row)

    async def set_team_active(self, team_id: str, is_active: bool) -> Team | None:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(TeamTable, team_id)
                if row is None:
                    return None
                row.is_active = is_active
            return self._table_to_team(row)

    async def team_name_exists(self, name: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(select(TeamTable.id).where(TeamTable.name == name))
            return result.first() is not None

    async def list_teams(self) -> list[Team]:
        async with self._session_factory() as session:
            result = await session.execute(select(TeamTable).order_by(TeamTable.name.asc()))
            return [self._table_to_team(row) for row in result.scalars().all()]

    async def add_project(self, project: Project) -> Project:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    ProjectTable(
                        id=project.id,
                        name=project.name,
                        code=project.code,
                        description=project.description,
                        created_by=project.created_by,
                        created_at=project.created_at,
                    )
                )
        return project

    async def get_project(self, project_id: str) -> Project | None:
        async with self._session_factory() as session:
            row = await session.get(ProjectTable, project_id)
            return None if row is None else self._table_to_project(row)

    async def project_code_exists(self, code: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(select(ProjectTable.id).where(ProjectTable.code == code))
            return result.first() is not None

    async def list_projects(self) -> list[Project]:
        async with self._session_factory() as session:
            result = await session.execute(select(ProjectTable).order_by(ProjectTable.created_at.desc()))
            return [self._table_to_project(row) for row in result.scalars().all()]

    @staticmethod
    def _actor_to_table(actor: Actor, token_digest: str) -> ActorTable:
        row = ActorTable(
            id=actor.id,
            name=actor.name,
            email=actor.email,
            role=actor.role.value,
            parent_id=actor.parent_id,
            token_digest=token_digest,
            is_active=actor.is_active,
        )
        if actor.created_at is not None:
            row.created_at = actor.created_at
        return row

    @staticmethod
    def _table_to_actor(row: ActorTable) -> Actor:
        return Actor(
            id=row.id,
            name=row.name,
            email=row.email,
            role=Role(row.role),
            parent_id=row.parent_id,
            is_active=bool(row.is_active),
            created_at=row.created_at,
        )

    @staticmethod
    def _table_to_team(row: TeamTable) -> Team:
        return Team(
            id=row.id,
            name=row.name,
            manager_id=row.manager_id,
            is_active=bool(row.is_active),
            created_at=row.created_at,
        )

    @staticmethod
    def _table_to_project(row: ProjectTable) -> Project:
        return Project(
            id=row.id,
            name=row.name,
            code=row.code,
            description=row.description,
            created_by=row.created_by,
            created_at=row.created_at,
        )
