from __future__ import annotations

import hashlib
import logging
import re
import secrets
import uuid
from datetime import datetime, timezone

from app.core.errors import AuthenticationError, ForbiddenError, NotFoundError, ValidationError
from app.security.policy import AuthorizationGate
from app.security.roles import Action, Role, outranks

from .models import Actor, Project, Registration, Team
from .repository import DirectoryRepository

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PROJECT_CODE_RE = re.compile(r"^[A-Z0-9][A-Z0-9_-]{1,19}$")


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _clean_name(value: str, field_name: str, *, min_length: int = 2, max_length: int = 100) -> str:
    cleaned = (value or "").strip()
    if not min_length <= len(cleaned) <= max_length:
        raise ValidationError(f"{field_name} must be between {min_length} and {max_length} characters")
    return cleaned


def _clean_email(value: str) -> str:
    cleaned = (value or "").strip().lower()
    if not _EMAIL_RE.match(cleaned):
        raise ValidationError(f"Invalid email address: {value!r}")
    return cleaned


class DirectoryService:
    """Registration, authentication and lookups for actors, teams and projects.

    Registration enforces the role hierarchy bindings: an admin is bound to an
    existing super admin, a user to an existing team, and a team manager is
    created together with the team it manages. Bindings never change later.
    """

    def __init__(self, repository: DirectoryRepository, *, gate: AuthorizationGate | None = None) -> None:
        self._repository = repository
        self._gate = gate or AuthorizationGate()

    async def register_super_admin(self, *, name: str, email: str) -> Registration:
        return await self._register(name=name, email=email, role=Role.SUPER_ADMIN, parent_id=None)

    async def register_admin(self, *, name: str, email: str, super_admin_id: str) -> Registration:
        parent = await self._repository.get_actor(super_admin_id)
        if parent is None or parent.role is not Role.SUPER_ADMIN:
            raise NotFoundError(f"Super admin {super_admin_id} not found")
        return await self._register(name=name, email=email, role=Role.ADMIN, parent_id=parent.id)

    async def register_user(self, *, name: str, email: str, team_id: str) -> Registration:
        team = await self._repository.get_team(team_id)
        if team is None:
            raise NotFoundError(f"Team {team_id} not found")
        if not team.is_active:
            raise ValidationError(f"Team {team_id} is not active")
        return await self._register(name=name, email=email, role=Role.USER, parent_id=team.id)

    async def register_team(self, *, team_name: str, manager_name: str, email: str) -> Registration:
        team_name = _clean_name(team_name, "team_name", min_length=3)
        manager_name = _clean_name(manager_name, "manager_name")
        email = _clean_email(email)
        if await self._repository.team_name_exists(team_name):
            raise ValidationError(f"Team {team_name!r} already exists")
        if await self._repository.email_exists(email):
            raise ValidationError(f"An account with email {email} already exists")

        now = datetime.now(timezone.utc)
        team = Team(id=str(uuid.uuid4()), name=team_name, manager_id=None, is_active=True, created_at=now)
        token = secrets.token_urlsafe(32)
        manager = Actor(
            id=str(uuid.uuid4()),
            name=manager_name,
            email=email,
            role=Role.TEAM_MANAGER,
            parent_id=team.id,
            created_at=now,
        )
        team, manager = await self._repository.create_team_with_manager(team, manager, token_digest=hash_token(token))
        logger.info("Registered team %s managed by %s", team.id, manager.id)
        return Registration(actor=manager, token=token, team=team)

    async def authenticate(self, token: str | None) -> Actor:
        """Resolve a bearer token to its actor."""

        if not token:
            raise AuthenticationError("Access denied. No token provided.")
        actor = await self._repository.get_actor_by_token_digest(hash_token(token))
        if actor is None:
            raise AuthenticationError("Invalid authentication credentials")
        if not actor.is_active:
            raise AuthenticationError("Account is deactivated")
        return actor

    async def get_actor(self, actor_id: str) -> Actor:
        actor = await self._repository.get_actor(actor_id)
        if actor is None:
            raise NotFoundError(f"Actor {actor_id} not found")
        return actor

    async def list_actors(self, caller: Actor, *, role: Role | None = None) -> list[Actor]:
        self._gate.ensure(caller, Action.LIST_USERS)
        return await self._repository.list_actors(roles=[role] if role else None)

    async def set_actor_active(self, caller: Actor, actor_id: str, is_active: bool) -> Actor:
        """Activate or deactivate an account. Deactivated accounts can no longer authenticate."""

        self._gate.ensure(caller, Action.MANAGE_DIRECTORY)
        target = await self.get_actor(actor_id)
        if target.id == caller.id:
            raise ValidationError("Actors cannot change their own status")
        if outranks(target.role, caller.role):
            raise ForbiddenError(f"Cannot change the status of a {target.role.value}")
        updated = await self._repository.set_actor_active(target.id, is_active)
        if updated is None:
            raise NotFoundError(f"Actor {actor_id} not found")
        logger.info("Actor %s %s by %s", updated.id, "activated" if is_active else "deactivated", caller.id)
        return updated

    async def get_team(self, team_id: str) -> Team:
        team = await self._repository.get_team(team_id)
        if team is None:
            raise NotFoundError(f"Team {team_id} not found")
        return team

    async def list_teams(self) -> list[Team]:
        return await self._repository.list_teams()

    async def set_team_active(self, caller: Actor, team_id: str, is_active: bool) -> Team:
        self._gate.ensure(caller, Action.MANAGE_DIRECTORY)
        team = await self._repository.set_team_active(team_id, is_active)
        if team is None:
            raise NotFoundError(f"Team {team_id} not found")
        logger.info("Team %s %s by %s", team.id, "activated" if is_active else "deactivated", caller.id)
        return team

    async def create_project(self, caller: Actor, *, name: str, code: str, description: str = "") -> Project:
        self._gate.ensure(caller, Action.CREATE_PROJECT)
        name = _clean_name(name, "name")
        code = (code or "").strip().upper()
        if not _PROJECT_CODE_RE.match(code):
            raise ValidationError("code must be 2-20 characters of A-Z, 0-9, '_' or '-'")
        if await self._repository.project_code_exists(code):
            raise ValidationError(f"Project code {code} already exists")
        project = Project(
            id=str(uuid.uuid4()),
            name=name,
            code=code,
            description=(description or "").strip(),
            created_by=caller.id,
            created_at=datetime.now(timezone.utc),
        )
        return await self._repository.add_project(project)

    async def get_project(self, project_id: str) -> Project:
        project = await self._repository.get_project(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def list_projects(self) -> list[Project]:
        return await self._repository.list_projects()

    async def _register(self, *, name: str, email: str, role: Role, parent_id: str | None) -> Registration:
        name = _clean_name(name, "name")
        email = _clean_email(email)
        if await self._repository.email_exists(email):
            raise ValidationError(f"An account with email {email} already exists")

        token = secrets.token_urlsafe(32)
        actor = Actor(
            id=str(uuid.uuid4()),
            name=name,
            email=email,
            role=role,
            parent_id=parent_id,
            created_at=datetime.now(timezone.utc),
        )
        stored = await self._repository.add_actor(actor, token_digest=hash_token(token))
        logger.info("Registered %s %s bound to %s", role.value, stored.id, parent_id or "-")
        return Registration(actor=stored, token=token)
