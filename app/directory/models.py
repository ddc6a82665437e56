from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.security.roles import Role


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller or stored account.

    ``parent_id`` is the immutable registration binding: the super admin of an
    admin, the managed team of a team manager, the team of a user.
    """

    id: str
    name: str
    email: str
    role: Role
    parent_id: str | None = None
    is_active: bool = True
    created_at: datetime | None = None

    @property
    def team_id(self) -> str | None:
        if self.role in (Role.USER, Role.TEAM_MANAGER):
            return self.parent_id
        return None


@dataclass(slots=True)
class Team:
    id: str
    name: str
    manager_id: str | None
    is_active: bool
    created_at: datetime


@dataclass(slots=True)
class Project:
    id: str
    name: str
    code: str
    description: str
    created_by: str
    created_at: datetime


@dataclass(slots=True)
class Registration:
    """Result of a registration: the stored actor and its one-time API token."""

    actor: Actor
    token: str
    team: Team | None = None
