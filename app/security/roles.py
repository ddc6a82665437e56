"""Role hierarchy and the action -> minimum role table."""

from __future__ import annotations

from enum import Enum
from typing import Mapping


class Role(str, Enum):
    """Supported roles, declared from least to most authority."""

    USER = "user"
    TEAM_MANAGER = "team_manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @property
    def rank(self) -> int:
        return ROLE_ORDER.index(self)


# Ascending authority. Every role appears exactly once, so the order is total.
ROLE_ORDER: tuple[Role, ...] = (
    Role.USER,
    Role.TEAM_MANAGER,
    Role.ADMIN,
    Role.SUPER_ADMIN,
)


class Action(str, Enum):
    """Actions guarded by the authorization gate."""

    PROPOSE = "propose"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    UPDATE_TICKET = "update_ticket"
    COMMENT = "comment"
    READ_INTERNAL = "read_internal"
    READ_TICKET = "read_ticket"
    LIST_USERS = "list_users"
    MANAGE_DIRECTORY = "manage_directory"
    CREATE_PROJECT = "create_project"


MINIMUM_ROLE: Mapping[Action, Role] = {
    Action.PROPOSE: Role.USER,
    Action.SUBMIT: Role.USER,
    Action.APPROVE: Role.ADMIN,
    Action.REJECT: Role.ADMIN,
    Action.UPDATE_TICKET: Role.USER,
    Action.COMMENT: Role.USER,
    Action.READ_INTERNAL: Role.ADMIN,
    Action.READ_TICKET: Role.USER,
    Action.LIST_USERS: Role.ADMIN,
    Action.MANAGE_DIRECTORY: Role.ADMIN,
    Action.CREATE_PROJECT: Role.TEAM_MANAGER,
}


def outranks(first: Role, second: Role) -> bool:
    """Return ``True`` when ``first`` has strictly more authority than ``second``."""

    return first.rank > second.rank


def at_least(role: Role, minimum: Role) -> bool:
    return role.rank >= minimum.rank


def required_role(action: Action) -> Role:
    return MINIMUM_ROLE[action]


def roles_at_least(minimum: Role) -> tuple[Role, ...]:
    """Roles with at least the authority of ``minimum``, highest first."""

    return tuple(role for role in reversed(ROLE_ORDER) if at_least(role, minimum))
