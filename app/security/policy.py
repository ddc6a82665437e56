"""Single authorization gate consulted by every ticketing operation."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.core.errors import ForbiddenError
from app.directory.models import Actor

from .roles import Action, Role, at_least, required_role

logger = logging.getLogger(__name__)

# Actions whose outcome also depends on which ticket or team is targeted.
_SCOPED_ACTIONS = frozenset(
    {Action.PROPOSE, Action.SUBMIT, Action.UPDATE_TICKET, Action.READ_TICKET, Action.COMMENT}
)
# Actions a caller below admin may only take on tickets it created.
_OWNER_ACTIONS = frozenset({Action.SUBMIT, Action.UPDATE_TICKET})


@dataclass(frozen=True, slots=True)
class TicketContext:
    """Scope of the ticket an action targets."""

    team_id: str
    created_by: str | None = None


class AuthorizationGate:
    """Decide whether an actor may perform an action.

    The role check consults :data:`app.security.roles.MINIMUM_ROLE`; admins
    and above have global scope, team managers act on their managed team,
    users on their own team and their own tickets.
    """

    def can_transition(self, actor: Actor, action: Action, context: TicketContext | None = None) -> bool:
        if not actor.is_active:
            return False
        if not at_least(actor.role, required_role(action)):
            return False
        if action not in _SCOPED_ACTIONS or at_least(actor.role, Role.ADMIN):
            return True
        if context is None:
            return False

        if action in _OWNER_ACTIONS:
            return context.created_by == actor.id
        if action is Action.PROPOSE or actor.role is Role.TEAM_MANAGER:
            return actor.team_id is not None and context.team_id == actor.team_id
        return context.created_by == actor.id or (
            actor.team_id is not None and context.team_id == actor.team_id
        )

    def ensure(self, actor: Actor, action: Action, context: TicketContext | None = None) -> None:
        """Raise :class:`ForbiddenError` unless ``actor`` may perform ``action``."""

        if self.can_transition(actor, action, context):
            return
        logger.info("Denied %s for actor %s with role %s", action.value, actor.id, actor.role.value)
        minimum = required_role(action)
        if not at_least(actor.role, minimum):
            raise ForbiddenError(
                f"Action '{action.value}' requires role {minimum.value} or above; caller has {actor.role.value}"
            )
        raise ForbiddenError(f"Action '{action.value}' is outside the caller's team or ownership scope")

    def can_see_internal(self, actor: Actor) -> bool:
        return self.can_transition(actor, Action.READ_INTERNAL)
