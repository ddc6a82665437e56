"""Role hierarchy and authorization for the ticketing application."""

from .roles import MINIMUM_ROLE, ROLE_ORDER, Action, Role, at_least, outranks, required_role

__all__ = [
    "MINIMUM_ROLE",
    "ROLE_ORDER",
    "Action",
    "Role",
    "at_least",
    "outranks",
    "required_role",
]
