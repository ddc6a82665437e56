from __future__ import annotations

from enum import Enum
from typing import Mapping

from app.core.errors import InvalidTransitionError


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    CREATED = "CREATED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Decision(str, Enum):
    """Outcome requested for a ticket awaiting a decision."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"

    @property
    def target_status(self) -> TicketStatus:
        return TicketStatus.APPROVED if self is Decision.APPROVE else TicketStatus.REJECTED


class TicketStateMachine:
    """Validate ticket lifecycle transitions."""

    _TRANSITIONS: Mapping[TicketStatus, frozenset[TicketStatus]] = {
        TicketStatus.CREATED: frozenset({TicketStatus.PENDING, TicketStatus.APPROVED, TicketStatus.REJECTED}),
        TicketStatus.PENDING: frozenset({TicketStatus.APPROVED, TicketStatus.REJECTED}),
        TicketStatus.APPROVED: frozenset(),
        TicketStatus.REJECTED: frozenset(),
    }

    AWAITING_DECISION: frozenset[TicketStatus] = frozenset({TicketStatus.CREATED, TicketStatus.PENDING})

    @classmethod
    def initial_state(cls, *, submit: bool = True) -> TicketStatus:
        return TicketStatus.PENDING if submit else TicketStatus.CREATED

    @classmethod
    def is_terminal(cls, status: TicketStatus) -> bool:
        return not cls._TRANSITIONS[status]

    @classmethod
    def is_awaiting_decision(cls, status: TicketStatus) -> bool:
        return status in cls.AWAITING_DECISION

    @classmethod
    def can_transition(cls, current: TicketStatus, new: TicketStatus) -> bool:
        return new in cls._TRANSITIONS[current]

    @classmethod
    def assert_transition(cls, current: TicketStatus, new: TicketStatus) -> None:
        if not cls.can_transition(current, new):
            raise InvalidTransitionError(f"Invalid ticket status transition: {current.value} -> {new.value}")
