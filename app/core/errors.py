"""Error taxonomy shared by the ticketing services."""

from __future__ import annotations


class TicketingError(RuntimeError):
    """Base error for ticketing operations.

    ``status_code`` is the HTTP status the API layer responds with, ``code`` a
    stable machine readable identifier and ``retryable`` tells clients whether
    repeating the same request can succeed.
    """

    status_code = 400
    code = "error"
    retryable = False


class ValidationError(TicketingError):
    """Raised when input is missing or malformed."""

    status_code = 400
    code = "validation_error"


class AuthenticationError(TicketingError):
    """Raised when the caller could not be authenticated."""

    status_code = 401
    code = "authentication_required"


class ForbiddenError(TicketingError):
    """Raised when the caller's role lacks authority for the action."""

    status_code = 403
    code = "forbidden"


class NotFoundError(TicketingError):
    """Raised when a referenced ticket, actor, team or project does not exist."""

    status_code = 404
    code = "not_found"


class InvalidTransitionError(TicketingError):
    """Raised when a status change is not part of the lifecycle."""

    status_code = 409
    code = "invalid_transition"


class AlreadyDecidedError(InvalidTransitionError):
    """Raised when a decision targets a ticket that is already approved or rejected."""

    code = "already_decided"


class ConflictError(TicketingError):
    """Raised when a concurrent update won the race for the same ticket."""

    status_code = 409
    code = "conflict"
    retryable = True
