from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations.

    Every subclass carries a stable machine-readable ``code`` so clients can
    pick a user-facing message without matching on text.
    """

    code = "DOMAIN_ERROR"
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    code = "VALIDATION_ERROR"
    default_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, *, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""

    code = "AUTHENTICATION_FAILED"
    default_message = "Invalid credentials"


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    code = "ACCESS_DENIED"
    default_message = "Insufficient permissions"


class RateLimitedError(DomainError):
    code = "RATE_LIMITED"
    default_message = "Too many requests, please try again later."


class NotFoundError(DomainError):
    code = "NOT_FOUND"
    default_message = "Resource not found"


class BranchNotFound(NotFoundError):
    code = "BRANCH_NOT_FOUND"
    default_message = "Branch not found"


class CounterNotFound(NotFoundError):
    code = "COUNTER_NOT_FOUND"
    default_message = "Counter not found"


class UserNotFound(NotFoundError):
    code = "USER_NOT_FOUND"
    default_message = "User not found"


class TicketNotFound(NotFoundError):
    code = "TICKET_NOT_FOUND"
    default_message = "Queue ticket not found"


class SessionNotFound(NotFoundError):
    code = "SESSION_NOT_FOUND"
    default_message = "Active counter session not found"


class NoWaitingTickets(NotFoundError):
    code = "NO_WAITING_TICKETS"
    default_message = "No customers waiting"


class ConflictError(DomainError):
    code = "CONFLICT"
    default_message = "Request conflicts with the current state"


class CounterOccupied(ConflictError):
    code = "COUNTER_OCCUPIED"
    default_message = "Counter already occupied."


class UserHasActiveSession(ConflictError):
    code = "USER_HAS_ACTIVE_SESSION"
    default_message = "User already has an active counter session."


class CounterBusy(ConflictError):
    code = "COUNTER_BUSY"
    default_message = "Counter already has an active ticket. Complete current service first."


class TicketAlreadyCompleted(ConflictError):
    code = "TICKET_ALREADY_COMPLETED"
    default_message = "Ticket already completed"


class InvalidTicketTransition(ConflictError):
    code = "INVALID_TICKET_TRANSITION"
    default_message = "Ticket cannot change to that status"


class DuplicateError(ConflictError):
    code = "DUPLICATE"
    default_message = "Resource already exists"
