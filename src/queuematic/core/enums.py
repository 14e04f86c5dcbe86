from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for authorization."""

    ADMIN = "admin"
    CLERK = "clerk"


class TicketStatus(str, Enum):
    """Queue ticket states as stored in the `queue` table."""

    WAITING = "waiting"
    CALLED = "called"
    SERVING = "serving"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        """Claimed by a counter and not finished yet."""
        return self in (TicketStatus.CALLED, TicketStatus.SERVING)


# waiting -> called -> serving -> completed; serving may be skipped.
ALLOWED_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.WAITING: frozenset({TicketStatus.CALLED, TicketStatus.CANCELLED}),
    TicketStatus.CALLED: frozenset({TicketStatus.SERVING, TicketStatus.COMPLETED}),
    TicketStatus.SERVING: frozenset({TicketStatus.COMPLETED}),
    TicketStatus.COMPLETED: frozenset(),
    TicketStatus.CANCELLED: frozenset(),
}


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())
