from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import TicketStatus


@dataclass(frozen=True)
class Counter:
    """Domain entity: a numbered service window of one branch."""

    counter_id: int
    branch_id: int
    number: int
    is_active: bool = True
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class CounterSession:
    """One clerk occupying one counter. ``end_time is None`` means open."""

    session_id: int
    counter_id: int
    user_id: int
    start_time: datetime
    end_time: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None


@dataclass(frozen=True)
class CurrentTicket:
    ticket_id: int
    number: int
    status: TicketStatus
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ActiveSession:
    """Read model for "resume where I left off"."""

    session_id: int
    counter_id: int
    counter_number: int
    branch_id: int
    branch_name: str
    start_time: datetime
    current_ticket: Optional[CurrentTicket] = None


@dataclass(frozen=True)
class LastUsedCounter:
    counter_id: int
    counter_number: int
    branch_id: int
    branch_name: str
    last_used: datetime
    is_active: bool = True


@dataclass(frozen=True)
class CounterOverview:
    """Counter plus its occupant and the ticket it is serving, if any."""

    counter: Counter
    session_id: Optional[int] = None
    user_id: Optional[int] = None
    clerk_username: Optional[str] = None
    start_time: Optional[datetime] = None
    current_ticket: Optional[CurrentTicket] = None
