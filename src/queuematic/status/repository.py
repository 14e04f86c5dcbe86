from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import StatusCounts, TicketView


class StatusRepository(Protocol):
    """Read-only aggregate queries over counters, sessions and the queue."""

    def count_by_status(self, branch_id: int) -> StatusCounts:
        raise NotImplementedError

    def count_completed_on(self, branch_id: int, day: date) -> int:
        raise NotImplementedError

    def count_active_counters(self, branch_id: int) -> int:
        """Distinct active counters with an open session."""
        raise NotImplementedError

    def avg_service_seconds(self, branch_id: int, day: date) -> Optional[float]:
        raise NotImplementedError

    def last_called(self, branch_id: int) -> Optional[TicketView]:
        raise NotImplementedError

    def currently_serving(self, branch_id: int) -> Sequence[TicketView]:
        raise NotImplementedError

    def waiting_list(self, branch_id: int, limit: int) -> Sequence[TicketView]:
        raise NotImplementedError

    def recent_completed(self, branch_id: int, day: date, limit: int) -> Sequence[TicketView]:
        raise NotImplementedError

    def completed_by_user(self, user_id: int, day: date) -> Sequence[TicketView]:
        raise NotImplementedError
