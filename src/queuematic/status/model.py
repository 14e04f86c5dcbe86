from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import TicketStatus


@dataclass(frozen=True)
class TicketView:
    """Read model: a ticket as shown on a status board."""

    ticket_id: int
    number: int
    status: TicketStatus
    created_at: Optional[datetime] = None
    called_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    counter_id: Optional[int] = None
    counter_number: Optional[int] = None
    service_duration: Optional[int] = None

    @property
    def duration_seconds(self) -> Optional[int]:
        if self.service_duration is not None:
            return int(self.service_duration)
        if self.called_at and self.completed_at:
            return max(int((self.completed_at - self.called_at).total_seconds()), 0)
        return None


@dataclass(frozen=True)
class StatusCounts:
    waiting: int = 0
    called: int = 0
    serving: int = 0
