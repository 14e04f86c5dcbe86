from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import TicketStatus


@dataclass(frozen=True)
class QueueTicket:
    """Domain entity: one customer's place in line."""

    ticket_id: int
    branch_id: int
    number: int
    status: TicketStatus
    created_at: datetime
    called_at: Optional[datetime] = None
    serving_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    counter_id: Optional[int] = None
    counter_session_id: Optional[int] = None
    service_duration: Optional[int] = None
    counter_number: Optional[int] = None
    # owner of counter_session_id
    clerk_user_id: Optional[int] = None
