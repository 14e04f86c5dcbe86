from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol

from .model import QueueTicket


class TicketRepository(Protocol):
    def create_ticket(self, *, branch_id: int, created_at: datetime) -> QueueTicket:
        """Insert a waiting ticket with the branch's next number for ``created_at``'s day.

        Number allocation and insert happen in one transaction with the branch
        row locked.
        """

        raise NotImplementedError

    def get_by_id(self, ticket_id: int) -> Optional[QueueTicket]:
        raise NotImplementedError

    def get_active_for_counter(self, counter_id: int) -> Optional[QueueTicket]:
        raise NotImplementedError

    def claim_next_waiting(
        self,
        *,
        branch_id: int,
        counter_id: int,
        session_id: int,
        called_at: datetime,
    ) -> Optional[QueueTicket]:
        """Atomically move the oldest waiting ticket of the branch to ``called``.

        Order is ``created_at`` then ``number``. Raises ``CounterBusy`` when the
        counter already holds a called/serving ticket. Returns None when nobody
        is waiting.
        """

        raise NotImplementedError

    def mark_serving(self, ticket_id: int, *, at: datetime) -> bool:
        raise NotImplementedError

    def mark_completed(self, ticket_id: int, *, at: datetime, service_duration: Optional[int]) -> bool:
        raise NotImplementedError

    def delete_waiting(self, ticket_id: int) -> bool:
        raise NotImplementedError

    def cancel_waiting_before(self, before: date) -> int:
        raise NotImplementedError

    def purge_completed_before(self, before: date) -> int:
        raise NotImplementedError
