from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import ActiveSession, Counter, CounterOverview, CounterSession, LastUsedCounter


class CounterRepository(Protocol):
    def get_by_id(self, counter_id: int) -> Optional[Counter]:
        raise NotImplementedError

    def get_by_branch_and_number(self, branch_id: int, number: int) -> Optional[Counter]:
        raise NotImplementedError

    def list_overview(self, branch_id: int) -> Sequence[CounterOverview]:
        raise NotImplementedError

    def list_available(self, branch_id: int) -> Sequence[Counter]:
        raise NotImplementedError

    def create(self, *, branch_id: int, number: int) -> int:
        raise NotImplementedError

    def update(self, counter_id: int, *, number: Optional[int] = None, is_active: Optional[bool] = None) -> bool:
        raise NotImplementedError

    def delete(self, counter_id: int) -> bool:
        raise NotImplementedError

    def count_tickets(self, counter_id: int) -> int:
        raise NotImplementedError


class CounterSessionRepository(Protocol):
    def open_session(self, *, counter_id: int, user_id: int, started_at: datetime) -> int:
        """Insert an open session.

        Must check, inside the same transaction as the insert, that neither
        the counter nor the user already has an open session, raising
        ``CounterOccupied`` / ``UserHasActiveSession`` otherwise.
        """

        raise NotImplementedError

    def close_session(self, session_id: int, *, ended_at: datetime) -> bool:
        raise NotImplementedError

    def get_open_by_id(self, session_id: int) -> Optional[CounterSession]:
        raise NotImplementedError

    def get_open_for_counter(self, counter_id: int) -> Optional[CounterSession]:
        raise NotImplementedError

    def get_open_for_user(self, user_id: int) -> Optional[CounterSession]:
        raise NotImplementedError

    def get_active_view(self, user_id: int) -> Optional[ActiveSession]:
        raise NotImplementedError

    def get_last_closed_for_user(self, user_id: int) -> Optional[LastUsedCounter]:
        raise NotImplementedError
