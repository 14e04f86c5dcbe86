from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..branches.repository import BranchRepository
from ..common.datetime_utils import now_local
from ..common.validators import require_positive_int
from ..core.enums import Role
from ..core.exceptions import (
    AuthorizationError,
    BranchNotFound,
    ConflictError,
    CounterNotFound,
    CounterOccupied,
    DuplicateError,
    SessionNotFound,
    UserHasActiveSession,
    ValidationError,
)
from ..users.model import User
from .model import ActiveSession, Counter, CounterOverview, CounterSession, LastUsedCounter
from .repository import CounterRepository, CounterSessionRepository

logger = logging.getLogger(__name__)


def _check_branch_access(user: User, branch_id: int) -> None:
    if user.role != Role.ADMIN and user.branch_id != branch_id:
        raise AuthorizationError("Access denied to this branch")


class CounterSessionService:
    """Counter session manager.

    Invariants: at most one open session per counter and per user. Both are
    re-checked by the repository inside the insert transaction.
    """

    def __init__(self, counters: CounterRepository, sessions: CounterSessionRepository):
        self._counters = counters
        self._sessions = sessions

    def start_session(self, *, user: User, counter_id, now: Optional[datetime] = None) -> tuple[CounterSession, Counter]:
        counter_id = require_positive_int(counter_id, "counterId")

        counter = self._counters.get_by_id(counter_id)
        if not counter:
            raise CounterNotFound()
        if not counter.is_active:
            raise ValidationError("Counter is not active", field="counterId")
        _check_branch_access(user, counter.branch_id)

        # Fast path with a precise error; the repository repeats both checks
        # under row locks.
        if self._sessions.get_open_for_counter(counter.counter_id):
            raise CounterOccupied()
        if self._sessions.get_open_for_user(user.user_id):
            raise UserHasActiveSession()

        started_at = now or now_local()
        session_id = self._sessions.open_session(counter_id=counter.counter_id, user_id=user.user_id, started_at=started_at)
        logger.info("User %s opened session %s at counter %s", user.user_id, session_id, counter.counter_id)
        session = CounterSession(
            session_id=session_id,
            counter_id=counter.counter_id,
            user_id=user.user_id,
            start_time=started_at,
        )
        return session, counter

    def end_session(self, *, user: User, session_id, now: Optional[datetime] = None) -> CounterSession:
        session_id = require_positive_int(session_id, "sessionId")

        session = self._sessions.get_open_by_id(session_id)
        if not session:
            raise SessionNotFound()
        if user.role != Role.ADMIN and session.user_id != user.user_id:
            raise AuthorizationError("Access denied to this session")

        ended_at = now or now_local()
        if not self._sessions.close_session(session.session_id, ended_at=ended_at):
            # Closed concurrently (e.g. a logout racing an explicit end).
            raise SessionNotFound()
        logger.info("Session %s at counter %s closed", session.session_id, session.counter_id)
        return CounterSession(
            session_id=session.session_id,
            counter_id=session.counter_id,
            user_id=session.user_id,
            start_time=session.start_time,
            end_time=ended_at,
        )

    def end_open_session_for_user(self, user_id: int, *, now: Optional[datetime] = None) -> Optional[int]:
        """Close whatever session the user still has open (used on logout)."""
        session = self._sessions.get_open_for_user(int(user_id))
        if not session:
            return None
        self._sessions.close_session(session.session_id, ended_at=now or now_local())
        logger.info("Session %s closed on logout of user %s", session.session_id, user_id)
        return session.session_id

    def get_active_session(self, user_id: int) -> Optional[ActiveSession]:
        return self._sessions.get_active_view(int(user_id))

    def get_last_used_counter(self, user_id: int) -> Optional[LastUsedCounter]:
        last = self._sessions.get_last_closed_for_user(int(user_id))
        if not last:
            return None

        counter = self._counters.get_by_id(last.counter_id)
        if not counter or not counter.is_active:
            return None
        if self._sessions.get_open_for_counter(counter.counter_id):
            return None
        return last


class CounterService:
    """Counter listings and admin management."""

    def __init__(self, counters: CounterRepository, sessions: CounterSessionRepository, branches: BranchRepository):
        self._counters = counters
        self._sessions = sessions
        self._branches = branches

    def _require_branch(self, branch_id: int):
        branch = self._branches.get_by_id(int(branch_id))
        if not branch or not branch.is_active:
            raise BranchNotFound()
        return branch

    def list_available(self, *, user: User, branch_id) -> Sequence[Counter]:
        branch_id = require_positive_int(branch_id, "branchId")
        _check_branch_access(user, branch_id)
        return list(self._counters.list_available(branch_id))

    def list_overview(self, *, user: User, branch_id) -> Sequence[CounterOverview]:
        branch_id = require_positive_int(branch_id, "branchId")
        self._require_branch(branch_id)
        _check_branch_access(user, branch_id)
        return list(self._counters.list_overview(branch_id))

    def create_counter(self, *, branch_id, number) -> Counter:
        branch_id = require_positive_int(branch_id, "branchId")
        number = require_positive_int(number, "number")
        self._require_branch(branch_id)

        if self._counters.get_by_branch_and_number(branch_id, number):
            raise DuplicateError("Counter number already exists in this branch")

        counter_id = self._counters.create(branch_id=branch_id, number=number)
        return self._counters.get_by_id(counter_id) or Counter(counter_id=counter_id, branch_id=branch_id, number=number)

    def update_counter(self, counter_id, *, number=None, is_active: Optional[bool] = None) -> Counter:
        counter_id = require_positive_int(counter_id, "counterId")
        existing = self._counters.get_by_id(counter_id)
        if not existing:
            raise CounterNotFound()

        if number is not None:
            number = require_positive_int(number, "number")
            if number != existing.number:
                dup = self._counters.get_by_branch_and_number(existing.branch_id, number)
                if dup and dup.counter_id != existing.counter_id:
                    raise DuplicateError("Counter number already exists in this branch")

        if is_active is False and self._sessions.get_open_for_counter(existing.counter_id):
            raise ConflictError("Cannot deactivate counter with active session")

        self._counters.update(existing.counter_id, number=number, is_active=is_active)
        return self._counters.get_by_id(existing.counter_id) or existing

    def delete_counter(self, counter_id) -> bool:
        """Returns True when hard-deleted, False when only deactivated."""
        counter_id = require_positive_int(counter_id, "counterId")
        existing = self._counters.get_by_id(counter_id)
        if not existing:
            raise CounterNotFound()
        if self._sessions.get_open_for_counter(existing.counter_id):
            raise ConflictError("Cannot delete counter with active session")

        if self._counters.count_tickets(existing.counter_id) > 0:
            self._counters.update(existing.counter_id, is_active=False)
            return False

        self._counters.delete(existing.counter_id)
        return True
