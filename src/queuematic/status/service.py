from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Optional, TypeVar

from ..branches.repository import BranchRepository
from ..common.datetime_utils import isoformat, now_local
from ..common.validators import require_positive_int
from ..core.constants import (
    DEFAULT_SERVICE_SECONDS,
    DISPLAY_WAITING_LIMIT,
    RECENT_COMPLETED_DISPLAY_LIMIT,
    RECENT_COMPLETED_STATUS_LIMIT,
)
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, BranchNotFound
from ..tickets.service import estimate_wait_minutes
from ..users.model import User
from .model import StatusCounts, TicketView
from .repository import StatusRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


def ticket_payload(t: TicketView) -> dict:
    return {
        "id": t.ticket_id,
        "number": t.number,
        "status": t.status.value,
        "counterId": t.counter_id,
        "counterNumber": t.counter_number,
        "createdAt": isoformat(t.created_at),
        "calledAt": isoformat(t.called_at),
        "completedAt": isoformat(t.completed_at),
        "serviceDuration": t.duration_seconds,
    }


class StatusService:
    """Read-only snapshots for the customer, clerk and display screens.

    These feed polling UIs, so a failing sub-query is logged and replaced by
    an empty list or zero instead of failing the whole snapshot.
    """

    def __init__(
        self,
        status: StatusRepository,
        branches: BranchRepository,
        *,
        default_service_seconds: int = DEFAULT_SERVICE_SECONDS,
    ):
        self._status = status
        self._branches = branches
        self._default_service_seconds = int(default_service_seconds)

    def _safe(self, label: str, fn: Callable[[], T], default: T) -> T:
        try:
            result = fn()
        except Exception:
            logger.exception("Status query %s failed", label)
            return default
        return default if result is None else result

    def _branch_name(self, branch_id: int) -> Optional[str]:
        try:
            branch = self._branches.get_by_id(branch_id)
        except Exception:
            logger.exception("Branch lookup failed for %s", branch_id)
            return ""
        if not branch or not branch.is_active:
            raise BranchNotFound()
        return branch.name

    def branch_status(self, branch_id, *, now: Optional[datetime] = None) -> dict[str, Any]:
        branch_id = require_positive_int(branch_id, "branchId")
        branch_name = self._branch_name(branch_id)
        today = (now or now_local()).date()

        counts = self._safe("counts", lambda: self._status.count_by_status(branch_id), StatusCounts())
        completed_today = self._safe("completed_today", lambda: self._status.count_completed_on(branch_id, today), 0)
        active_counters = self._safe("active_counters", lambda: self._status.count_active_counters(branch_id), 0)
        avg_seconds = self._safe(
            "avg_service", lambda: self._status.avg_service_seconds(branch_id, today), float(self._default_service_seconds)
        )
        last_called = self._safe("last_called", lambda: self._status.last_called(branch_id), None)
        serving = list(self._safe("currently_serving", lambda: self._status.currently_serving(branch_id), []))
        recent = list(
            self._safe(
                "recent_completed",
                lambda: self._status.recent_completed(branch_id, today, RECENT_COMPLETED_STATUS_LIMIT),
                [],
            )
        )

        avg_seconds = int(round(avg_seconds))
        current_serving = max((t for t in serving if t.called_at), key=lambda t: t.called_at, default=None)

        return {
            "branchId": branch_id,
            "branchName": branch_name,
            "waitingCount": counts.waiting,
            "calledCount": counts.called,
            "servingCount": counts.serving,
            "completedToday": completed_today,
            "currentServingNumber": current_serving.number if current_serving else None,
            "lastCompletedNumber": recent[0].number if recent else None,
            "avgServiceTime": avg_seconds,
            "estimatedWaitMinutes": estimate_wait_minutes(counts.waiting, avg_seconds / 60.0, active_counters),
            "activeCounters": active_counters,
            # Ticket issuance never depends on counters being open.
            "canTakeNumber": True,
            "lastCalled": ticket_payload(last_called) if last_called else None,
            "recentCompleted": [ticket_payload(t) for t in recent],
        }

    def display_snapshot(self, branch_id, *, now: Optional[datetime] = None) -> dict[str, Any]:
        branch_id = require_positive_int(branch_id, "branchId")
        branch_name = self._branch_name(branch_id)
        now = now or now_local()
        today = now.date()

        serving = self._safe("currently_serving", lambda: self._status.currently_serving(branch_id), [])
        waiting = self._safe("waiting_list", lambda: self._status.waiting_list(branch_id, DISPLAY_WAITING_LIMIT), [])
        recent = self._safe(
            "recent_completed",
            lambda: self._status.recent_completed(branch_id, today, RECENT_COMPLETED_DISPLAY_LIMIT),
            [],
        )
        last_called = self._safe("last_called", lambda: self._status.last_called(branch_id), None)
        active_counters = self._safe("active_counters", lambda: self._status.count_active_counters(branch_id), 0)
        completed_today = self._safe("completed_today", lambda: self._status.count_completed_on(branch_id, today), 0)

        return {
            "branchId": branch_id,
            "branchName": branch_name,
            "currentlyServing": [ticket_payload(t) for t in serving],
            "waitingQueue": [ticket_payload(t) for t in waiting],
            "lastCalled": ticket_payload(last_called) if last_called else None,
            "recentCompleted": [ticket_payload(t) for t in recent],
            "activeCounters": active_counters,
            "completedToday": completed_today,
            "timestamp": isoformat(now),
        }

    def work_history(self, *, viewer: User, user_id, day: Optional[date] = None) -> dict[str, Any]:
        user_id = require_positive_int(user_id, "userId")
        if viewer.role != Role.ADMIN and viewer.user_id != user_id:
            raise AuthorizationError("You can only view your own work history")

        day = day or now_local().date()
        tickets = list(self._safe("completed_by_user", lambda: self._status.completed_by_user(user_id, day), []))

        durations = [d for d in (t.duration_seconds for t in tickets) if d is not None]
        total = sum(durations)
        completions = [t.completed_at for t in tickets if t.completed_at]

        return {
            "userId": user_id,
            "date": day.isoformat(),
            "tickets": [ticket_payload(t) for t in tickets],
            "stats": {
                "totalCompleted": len(tickets),
                "avgServiceTime": int(round(total / len(durations))) if durations else 0,
                "totalServiceTime": total,
                "firstCompletion": isoformat(min(completions)) if completions else None,
                "lastCompletion": isoformat(max(completions)) if completions else None,
            },
        }
