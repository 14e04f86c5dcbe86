from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..branches.repository import BranchRepository
from ..common.datetime_utils import now_local
from ..common.validators import require_positive_int
from ..core.constants import COMPLETED_RETENTION_DAYS, STALE_WAITING_DAYS
from ..core.enums import Role, TicketStatus, can_transition
from ..core.exceptions import (
    AuthorizationError,
    BranchNotFound,
    CounterNotFound,
    InvalidTicketTransition,
    NoWaitingTickets,
    TicketAlreadyCompleted,
    TicketNotFound,
    ValidationError,
)
from ..counters.repository import CounterRepository, CounterSessionRepository
from ..users.model import User
from .model import QueueTicket
from .repository import TicketRepository

logger = logging.getLogger(__name__)


def estimate_wait_minutes(waiting: int, avg_service_minutes: float, active_counters: int) -> int:
    """ceil(waiting * avg / max(active, 1)).

    With no counter open the estimate assumes a single server.
    """

    if waiting <= 0:
        return 0
    return int(math.ceil(waiting * avg_service_minutes / max(int(active_counters), 1)))


@dataclass(frozen=True)
class MaintenanceResult:
    cancelled_waiting: int
    purged_completed: int


class TicketService:
    """Queue ticket lifecycle: issue, call, serve, complete.

    Every mutation propagates its failure to the caller. The state machine is
    waiting -> called -> (serving) -> completed.
    """

    def __init__(
        self,
        tickets: TicketRepository,
        branches: BranchRepository,
        counters: CounterRepository,
        sessions: CounterSessionRepository,
    ):
        self._tickets = tickets
        self._branches = branches
        self._counters = counters
        self._sessions = sessions

    def request_ticket(self, branch_id, *, now: Optional[datetime] = None) -> QueueTicket:
        # Issuance never depends on counters or staff being present.
        branch_id = require_positive_int(branch_id, "branchId")
        branch = self._branches.get_by_id(branch_id)
        if not branch or not branch.is_active:
            raise BranchNotFound()

        ticket = self._tickets.create_ticket(branch_id=branch.branch_id, created_at=now or now_local())
        logger.info("Issued ticket #%s (id=%s) at branch %s", ticket.number, ticket.ticket_id, branch.branch_id)
        return ticket

    def call_next(self, *, user: User, counter_id, now: Optional[datetime] = None) -> QueueTicket:
        counter_id = require_positive_int(counter_id, "counterId")
        counter = self._counters.get_by_id(counter_id)
        if not counter:
            raise CounterNotFound()
        if not counter.is_active:
            raise ValidationError("Counter is not active", field="counterId")

        session = self._sessions.get_open_for_counter(counter.counter_id)
        if not session or session.user_id != user.user_id:
            raise AuthorizationError("You must have an active session at this counter")

        ticket = self._tickets.claim_next_waiting(
            branch_id=counter.branch_id,
            counter_id=counter.counter_id,
            session_id=session.session_id,
            called_at=now or now_local(),
        )
        if ticket is None:
            raise NoWaitingTickets()

        logger.info("Counter %s called ticket #%s (id=%s)", counter.counter_id, ticket.number, ticket.ticket_id)
        return ticket

    def _require_ticket(self, ticket_id) -> QueueTicket:
        ticket_id = require_positive_int(ticket_id, "ticketId")
        ticket = self._tickets.get_by_id(ticket_id)
        if not ticket:
            raise TicketNotFound()
        return ticket

    def _check_ticket_owner(self, user: User, ticket: QueueTicket) -> None:
        if user.role == Role.ADMIN:
            return
        if ticket.clerk_user_id is not None and ticket.clerk_user_id == user.user_id:
            return
        # Session was closed and reopened at the same counter.
        if ticket.counter_id is not None:
            session = self._sessions.get_open_for_counter(ticket.counter_id)
            if session and session.user_id == user.user_id:
                return
        raise AuthorizationError("Ticket is not being handled at your counter")

    def _reject_transition(self, ticket_id: int, target: TicketStatus) -> None:
        current = self._tickets.get_by_id(ticket_id)
        if current is None:
            raise TicketNotFound()
        if current.status == TicketStatus.COMPLETED:
            raise TicketAlreadyCompleted()
        raise InvalidTicketTransition(f"Ticket is {current.status.value}, cannot move to {target.value}")

    def start_serving(self, *, user: User, ticket_id, now: Optional[datetime] = None) -> QueueTicket:
        ticket = self._require_ticket(ticket_id)
        if not can_transition(ticket.status, TicketStatus.SERVING):
            self._reject_transition(ticket.ticket_id, TicketStatus.SERVING)
        self._check_ticket_owner(user, ticket)

        if not self._tickets.mark_serving(ticket.ticket_id, at=now or now_local()):
            self._reject_transition(ticket.ticket_id, TicketStatus.SERVING)
        return self._tickets.get_by_id(ticket.ticket_id) or ticket

    def complete_service(self, *, user: User, ticket_id, now: Optional[datetime] = None) -> QueueTicket:
        ticket = self._require_ticket(ticket_id)
        if not can_transition(ticket.status, TicketStatus.COMPLETED):
            self._reject_transition(ticket.ticket_id, TicketStatus.COMPLETED)
        self._check_ticket_owner(user, ticket)

        completed_at = now or now_local()
        duration = None
        if ticket.called_at is not None:
            duration = max(int((completed_at - ticket.called_at).total_seconds()), 0)

        if not self._tickets.mark_completed(ticket.ticket_id, at=completed_at, service_duration=duration):
            # Lost a race with another completion.
            self._reject_transition(ticket.ticket_id, TicketStatus.COMPLETED)

        logger.info("Ticket #%s (id=%s) completed in %ss", ticket.number, ticket.ticket_id, duration)
        return self._tickets.get_by_id(ticket.ticket_id) or ticket

    def cancel_ticket(self, ticket_id) -> None:
        """Admin correction: hard delete a ticket nobody has called yet."""
        ticket = self._require_ticket(ticket_id)
        if ticket.status != TicketStatus.WAITING:
            raise InvalidTicketTransition("Only waiting tickets can be deleted")
        if not self._tickets.delete_waiting(ticket.ticket_id):
            raise InvalidTicketTransition("Only waiting tickets can be deleted")
        logger.info("Ticket id=%s deleted by admin", ticket.ticket_id)

    def run_daily_maintenance(self, *, now: Optional[datetime] = None) -> MaintenanceResult:
        today = (now or now_local()).date()
        cancelled = self._tickets.cancel_waiting_before(today - timedelta(days=STALE_WAITING_DAYS - 1))
        purged = self._tickets.purge_completed_before(today - timedelta(days=COMPLETED_RETENTION_DAYS))
        logger.info("Daily maintenance: cancelled %s stale waiting, purged %s completed", cancelled, purged)
        return MaintenanceResult(cancelled_waiting=cancelled, purged_completed=purged)
