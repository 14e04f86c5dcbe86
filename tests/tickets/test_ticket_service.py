from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from queuematic.core.enums import Role, TicketStatus
from queuematic.core.exceptions import (
    AuthorizationError,
    BranchNotFound,
    CounterBusy,
    InvalidTicketTransition,
    NoWaitingTickets,
    TicketAlreadyCompleted,
    ValidationError,
)
from queuematic.tickets.service import estimate_wait_minutes


def _open(container, user, counter_id, now):
    container.counter_session_service.start_session(user=user, counter_id=counter_id, now=now)


def test_ticket_numbers_increase_per_branch_and_day(container, fixed_now):
    svc = container.ticket_service

    a = svc.request_ticket(1, now=fixed_now)
    b = svc.request_ticket(1, now=fixed_now + timedelta(seconds=5))
    other = svc.request_ticket(2, now=fixed_now)
    tomorrow = svc.request_ticket(1, now=fixed_now + timedelta(days=1))

    assert (a.number, b.number) == (1, 2)
    assert other.number == 1
    assert tomorrow.number == 1
    assert a.status == TicketStatus.WAITING


def test_ticket_issued_without_any_open_counter(container, store, fixed_now):
    assert not store.open_sessions()

    ticket = container.ticket_service.request_ticket("1", now=fixed_now)

    assert ticket.number == 1
    assert container.status_service.branch_status(1, now=fixed_now)["canTakeNumber"] is True


def test_request_ticket_unknown_or_inactive_branch(container, store, fixed_now):
    closed = store.add_branch("Closed Branch", is_active=False)

    with pytest.raises(BranchNotFound):
        container.ticket_service.request_ticket(99, now=fixed_now)
    with pytest.raises(BranchNotFound):
        container.ticket_service.request_ticket(closed.branch_id, now=fixed_now)


def test_call_next_is_fifo(container, user, fixed_now):
    svc = container.ticket_service
    first = svc.request_ticket(1, now=fixed_now)
    second = svc.request_ticket(1, now=fixed_now + timedelta(minutes=1))
    clerk = user("clerk1")
    _open(container, clerk, 1, fixed_now)

    called = svc.call_next(user=clerk, counter_id=1, now=fixed_now + timedelta(minutes=2))
    assert called.ticket_id == first.ticket_id
    assert called.status == TicketStatus.CALLED
    assert called.counter_id == 1

    svc.complete_service(user=clerk, ticket_id=called.ticket_id, now=fixed_now + timedelta(minutes=5))
    assert svc.call_next(user=clerk, counter_id=1, now=fixed_now + timedelta(minutes=6)).ticket_id == second.ticket_id


def test_call_next_with_empty_queue(container, user, fixed_now):
    clerk = user("clerk1")
    _open(container, clerk, 1, fixed_now)

    with pytest.raises(NoWaitingTickets) as exc:
        container.ticket_service.call_next(user=clerk, counter_id=1, now=fixed_now)
    assert exc.value.message == "No customers waiting"


def test_call_next_requires_own_session(container, user, fixed_now):
    container.ticket_service.request_ticket(1, now=fixed_now)
    _open(container, user("clerk1"), 1, fixed_now)

    with pytest.raises(AuthorizationError):
        container.ticket_service.call_next(user=user("clerk2"), counter_id=1, now=fixed_now)
    with pytest.raises(AuthorizationError):
        container.ticket_service.call_next(user=user("clerk2"), counter_id=2, now=fixed_now)


def test_call_next_refuses_while_counter_busy(container, user, fixed_now):
    svc = container.ticket_service
    svc.request_ticket(1, now=fixed_now)
    svc.request_ticket(1, now=fixed_now)
    clerk = user("clerk1")
    _open(container, clerk, 1, fixed_now)

    svc.call_next(user=clerk, counter_id=1, now=fixed_now)
    with pytest.raises(CounterBusy):
        svc.call_next(user=clerk, counter_id=1, now=fixed_now)


def test_concurrent_call_next_never_claims_same_ticket(container, store, fixed_now):
    for i in range(30):
        container.ticket_service.request_ticket(1, now=fixed_now + timedelta(seconds=i))

    clerks = [store.add_user(f"racer{n}", Role.CLERK, 1) for n in range(6)]
    counters = [store.add_counter(1, 10 + n) for n in range(6)]
    for clerk, counter in zip(clerks, counters):
        _open(container, clerk, counter.counter_id, fixed_now)

    claimed: list[int] = []
    errors: list[Exception] = []
    barrier = threading.Barrier(len(clerks))

    def worker(clerk, counter):
        barrier.wait()
        try:
            t = container.ticket_service.call_next(user=clerk, counter_id=counter.counter_id, now=fixed_now)
            claimed.append(t.ticket_id)
        except Exception as e:  # collected for the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=pair) for pair in zip(clerks, counters)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(claimed) == len(set(claimed)) == 6
    # the six oldest tickets, nothing skipped
    assert sorted(store.tickets[i].number for i in claimed) == [1, 2, 3, 4, 5, 6]


def test_complete_rejects_null_ticket_id_before_store(container, user):
    with pytest.raises(ValidationError) as exc:
        container.ticket_service.complete_service(user=user("clerk1"), ticket_id=None)
    assert exc.value.field == "ticketId"

    for bad in ("", "abc", 0, -3, 1.5, True):
        with pytest.raises(ValidationError):
            container.ticket_service.complete_service(user=user("clerk1"), ticket_id=bad)


def test_state_machine_is_linear(container, user, fixed_now):
    svc = container.ticket_service
    clerk = user("clerk1")
    waiting = svc.request_ticket(1, now=fixed_now)
    _open(container, clerk, 1, fixed_now)

    with pytest.raises(InvalidTicketTransition):
        svc.complete_service(user=clerk, ticket_id=waiting.ticket_id, now=fixed_now)

    called = svc.call_next(user=clerk, counter_id=1, now=fixed_now)
    serving = svc.start_serving(user=clerk, ticket_id=called.ticket_id, now=fixed_now + timedelta(seconds=10))
    assert serving.status == TicketStatus.SERVING

    with pytest.raises(InvalidTicketTransition):
        svc.start_serving(user=clerk, ticket_id=called.ticket_id, now=fixed_now)

    done = svc.complete_service(user=clerk, ticket_id=called.ticket_id, now=fixed_now + timedelta(minutes=4))
    assert done.status == TicketStatus.COMPLETED
    assert done.service_duration == 240

    with pytest.raises(TicketAlreadyCompleted):
        svc.complete_service(user=clerk, ticket_id=called.ticket_id, now=fixed_now + timedelta(minutes=5))


def test_complete_directly_from_called(container, user, fixed_now):
    svc = container.ticket_service
    clerk = user("clerk1")
    svc.request_ticket(1, now=fixed_now)
    _open(container, clerk, 1, fixed_now)
    called = svc.call_next(user=clerk, counter_id=1, now=fixed_now)

    done = svc.complete_service(user=clerk, ticket_id=str(called.ticket_id), now=fixed_now + timedelta(seconds=90))

    assert done.status == TicketStatus.COMPLETED
    assert done.completed_at == fixed_now + timedelta(seconds=90)


def test_other_clerk_cannot_complete(container, user, fixed_now):
    svc = container.ticket_service
    svc.request_ticket(1, now=fixed_now)
    _open(container, user("clerk1"), 1, fixed_now)
    called = svc.call_next(user=user("clerk1"), counter_id=1, now=fixed_now)

    with pytest.raises(AuthorizationError):
        svc.complete_service(user=user("clerk2"), ticket_id=called.ticket_id, now=fixed_now)

    # admins may correct anything
    done = svc.complete_service(user=user("admin"), ticket_id=called.ticket_id, now=fixed_now)
    assert done.status == TicketStatus.COMPLETED


def test_ending_session_keeps_called_ticket_attached(container, store, user, fixed_now):
    svc = container.ticket_service
    clerk = user("clerk1")
    svc.request_ticket(1, now=fixed_now)
    session, _ = container.counter_session_service.start_session(user=clerk, counter_id=1, now=fixed_now)
    called = svc.call_next(user=clerk, counter_id=1, now=fixed_now)

    container.counter_session_service.end_session(user=clerk, session_id=session.session_id, now=fixed_now)

    t = store.tickets[called.ticket_id]
    assert t.status == TicketStatus.CALLED
    assert t.counter_id == 1


def test_cancel_ticket_only_waiting(container, store, user, fixed_now):
    svc = container.ticket_service
    a = svc.request_ticket(1, now=fixed_now)
    svc.request_ticket(1, now=fixed_now)
    _open(container, user("clerk1"), 1, fixed_now)
    svc.call_next(user=user("clerk1"), counter_id=1, now=fixed_now)

    with pytest.raises(InvalidTicketTransition):
        svc.cancel_ticket(a.ticket_id)

    b_id = next(t.ticket_id for t in store.tickets.values() if t.status == TicketStatus.WAITING)
    svc.cancel_ticket(b_id)
    assert b_id not in store.tickets


def test_daily_maintenance(container, store, fixed_now):
    yesterday = fixed_now - timedelta(days=1)
    stale = store.add_ticket(1, 1, yesterday)
    fresh = store.add_ticket(1, 1, fixed_now)
    old_done = store.add_ticket(
        1, 2, fixed_now - timedelta(days=10), status=TicketStatus.COMPLETED, completed_at=fixed_now - timedelta(days=10)
    )
    recent_done = store.add_ticket(
        1, 3, yesterday, status=TicketStatus.COMPLETED, completed_at=yesterday
    )

    result = container.ticket_service.run_daily_maintenance(now=fixed_now)

    assert result.cancelled_waiting == 1
    assert result.purged_completed == 1
    assert store.tickets[stale.ticket_id].status == TicketStatus.CANCELLED
    assert store.tickets[fresh.ticket_id].status == TicketStatus.WAITING
    assert old_done.ticket_id not in store.tickets
    assert recent_done.ticket_id in store.tickets


@pytest.mark.parametrize(
    "waiting, avg, active, expected",
    [
        (0, 3, 2, 0),
        (4, 3, 0, 12),
        (4, 3, 1, 12),
        (5, 3, 2, 8),
        (1, 0.5, 3, 1),
    ],
)
def test_estimate_wait_minutes(waiting, avg, active, expected):
    assert estimate_wait_minutes(waiting, avg, active) == expected


def test_more_callers_than_waiting_tickets(container, store, fixed_now):
    for i in range(2):
        container.ticket_service.request_ticket(1, now=fixed_now + timedelta(seconds=i))
    pairs = []
    for n in range(6):
        clerk = store.add_user(f"caller{n}", Role.CLERK, 1)
        counter = store.add_counter(1, 20 + n)
        _open(container, clerk, counter.counter_id, fixed_now)
        pairs.append((clerk, counter))

    claimed: list[int] = []
    empty: list[NoWaitingTickets] = []
    barrier = threading.Barrier(len(pairs))

    def worker(clerk, counter):
        barrier.wait()
        try:
            claimed.append(container.ticket_service.call_next(user=clerk, counter_id=counter.counter_id, now=fixed_now).ticket_id)
        except NoWaitingTickets as e:
            empty.append(e)

    threads = [threading.Thread(target=worker, args=pair) for pair in pairs]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(claimed) == len(set(claimed)) == 2
    assert len(empty) == 4
