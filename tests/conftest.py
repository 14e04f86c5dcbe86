from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

import pytest
from werkzeug.security import generate_password_hash

from queuematic.branches.model import Branch, BranchCounterStats
from queuematic.container import wire_services
from queuematic.core.enums import Role, TicketStatus
from queuematic.core.exceptions import CounterBusy, CounterOccupied, SessionNotFound, UserHasActiveSession
from queuematic.counters.model import (
    ActiveSession,
    Counter,
    CounterOverview,
    CounterSession,
    CurrentTicket,
    LastUsedCounter,
)
from queuematic.main import create_app
from queuematic.status.model import StatusCounts, TicketView
from queuematic.tickets.model import QueueTicket
from queuematic.users.model import User

PASSWORD = "password123"
_PASSWORD_HASH = generate_password_hash(PASSWORD, method="pbkdf2:sha256:1000")


class InMemoryStore:
    """Shared tables for the fake repositories; one lock stands in for row locks."""

    def __init__(self):
        self.lock = threading.RLock()
        self.branches: dict[int, Branch] = {}
        self.users: dict[int, User] = {}
        self.counters: dict[int, Counter] = {}
        self.sessions: dict[int, CounterSession] = {}
        self.tickets: dict[int, QueueTicket] = {}
        self._ids: dict[str, int] = {}

    def next_id(self, table: str) -> int:
        self._ids[table] = self._ids.get(table, 0) + 1
        return self._ids[table]

    def add_branch(self, name: str, *, is_active: bool = True) -> Branch:
        branch = Branch(branch_id=self.next_id("branches"), name=name, address=f"{name} street", is_active=is_active)
        self.branches[branch.branch_id] = branch
        return branch

    def add_counter(self, branch_id: int, number: int, *, is_active: bool = True) -> Counter:
        counter = Counter(counter_id=self.next_id("counters"), branch_id=branch_id, number=number, is_active=is_active)
        self.counters[counter.counter_id] = counter
        return counter

    def add_user(self, username: str, role: Role, branch_id: Optional[int] = None, *, is_active: bool = True) -> User:
        user = User(
            user_id=self.next_id("users"),
            username=username,
            password_hash=_PASSWORD_HASH,
            role=role,
            branch_id=branch_id,
            is_active=is_active,
        )
        self.users[user.user_id] = user
        return user

    def add_ticket(self, branch_id: int, number: int, created_at: datetime, **fields) -> QueueTicket:
        ticket = QueueTicket(
            ticket_id=self.next_id("queue"),
            branch_id=branch_id,
            number=number,
            status=fields.pop("status", TicketStatus.WAITING),
            created_at=created_at,
            **fields,
        )
        self.tickets[ticket.ticket_id] = ticket
        return ticket

    def open_sessions(self):
        return [s for s in self.sessions.values() if s.end_time is None]


class InMemoryBranches:
    def __init__(self, store: InMemoryStore):
        self.s = store

    def list_active(self):
        return sorted((b for b in self.s.branches.values() if b.is_active), key=lambda b: b.name)

    def get_by_id(self, branch_id: int) -> Optional[Branch]:
        return self.s.branches.get(int(branch_id))

    def get_by_name(self, name: str) -> Optional[Branch]:
        return next((b for b in self.s.branches.values() if b.name == name), None)

    def create(self, *, name, address, phone):
        branch = Branch(branch_id=self.s.next_id("branches"), name=name, address=address, phone=phone)
        self.s.branches[branch.branch_id] = branch
        return branch.branch_id

    def update(self, branch_id, *, name=None, address=None, phone=None, is_active=None):
        b = self.s.branches.get(branch_id)
        if not b:
            return False
        self.s.branches[branch_id] = replace(
            b,
            name=b.name if name is None else name,
            address=b.address if address is None else address,
            phone=b.phone if phone is None else phone,
            is_active=b.is_active if is_active is None else is_active,
        )
        return True

    def counter_stats(self, branch_id):
        counters = [c for c in self.s.counters.values() if c.branch_id == branch_id]
        open_ids = {s.counter_id for s in self.s.open_sessions()}
        return BranchCounterStats(
            counter_count=len(counters),
            active_counters=len([c for c in counters if c.counter_id in open_ids]),
        )

    def count_active_users(self, branch_id):
        return len([u for u in self.s.users.values() if u.branch_id == branch_id and u.is_active])

    def count_open_tickets(self, branch_id):
        return len([t for t in self.s.tickets.values() if t.branch_id == branch_id and t.status in _OPEN])


_OPEN = (TicketStatus.WAITING, TicketStatus.CALLED, TicketStatus.SERVING)


class InMemoryUsers:
    def __init__(self, store: InMemoryStore):
        self.s = store
        self.last_login: dict[int, datetime] = {}

    def _with_branch(self, u: Optional[User]) -> Optional[User]:
        if u is None:
            return None
        branch = self.s.branches.get(u.branch_id) if u.branch_id else None
        return replace(u, branch_name=branch.name if branch else None, last_login=self.last_login.get(u.user_id))

    def get_by_id(self, user_id):
        return self._with_branch(self.s.users.get(int(user_id)))

    def get_by_username(self, username):
        return self._with_branch(next((u for u in self.s.users.values() if u.username == username), None))

    def list_all(self):
        return [self._with_branch(u) for u in self.s.users.values()]

    def create_user(self, *, username, password_hash, role, branch_id):
        user = User(
            user_id=self.s.next_id("users"),
            username=username,
            password_hash=password_hash,
            role=role,
            branch_id=branch_id,
        )
        self.s.users[user.user_id] = user
        return user.user_id

    def update_user(self, user_id, *, role=None, branch_id=None, clear_branch=False, is_active=None):
        u = self.s.users.get(user_id)
        if not u:
            return False
        new_branch = None if clear_branch else (u.branch_id if branch_id is None else branch_id)
        self.s.users[user_id] = replace(
            u,
            role=u.role if role is None else role,
            branch_id=new_branch,
            is_active=u.is_active if is_active is None else is_active,
        )
        return True

    def set_password_hash(self, user_id, password_hash):
        u = self.s.users.get(user_id)
        if not u:
            return False
        self.s.users[user_id] = replace(u, password_hash=password_hash)
        return True

    def touch_last_login(self, user_id, at):
        self.last_login[user_id] = at


class InMemoryCounters:
    def __init__(self, store: InMemoryStore):
        self.s = store

    def get_by_id(self, counter_id):
        return self.s.counters.get(int(counter_id))

    def get_by_branch_and_number(self, branch_id, number):
        return next(
            (c for c in self.s.counters.values() if c.branch_id == branch_id and c.number == number),
            None,
        )

    def list_overview(self, branch_id):
        out = []
        for c in sorted(self.s.counters.values(), key=lambda c: c.number):
            if c.branch_id != branch_id:
                continue
            session = next((s for s in self.s.open_sessions() if s.counter_id == c.counter_id), None)
            active = next(
                (t for t in self.s.tickets.values() if t.counter_id == c.counter_id and t.status.is_active),
                None,
            )
            out.append(
                CounterOverview(
                    counter=c,
                    session_id=session.session_id if session else None,
                    user_id=session.user_id if session else None,
                    clerk_username=self.s.users[session.user_id].username if session else None,
                    start_time=session.start_time if session else None,
                    current_ticket=CurrentTicket(active.ticket_id, active.number, active.status, active.created_at)
                    if active
                    else None,
                )
            )
        return out

    def list_available(self, branch_id):
        occupied = {s.counter_id for s in self.s.open_sessions()}
        return [
            c
            for c in sorted(self.s.counters.values(), key=lambda c: c.number)
            if c.branch_id == branch_id and c.is_active and c.counter_id not in occupied
        ]

    def create(self, *, branch_id, number):
        return self.s.add_counter(branch_id, number).counter_id

    def update(self, counter_id, *, number=None, is_active=None):
        c = self.s.counters.get(counter_id)
        if not c:
            return False
        self.s.counters[counter_id] = replace(
            c,
            number=c.number if number is None else number,
            is_active=c.is_active if is_active is None else is_active,
        )
        return True

    def delete(self, counter_id):
        return self.s.counters.pop(counter_id, None) is not None

    def count_tickets(self, counter_id):
        return len([t for t in self.s.tickets.values() if t.counter_id == counter_id])


class InMemorySessions:
    def __init__(self, store: InMemoryStore):
        self.s = store

    def open_session(self, *, counter_id, user_id, started_at):
        with self.s.lock:
            if any(s.counter_id == counter_id for s in self.s.open_sessions()):
                raise CounterOccupied()
            if any(s.user_id == user_id for s in self.s.open_sessions()):
                raise UserHasActiveSession()
            session = CounterSession(
                session_id=self.s.next_id("sessions"),
                counter_id=counter_id,
                user_id=user_id,
                start_time=started_at,
            )
            self.s.sessions[session.session_id] = session
            return session.session_id

    def close_session(self, session_id, *, ended_at):
        with self.s.lock:
            session = self.s.sessions.get(session_id)
            if not session or session.end_time is not None:
                return False
            self.s.sessions[session_id] = replace(session, end_time=ended_at)
            return True

    def get_open_by_id(self, session_id):
        session = self.s.sessions.get(int(session_id))
        return session if session and session.is_open else None

    def get_open_for_counter(self, counter_id):
        return next((s for s in self.s.open_sessions() if s.counter_id == counter_id), None)

    def get_open_for_user(self, user_id):
        return next((s for s in self.s.open_sessions() if s.user_id == user_id), None)

    def get_active_view(self, user_id):
        session = self.get_open_for_user(user_id)
        if not session:
            return None
        counter = self.s.counters[session.counter_id]
        branch = self.s.branches[counter.branch_id]
        active = next(
            (t for t in self.s.tickets.values() if t.counter_id == counter.counter_id and t.status.is_active),
            None,
        )
        return ActiveSession(
            session_id=session.session_id,
            counter_id=counter.counter_id,
            counter_number=counter.number,
            branch_id=branch.branch_id,
            branch_name=branch.name,
            start_time=session.start_time,
            current_ticket=CurrentTicket(active.ticket_id, active.number, active.status, active.created_at)
            if active
            else None,
        )

    def get_last_closed_for_user(self, user_id):
        closed = [s for s in self.s.sessions.values() if s.user_id == user_id and s.end_time is not None]
        if not closed:
            return None
        last = max(closed, key=lambda s: s.end_time)
        counter = self.s.counters[last.counter_id]
        branch = self.s.branches[counter.branch_id]
        return LastUsedCounter(
            counter_id=counter.counter_id,
            counter_number=counter.number,
            branch_id=branch.branch_id,
            branch_name=branch.name,
            last_used=last.end_time,
            is_active=counter.is_active,
        )


class InMemoryTickets:
    def __init__(self, store: InMemoryStore):
        self.s = store

    def _enrich(self, t: QueueTicket) -> QueueTicket:
        counter = self.s.counters.get(t.counter_id) if t.counter_id else None
        session = self.s.sessions.get(t.counter_session_id) if t.counter_session_id else None
        return replace(
            t,
            counter_number=counter.number if counter else None,
            clerk_user_id=session.user_id if session else None,
        )

    def create_ticket(self, *, branch_id, created_at):
        with self.s.lock:
            day = created_at.date()
            numbers = [
                t.number for t in self.s.tickets.values() if t.branch_id == branch_id and t.created_at.date() == day
            ]
            return self.s.add_ticket(branch_id, max(numbers, default=0) + 1, created_at)

    def get_by_id(self, ticket_id):
        t = self.s.tickets.get(int(ticket_id))
        return self._enrich(t) if t else None

    def get_active_for_counter(self, counter_id):
        t = next((t for t in self.s.tickets.values() if t.counter_id == counter_id and t.status.is_active), None)
        return self._enrich(t) if t else None

    def claim_next_waiting(self, *, branch_id, counter_id, session_id, called_at):
        with self.s.lock:
            session = self.s.sessions.get(session_id)
            if not session or session.end_time is not None:
                raise SessionNotFound()
            if any(t.counter_id == counter_id and t.status.is_active for t in self.s.tickets.values()):
                raise CounterBusy()
            waiting = sorted(
                (t for t in self.s.tickets.values() if t.branch_id == branch_id and t.status == TicketStatus.WAITING),
                key=lambda t: (t.created_at, t.number),
            )
            if not waiting:
                return None
            claimed = replace(
                waiting[0],
                status=TicketStatus.CALLED,
                counter_id=counter_id,
                counter_session_id=session_id,
                called_at=called_at,
            )
            self.s.tickets[claimed.ticket_id] = claimed
            return self._enrich(claimed)

    def mark_serving(self, ticket_id, *, at):
        with self.s.lock:
            t = self.s.tickets.get(ticket_id)
            if not t or t.status != TicketStatus.CALLED:
                return False
            self.s.tickets[ticket_id] = replace(t, status=TicketStatus.SERVING, serving_at=at)
            return True

    def mark_completed(self, ticket_id, *, at, service_duration):
        with self.s.lock:
            t = self.s.tickets.get(ticket_id)
            if not t or not t.status.is_active:
                return False
            self.s.tickets[ticket_id] = replace(
                t, status=TicketStatus.COMPLETED, completed_at=at, service_duration=service_duration
            )
            return True

    def delete_waiting(self, ticket_id):
        with self.s.lock:
            t = self.s.tickets.get(ticket_id)
            if not t or t.status != TicketStatus.WAITING:
                return False
            del self.s.tickets[ticket_id]
            return True

    def cancel_waiting_before(self, before: date):
        n = 0
        for t in list(self.s.tickets.values()):
            if t.status == TicketStatus.WAITING and t.created_at.date() < before:
                self.s.tickets[t.ticket_id] = replace(t, status=TicketStatus.CANCELLED)
                n += 1
        return n

    def purge_completed_before(self, before: date):
        stale = [
            t.ticket_id
            for t in self.s.tickets.values()
            if t.status == TicketStatus.COMPLETED and t.completed_at and t.completed_at.date() < before
        ]
        for ticket_id in stale:
            del self.s.tickets[ticket_id]
        return len(stale)


class InMemoryStatus:
    def __init__(self, store: InMemoryStore):
        self.s = store

    def _view(self, t: QueueTicket) -> TicketView:
        counter = self.s.counters.get(t.counter_id) if t.counter_id else None
        return TicketView(
            ticket_id=t.ticket_id,
            number=t.number,
            status=t.status,
            created_at=t.created_at,
            called_at=t.called_at,
            completed_at=t.completed_at,
            counter_id=t.counter_id,
            counter_number=counter.number if counter else None,
            service_duration=t.service_duration,
        )

    def _branch(self, branch_id):
        return [t for t in self.s.tickets.values() if t.branch_id == branch_id]

    def _completed_on(self, branch_id, day):
        return [
            t
            for t in self._branch(branch_id)
            if t.status == TicketStatus.COMPLETED and t.completed_at and t.completed_at.date() == day
        ]

    def count_by_status(self, branch_id):
        tickets = self._branch(branch_id)
        return StatusCounts(
            waiting=len([t for t in tickets if t.status == TicketStatus.WAITING]),
            called=len([t for t in tickets if t.status == TicketStatus.CALLED]),
            serving=len([t for t in tickets if t.status == TicketStatus.SERVING]),
        )

    def count_completed_on(self, branch_id, day):
        return len(self._completed_on(branch_id, day))

    def count_active_counters(self, branch_id):
        return len(
            {
                s.counter_id
                for s in self.s.open_sessions()
                if self.s.counters[s.counter_id].branch_id == branch_id and self.s.counters[s.counter_id].is_active
            }
        )

    def avg_service_seconds(self, branch_id, day):
        durations = [self._view(t).duration_seconds for t in self._completed_on(branch_id, day)]
        durations = [d for d in durations if d is not None]
        return sum(durations) / len(durations) if durations else None

    def last_called(self, branch_id):
        called = [t for t in self._branch(branch_id) if t.called_at]
        return self._view(max(called, key=lambda t: t.called_at)) if called else None

    def currently_serving(self, branch_id):
        active = [t for t in self._branch(branch_id) if t.status.is_active]
        return [self._view(t) for t in active]

    def waiting_list(self, branch_id, limit):
        waiting = sorted(
            (t for t in self._branch(branch_id) if t.status == TicketStatus.WAITING),
            key=lambda t: (t.created_at, t.number),
        )
        return [self._view(t) for t in waiting[:limit]]

    def recent_completed(self, branch_id, day, limit):
        done = sorted(self._completed_on(branch_id, day), key=lambda t: t.completed_at, reverse=True)
        return [self._view(t) for t in done[:limit]]

    def completed_by_user(self, user_id, day):
        out = []
        for t in self.s.tickets.values():
            session = self.s.sessions.get(t.counter_session_id) if t.counter_session_id else None
            if (
                session
                and session.user_id == user_id
                and t.status == TicketStatus.COMPLETED
                and t.completed_at.date() == day
            ):
                out.append(t)
        return [self._view(t) for t in sorted(out, key=lambda t: t.completed_at)]


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def store() -> InMemoryStore:
    """Two branches: Main (counters 1-3, clerk1/clerk2) and Harbour (counter 4, clerk3)."""
    s = InMemoryStore()
    main = s.add_branch("Main Branch")
    harbour = s.add_branch("Harbour Branch")
    for number in (1, 2, 3):
        s.add_counter(main.branch_id, number)
    s.add_counter(harbour.branch_id, 1)

    s.add_user("admin", Role.ADMIN)
    s.add_user("clerk1", Role.CLERK, main.branch_id)
    s.add_user("clerk2", Role.CLERK, main.branch_id)
    s.add_user("clerk3", Role.CLERK, harbour.branch_id)
    return s


@pytest.fixture
def container(store):
    return wire_services(
        users_repo=InMemoryUsers(store),
        branches_repo=InMemoryBranches(store),
        counters_repo=InMemoryCounters(store),
        sessions_repo=InMemorySessions(store),
        tickets_repo=InMemoryTickets(store),
        status_repo=InMemoryStatus(store),
    )


@pytest.fixture
def user(store):
    def get(username: str) -> User:
        return next(u for u in store.users.values() if u.username == username)

    return get


@pytest.fixture
def app(container):
    app = create_app(settings_module="queuematic.config.testing", container=container)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def do_login(username: str, password: str = PASSWORD):
        return client.post("/api/auth/login", json={"username": username, "password": password})

    return do_login
