from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional

from ..core.enums import TicketStatus
from ..core.exceptions import BranchNotFound, CounterBusy, SessionNotFound
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import QueueTicket
from .repository import TicketRepository

_SELECT = """
    SELECT q.id, q.branch_id, q.number, q.status, q.created_at, q.called_at, q.serving_at,
           q.completed_at, q.counter_id, q.counter_session_id, q.service_duration,
           c.number AS counter_number, cs.user_id AS clerk_user_id
    FROM queue q
    LEFT JOIN counters c ON c.id = q.counter_id
    LEFT JOIN counter_sessions cs ON cs.id = q.counter_session_id
"""


def _to_ticket(r: dict) -> QueueTicket:
    return QueueTicket(
        ticket_id=int(r["id"]),
        branch_id=int(r["branch_id"]),
        number=int(r["number"]),
        status=TicketStatus(r["status"]),
        created_at=r["created_at"],
        called_at=r.get("called_at"),
        serving_at=r.get("serving_at"),
        completed_at=r.get("completed_at"),
        counter_id=r.get("counter_id"),
        counter_session_id=r.get("counter_session_id"),
        service_duration=r.get("service_duration"),
        counter_number=r.get("counter_number"),
        clerk_user_id=r.get("clerk_user_id"),
    )


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class MySQLTicketRepository(TicketRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create_ticket(self, *, branch_id: int, created_at: datetime) -> QueueTicket:
        day_start, day_end = _day_bounds(created_at.date())
        with db_cursor(self._conn_factory) as (_, cur):
            # Serializes number allocation per branch.
            cur.execute("SELECT id FROM branches WHERE id=%s AND is_active=1 FOR UPDATE", (branch_id,))
            if not fetchone(cur):
                raise BranchNotFound()

            cur.execute(
                """
                SELECT COALESCE(MAX(number), 0) + 1 AS next_number
                FROM queue
                WHERE branch_id=%s AND created_at >= %s AND created_at < %s
                """,
                (branch_id, day_start, day_end),
            )
            next_number = int((fetchone(cur) or {}).get("next_number") or 1)

            cur.execute(
                """
                INSERT INTO queue(branch_id, number, status, created_at)
                VALUES(%s,%s,'waiting',%s)
                """,
                (branch_id, next_number, created_at),
            )
            return QueueTicket(
                ticket_id=int(cur.lastrowid),
                branch_id=branch_id,
                number=next_number,
                status=TicketStatus.WAITING,
                created_at=created_at,
            )

    def get_by_id(self, ticket_id: int) -> Optional[QueueTicket]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE q.id=%s", (ticket_id,))
            r = fetchone(cur)
            return _to_ticket(r) if r else None

    def get_active_for_counter(self, counter_id: int) -> Optional[QueueTicket]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE q.counter_id=%s AND q.status IN ('called', 'serving') ORDER BY q.called_at DESC LIMIT 1",
                (counter_id,),
            )
            r = fetchone(cur)
            return _to_ticket(r) if r else None

    def claim_next_waiting(
        self,
        *,
        branch_id: int,
        counter_id: int,
        session_id: int,
        called_at: datetime,
    ) -> Optional[QueueTicket]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT id FROM counter_sessions WHERE id=%s AND end_time IS NULL FOR UPDATE",
                (session_id,),
            )
            if not fetchone(cur):
                raise SessionNotFound()

            cur.execute(
                "SELECT id FROM queue WHERE counter_id=%s AND status IN ('called', 'serving') LIMIT 1",
                (counter_id,),
            )
            if fetchone(cur):
                raise CounterBusy()

            # SKIP LOCKED: a row another counter is claiming right now is not
            # visible here, so concurrent calls never pick the same ticket.
            cur.execute(
                """
                SELECT id
                FROM queue
                WHERE branch_id=%s AND status='waiting'
                ORDER BY created_at ASC, number ASC
                LIMIT 1
                FOR UPDATE SKIP LOCKED
                """,
                (branch_id,),
            )
            row = fetchone(cur)
            if not row:
                return None

            cur.execute(
                """
                UPDATE queue
                SET status='called', counter_id=%s, counter_session_id=%s, called_at=%s
                WHERE id=%s AND status='waiting'
                """,
                (counter_id, session_id, called_at, row["id"]),
            )
            if cur.rowcount != 1:
                return None

            cur.execute(_SELECT + " WHERE q.id=%s", (row["id"],))
            return _to_ticket(fetchone(cur))

    def mark_serving(self, ticket_id: int, *, at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE queue SET status='serving', serving_at=%s WHERE id=%s AND status='called'",
                (at, ticket_id),
            )
            return cur.rowcount == 1

    def mark_completed(self, ticket_id: int, *, at: datetime, service_duration: Optional[int]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE queue
                SET status='completed', completed_at=%s, service_duration=%s
                WHERE id=%s AND status IN ('called', 'serving')
                """,
                (at, service_duration, ticket_id),
            )
            return cur.rowcount == 1

    def delete_waiting(self, ticket_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM queue WHERE id=%s AND status='waiting'", (ticket_id,))
            return cur.rowcount == 1

    def cancel_waiting_before(self, before: date) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE queue SET status='cancelled' WHERE status='waiting' AND created_at < %s",
                (datetime.combine(before, time.min),),
            )
            return int(cur.rowcount)

    def purge_completed_before(self, before: date) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM queue WHERE status='completed' AND completed_at < %s",
                (datetime.combine(before, time.min),),
            )
            return int(cur.rowcount)
