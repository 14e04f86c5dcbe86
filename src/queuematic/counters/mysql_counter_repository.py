from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import TicketStatus
from ..core.exceptions import CounterNotFound, CounterOccupied, UserHasActiveSession, UserNotFound
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_bool, as_int, db_cursor, fetchall, fetchone
from .model import ActiveSession, Counter, CounterOverview, CounterSession, CurrentTicket, LastUsedCounter
from .repository import CounterRepository, CounterSessionRepository


def _to_counter(r: dict, *, id_key: str = "id") -> Counter:
    return Counter(
        counter_id=int(r[id_key]),
        branch_id=int(r["branch_id"]),
        number=int(r["number"]),
        is_active=as_bool(r.get("is_active")),
        created_at=r.get("created_at"),
    )


def _to_session(r: dict) -> CounterSession:
    return CounterSession(
        session_id=int(r["id"]),
        counter_id=int(r["counter_id"]),
        user_id=int(r["user_id"]),
        start_time=r["start_time"],
        end_time=r.get("end_time"),
    )


def _current_ticket(r: dict) -> Optional[CurrentTicket]:
    if not r.get("current_queue_id"):
        return None
    return CurrentTicket(
        ticket_id=int(r["current_queue_id"]),
        number=int(r["current_queue_number"]),
        status=TicketStatus(r["current_queue_status"]),
        created_at=r.get("queue_created_at"),
    )


class MySQLCounterRepository(CounterRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, counter_id: int) -> Optional[Counter]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT id, branch_id, number, is_active, created_at FROM counters WHERE id=%s",
                (counter_id,),
            )
            r = fetchone(cur)
            return _to_counter(r) if r else None

    def get_by_branch_and_number(self, branch_id: int, number: int) -> Optional[Counter]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id, branch_id, number, is_active, created_at
                FROM counters
                WHERE branch_id=%s AND number=%s
                """,
                (branch_id, number),
            )
            r = fetchone(cur)
            return _to_counter(r) if r else None

    def list_overview(self, branch_id: int) -> Sequence[CounterOverview]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT c.id, c.branch_id, c.number, c.is_active, c.created_at,
                       cs.id AS session_id, cs.user_id, cs.start_time,
                       u.username AS clerk_username,
                       q.id AS current_queue_id, q.number AS current_queue_number,
                       q.status AS current_queue_status, q.created_at AS queue_created_at
                FROM counters c
                LEFT JOIN counter_sessions cs ON cs.counter_id = c.id AND cs.end_time IS NULL
                LEFT JOIN users u ON u.id = cs.user_id
                LEFT JOIN queue q ON q.counter_id = c.id AND q.status IN ('called', 'serving')
                WHERE c.branch_id=%s
                ORDER BY c.number ASC
                """,
                (branch_id,),
            )
            return [
                CounterOverview(
                    counter=_to_counter(r),
                    session_id=r.get("session_id"),
                    user_id=r.get("user_id"),
                    clerk_username=r.get("clerk_username"),
                    start_time=r.get("start_time"),
                    current_ticket=_current_ticket(r),
                )
                for r in fetchall(cur)
            ]

    def list_available(self, branch_id: int) -> Sequence[Counter]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT c.id, c.branch_id, c.number, c.is_active, c.created_at
                FROM counters c
                LEFT JOIN counter_sessions cs ON cs.counter_id = c.id AND cs.end_time IS NULL
                WHERE c.branch_id=%s AND c.is_active=1 AND cs.id IS NULL
                ORDER BY c.number ASC
                """,
                (branch_id,),
            )
            return [_to_counter(r) for r in fetchall(cur)]

    def create(self, *, branch_id: int, number: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO counters(branch_id, number, is_active) VALUES(%s,%s,1)",
                (branch_id, number),
            )
            return int(cur.lastrowid)

    def update(self, counter_id: int, *, number: Optional[int] = None, is_active: Optional[bool] = None) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE counters
                SET number=COALESCE(%s, number),
                    is_active=COALESCE(%s, is_active)
                WHERE id=%s
                """,
                (number, None if is_active is None else int(is_active), counter_id),
            )
            return cur.rowcount > 0

    def delete(self, counter_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM counters WHERE id=%s", (counter_id,))
            return cur.rowcount > 0

    def count_tickets(self, counter_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS n FROM queue WHERE counter_id=%s", (counter_id,))
            return as_int((fetchone(cur) or {}).get("n"))


class MySQLCounterSessionRepository(CounterSessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def open_session(self, *, counter_id: int, user_id: int, started_at: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            # Lock order: counter, then user. Concurrent starts on the same
            # counter or by the same user serialize on these rows.
            cur.execute("SELECT id FROM counters WHERE id=%s FOR UPDATE", (counter_id,))
            if not fetchone(cur):
                raise CounterNotFound()
            cur.execute("SELECT id FROM users WHERE id=%s FOR UPDATE", (user_id,))
            if not fetchone(cur):
                raise UserNotFound()

            cur.execute(
                "SELECT id FROM counter_sessions WHERE counter_id=%s AND end_time IS NULL LIMIT 1",
                (counter_id,),
            )
            if fetchone(cur):
                raise CounterOccupied()

            cur.execute(
                "SELECT id FROM counter_sessions WHERE user_id=%s AND end_time IS NULL LIMIT 1",
                (user_id,),
            )
            if fetchone(cur):
                raise UserHasActiveSession()

            cur.execute(
                "INSERT INTO counter_sessions(counter_id, user_id, start_time) VALUES(%s,%s,%s)",
                (counter_id, user_id, started_at),
            )
            return int(cur.lastrowid)

    def close_session(self, session_id: int, *, ended_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE counter_sessions SET end_time=%s WHERE id=%s AND end_time IS NULL",
                (ended_at, session_id),
            )
            return cur.rowcount > 0

    def _get_open(self, where: str, value: int) -> Optional[CounterSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT id, counter_id, user_id, start_time, end_time
                FROM counter_sessions
                WHERE {where}=%s AND end_time IS NULL
                ORDER BY start_time DESC
                LIMIT 1
                """,
                (value,),
            )
            r = fetchone(cur)
            return _to_session(r) if r else None

    def get_open_by_id(self, session_id: int) -> Optional[CounterSession]:
        return self._get_open("id", session_id)

    def get_open_for_counter(self, counter_id: int) -> Optional[CounterSession]:
        return self._get_open("counter_id", counter_id)

    def get_open_for_user(self, user_id: int) -> Optional[CounterSession]:
        return self._get_open("user_id", user_id)

    def get_active_view(self, user_id: int) -> Optional[ActiveSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT cs.id, cs.counter_id, cs.start_time,
                       c.number AS counter_number, c.branch_id,
                       b.name AS branch_name,
                       q.id AS current_queue_id, q.number AS current_queue_number,
                       q.status AS current_queue_status, q.created_at AS queue_created_at
                FROM counter_sessions cs
                JOIN counters c ON c.id = cs.counter_id
                JOIN branches b ON b.id = c.branch_id
                LEFT JOIN queue q ON q.counter_id = cs.counter_id AND q.status IN ('called', 'serving')
                WHERE cs.user_id=%s AND cs.end_time IS NULL
                ORDER BY q.called_at DESC
                LIMIT 1
                """,
                (user_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return ActiveSession(
                session_id=int(r["id"]),
                counter_id=int(r["counter_id"]),
                counter_number=int(r["counter_number"]),
                branch_id=int(r["branch_id"]),
                branch_name=r["branch_name"],
                start_time=r["start_time"],
                current_ticket=_current_ticket(r),
            )

    def get_last_closed_for_user(self, user_id: int) -> Optional[LastUsedCounter]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT cs.counter_id, cs.end_time,
                       c.number AS counter_number, c.branch_id, c.is_active,
                       b.name AS branch_name
                FROM counter_sessions cs
                JOIN counters c ON c.id = cs.counter_id
                JOIN branches b ON b.id = c.branch_id
                WHERE cs.user_id=%s AND cs.end_time IS NOT NULL
                ORDER BY cs.end_time DESC
                LIMIT 1
                """,
                (user_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return LastUsedCounter(
                counter_id=int(r["counter_id"]),
                counter_number=int(r["counter_number"]),
                branch_id=int(r["branch_id"]),
                branch_name=r["branch_name"],
                last_used=r["end_time"],
                is_active=as_bool(r.get("is_active")),
            )
