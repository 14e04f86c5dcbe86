from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional, Sequence

from ..core.enums import TicketStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_int, db_cursor, fetchall, fetchone
from .model import StatusCounts, TicketView
from .repository import StatusRepository

_TICKET_COLUMNS = """
    q.id, q.number, q.status, q.created_at, q.called_at, q.completed_at,
    q.counter_id, c.number AS counter_number, q.service_duration
"""


def _to_view(r: dict) -> TicketView:
    return TicketView(
        ticket_id=int(r["id"]),
        number=int(r["number"]),
        status=TicketStatus(r["status"]),
        created_at=r.get("created_at"),
        called_at=r.get("called_at"),
        completed_at=r.get("completed_at"),
        counter_id=r.get("counter_id"),
        counter_number=r.get("counter_number"),
        service_duration=r.get("service_duration"),
    )


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class MySQLStatusRepository(StatusRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def count_by_status(self, branch_id: int) -> StatusCounts:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT status, COUNT(*) AS cnt
                FROM queue
                WHERE branch_id=%s AND status IN ('waiting', 'called', 'serving')
                GROUP BY status
                """,
                (branch_id,),
            )
            counts = {r["status"]: as_int(r["cnt"]) for r in fetchall(cur)}
        return StatusCounts(
            waiting=counts.get("waiting", 0),
            called=counts.get("called", 0),
            serving=counts.get("serving", 0),
        )

    def count_completed_on(self, branch_id: int, day: date) -> int:
        start, end = _day_bounds(day)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS cnt
                FROM queue
                WHERE branch_id=%s AND status='completed' AND completed_at >= %s AND completed_at < %s
                """,
                (branch_id, start, end),
            )
            return as_int((fetchone(cur) or {}).get("cnt"))

    def count_active_counters(self, branch_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(DISTINCT c.id) AS cnt
                FROM counters c
                JOIN counter_sessions cs ON cs.counter_id = c.id AND cs.end_time IS NULL
                WHERE c.branch_id=%s AND c.is_active=1
                """,
                (branch_id,),
            )
            return as_int((fetchone(cur) or {}).get("cnt"))

    def avg_service_seconds(self, branch_id: int, day: date) -> Optional[float]:
        start, end = _day_bounds(day)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT AVG(COALESCE(service_duration, TIMESTAMPDIFF(SECOND, called_at, completed_at))) AS avg_seconds
                FROM queue
                WHERE branch_id=%s AND status='completed'
                  AND called_at IS NOT NULL AND completed_at >= %s AND completed_at < %s
                """,
                (branch_id, start, end),
            )
            value = (fetchone(cur) or {}).get("avg_seconds")
            return float(value) if value is not None else None

    def last_called(self, branch_id: int) -> Optional[TicketView]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TICKET_COLUMNS}
                FROM queue q
                LEFT JOIN counters c ON c.id = q.counter_id
                WHERE q.branch_id=%s AND q.called_at IS NOT NULL
                ORDER BY q.called_at DESC
                LIMIT 1
                """,
                (branch_id,),
            )
            r = fetchone(cur)
            return _to_view(r) if r else None

    def currently_serving(self, branch_id: int) -> Sequence[TicketView]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TICKET_COLUMNS}
                FROM queue q
                LEFT JOIN counters c ON c.id = q.counter_id
                WHERE q.branch_id=%s AND q.status IN ('called', 'serving')
                ORDER BY c.number ASC
                """,
                (branch_id,),
            )
            return [_to_view(r) for r in fetchall(cur)]

    def waiting_list(self, branch_id: int, limit: int) -> Sequence[TicketView]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TICKET_COLUMNS}
                FROM queue q
                LEFT JOIN counters c ON c.id = q.counter_id
                WHERE q.branch_id=%s AND q.status='waiting'
                ORDER BY q.created_at ASC, q.number ASC
                LIMIT %s
                """,
                (branch_id, int(limit)),
            )
            return [_to_view(r) for r in fetchall(cur)]

    def recent_completed(self, branch_id: int, day: date, limit: int) -> Sequence[TicketView]:
        start, end = _day_bounds(day)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TICKET_COLUMNS}
                FROM queue q
                LEFT JOIN counters c ON c.id = q.counter_id
                WHERE q.branch_id=%s AND q.status='completed'
                  AND q.completed_at >= %s AND q.completed_at < %s
                ORDER BY q.completed_at DESC
                LIMIT %s
                """,
                (branch_id, start, end, int(limit)),
            )
            return [_to_view(r) for r in fetchall(cur)]

    def completed_by_user(self, user_id: int, day: date) -> Sequence[TicketView]:
        start, end = _day_bounds(day)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TICKET_COLUMNS}
                FROM queue q
                JOIN counter_sessions cs ON cs.id = q.counter_session_id
                LEFT JOIN counters c ON c.id = q.counter_id
                WHERE cs.user_id=%s AND q.status='completed'
                  AND q.completed_at >= %s AND q.completed_at < %s
                ORDER BY q.completed_at ASC
                """,
                (user_id, start, end),
            )
            return [_to_view(r) for r in fetchall(cur)]
