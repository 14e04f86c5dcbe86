from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_bool, as_int, db_cursor, fetchall, fetchone
from .model import Branch, BranchCounterStats
from .repository import BranchRepository

_COLUMNS = "id, name, address, phone, is_active, created_at, updated_at"


def _to_branch(r: dict) -> Branch:
    return Branch(
        branch_id=int(r["id"]),
        name=r["name"],
        address=r.get("address"),
        phone=r.get("phone"),
        is_active=as_bool(r.get("is_active")),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


class MySQLBranchRepository(BranchRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_active(self) -> Sequence[Branch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM branches WHERE is_active=1 ORDER BY name ASC")
            return [_to_branch(r) for r in fetchall(cur)]

    def get_by_id(self, branch_id: int) -> Optional[Branch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM branches WHERE id=%s", (branch_id,))
            r = fetchone(cur)
            return _to_branch(r) if r else None

    def get_by_name(self, name: str) -> Optional[Branch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM branches WHERE name=%s", (name,))
            r = fetchone(cur)
            return _to_branch(r) if r else None

    def create(self, *, name: str, address: Optional[str], phone: Optional[str]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO branches(name, address, phone, is_active) VALUES(%s,%s,%s,1)",
                (name, address, phone),
            )
            return int(cur.lastrowid)

    def update(
        self,
        branch_id: int,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE branches
                SET name=COALESCE(%s, name),
                    address=COALESCE(%s, address),
                    phone=COALESCE(%s, phone),
                    is_active=COALESCE(%s, is_active)
                WHERE id=%s
                """,
                (name, address, phone, None if is_active is None else int(is_active), branch_id),
            )
            return cur.rowcount > 0

    def counter_stats(self, branch_id: int) -> BranchCounterStats:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(DISTINCT c.id) AS counter_count,
                       COUNT(DISTINCT cs.counter_id) AS active_counters
                FROM counters c
                LEFT JOIN counter_sessions cs ON cs.counter_id = c.id AND cs.end_time IS NULL
                WHERE c.branch_id=%s
                """,
                (branch_id,),
            )
            r = fetchone(cur) or {}
            return BranchCounterStats(
                counter_count=as_int(r.get("counter_count")),
                active_counters=as_int(r.get("active_counters")),
            )

    def count_active_users(self, branch_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COUNT(*) AS n FROM users WHERE branch_id=%s AND is_active=1",
                (branch_id,),
            )
            return as_int((fetchone(cur) or {}).get("n"))

    def count_open_tickets(self, branch_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS n FROM queue
                WHERE branch_id=%s AND status IN ('waiting', 'called', 'serving')
                """,
                (branch_id,),
            )
            return as_int((fetchone(cur) or {}).get("n"))
