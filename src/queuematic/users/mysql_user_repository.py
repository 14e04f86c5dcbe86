from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_bool, db_cursor, fetchall, fetchone
from .model import User
from .repository import UserRepository

_SELECT = """
    SELECT u.id, u.username, u.password_hash, u.role, u.branch_id, u.is_active,
           u.created_at, u.last_login, b.name AS branch_name
    FROM users u
    LEFT JOIN branches b ON b.id = u.branch_id
"""


def _to_user(r: dict) -> User:
    return User(
        user_id=int(r["id"]),
        username=r["username"],
        password_hash=r["password_hash"],
        role=Role(r["role"]),
        branch_id=r.get("branch_id"),
        is_active=as_bool(r.get("is_active")),
        branch_name=r.get("branch_name"),
        created_at=r.get("created_at"),
        last_login=r.get("last_login"),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE u.id=%s", (user_id,))
            row = fetchone(cur)
            return _to_user(row) if row else None

    def get_by_username(self, username: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE u.username=%s", (username,))
            row = fetchone(cur)
            return _to_user(row) if row else None

    def list_all(self) -> Sequence[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " ORDER BY u.username ASC")
            return [_to_user(r) for r in fetchall(cur)]

    def create_user(
        self,
        *,
        username: str,
        password_hash: str,
        role: Role,
        branch_id: Optional[int],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(username, password_hash, role, branch_id, is_active)
                VALUES(%s,%s,%s,%s,1)
                """,
                (username, password_hash, role.value, branch_id),
            )
            return int(cur.lastrowid)

    def update_user(
        self,
        user_id: int,
        *,
        role: Optional[Role] = None,
        branch_id: Optional[int] = None,
        clear_branch: bool = False,
        is_active: Optional[bool] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE users
                SET role=COALESCE(%s, role),
                    branch_id=IF(%s, NULL, COALESCE(%s, branch_id)),
                    is_active=COALESCE(%s, is_active)
                WHERE id=%s
                """,
                (
                    role.value if role else None,
                    int(clear_branch),
                    branch_id,
                    None if is_active is None else int(is_active),
                    user_id,
                ),
            )
            return cur.rowcount > 0

    def set_password_hash(self, user_id: int, password_hash: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET password_hash=%s WHERE id=%s", (password_hash, user_id))
            return cur.rowcount > 0

    def touch_last_login(self, user_id: int, at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET last_login=%s WHERE id=%s", (at, user_id))
