from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: a staff account.

    Plain data object, no database access.
    """

    user_id: int
    username: str
    password_hash: str
    role: Role
    branch_id: Optional[int]
    is_active: bool = True
    branch_name: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
