from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Branch:
    """Domain entity: one physical location."""

    branch_id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class BranchCounterStats:
    counter_count: int
    active_counters: int
