from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Branch, BranchCounterStats


class BranchRepository(Protocol):
    """Repository interface for Branch.

    Services depend on this interface, never on a concrete database.
    """

    def list_active(self) -> Sequence[Branch]:
        raise NotImplementedError

    def get_by_id(self, branch_id: int) -> Optional[Branch]:
        raise NotImplementedError

    def get_by_name(self, name: str) -> Optional[Branch]:
        raise NotImplementedError

    def create(self, *, name: str, address: Optional[str], phone: Optional[str]) -> int:
        raise NotImplementedError

    def update(
        self,
        branch_id: int,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> bool:
        raise NotImplementedError

    def counter_stats(self, branch_id: int) -> BranchCounterStats:
        raise NotImplementedError

    def count_active_users(self, branch_id: int) -> int:
        raise NotImplementedError

    def count_open_tickets(self, branch_id: int) -> int:
        raise NotImplementedError
