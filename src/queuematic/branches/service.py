from __future__ import annotations

from typing import Optional, Sequence

from ..common.validators import require_non_empty
from ..core.exceptions import BranchNotFound, ConflictError, DuplicateError
from .model import Branch, BranchCounterStats
from .repository import BranchRepository


class BranchService:
    """Use cases around branches (admin management + lookups)."""

    def __init__(self, branches: BranchRepository):
        self._branches = branches

    def list_branches(self) -> Sequence[Branch]:
        return list(self._branches.list_active())

    def require_active(self, branch_id: int) -> Branch:
        branch = self._branches.get_by_id(int(branch_id))
        if not branch or not branch.is_active:
            raise BranchNotFound()
        return branch

    def get_with_stats(self, branch_id: int) -> tuple[Branch, BranchCounterStats]:
        branch = self.require_active(branch_id)
        return branch, self._branches.counter_stats(branch.branch_id)

    def create_branch(self, *, name: str, address: str, phone: Optional[str] = None) -> Branch:
        name = require_non_empty(name, "name")
        address = require_non_empty(address, "address")

        if self._branches.get_by_name(name):
            raise DuplicateError("Branch name already exists")

        branch_id = self._branches.create(name=name, address=address, phone=(phone or "").strip() or None)
        return self._branches.get_by_id(branch_id) or Branch(branch_id=branch_id, name=name, address=address, phone=phone)

    def update_branch(
        self,
        branch_id: int,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Branch:
        existing = self._branches.get_by_id(int(branch_id))
        if not existing:
            raise BranchNotFound()

        if name is not None:
            name = require_non_empty(name, "name")
            if name != existing.name:
                other = self._branches.get_by_name(name)
                if other and other.branch_id != existing.branch_id:
                    raise DuplicateError("Branch name already exists")

        self._branches.update(existing.branch_id, name=name, address=address, phone=phone, is_active=is_active)
        return self._branches.get_by_id(existing.branch_id) or existing

    def deactivate_branch(self, branch_id: int) -> None:
        existing = self._branches.get_by_id(int(branch_id))
        if not existing:
            raise BranchNotFound()

        if self._branches.count_active_users(existing.branch_id) > 0:
            raise ConflictError("Cannot delete branch with active users")
        if self._branches.count_open_tickets(existing.branch_id) > 0:
            raise ConflictError("Cannot delete branch with active queue items")

        self._branches.update(existing.branch_id, is_active=False)
