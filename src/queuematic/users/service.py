from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from werkzeug.security import check_password_hash, generate_password_hash

from ..branches.repository import BranchRepository
from ..common.datetime_utils import now_local
from ..common.rate_limit import FixedWindowLimiter
from ..common.validators import require_min_length, require_non_empty
from ..core.constants import LOGIN_MAX_ATTEMPTS, LOGIN_WINDOW_SECONDS, PASSWORD_MIN_LENGTH
from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BranchNotFound,
    DuplicateError,
    RateLimitedError,
    UserNotFound,
    ValidationError,
)
from .model import User
from .repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionUser:
    """What we store into the Flask session after login."""

    user_id: int
    username: str
    role: Role
    branch_id: Optional[int]
    branch_name: Optional[str]


def _parse_role(value: str) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationError("Role must be either admin or clerk", field="role")


class AuthService:
    """Use case: authenticate user (login)."""

    def __init__(self, users: UserRepository, *, login_limiter: Optional[FixedWindowLimiter] = None):
        self._users = users
        self._limiter = login_limiter or FixedWindowLimiter(
            limit=LOGIN_MAX_ATTEMPTS, window_seconds=LOGIN_WINDOW_SECONDS
        )

    def authenticate(self, username: str, password: str, *, client_id: str = "", now: Optional[datetime] = None) -> SessionUser:
        if not username or not password:
            raise ValidationError("Username and password are required")

        if not self._limiter.hit(f"{client_id}:{username}"):
            logger.warning("Login rate limit hit for %s from %s", username, client_id or "-")
            raise RateLimitedError("Too many login attempts. Please try again later.")

        user = self._users.get_by_username(username)
        if not user:
            raise AuthenticationError()
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        try:
            ok = check_password_hash(user.password_hash, password)
        except ValueError:
            # e.g. placeholder hashes or hashes from another algorithm
            ok = False

        if not ok:
            raise AuthenticationError()

        self._users.touch_last_login(user.user_id, now or now_local())
        logger.info("User %s logged in", user.username)

        return SessionUser(
            user_id=user.user_id,
            username=user.username,
            role=user.role,
            branch_id=user.branch_id,
            branch_name=user.branch_name,
        )

    def load_active_user(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user or not user.is_active:
            raise AuthenticationError("User account is not available")
        return user

    def change_password(self, *, user_id: int, current_password: str, new_password: str) -> None:
        if not current_password or not new_password:
            raise ValidationError("Current password and new password are required")
        require_min_length(new_password, "newPassword", PASSWORD_MIN_LENGTH)

        user = self._users.get_by_id(int(user_id))
        if not user:
            raise UserNotFound()
        if not check_password_hash(user.password_hash, current_password):
            raise ValidationError("Current password is incorrect", field="currentPassword")

        self._users.set_password_hash(user.user_id, generate_password_hash(new_password))


class UserService:
    """Use case: manage users (admin)."""

    def __init__(self, users: UserRepository, branches: BranchRepository):
        self._users = users
        self._branches = branches

    def list_users(self) -> Sequence[User]:
        return list(self._users.list_all())

    def get_user(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise UserNotFound()
        return user

    def _check_branch(self, branch_id: Optional[int]) -> None:
        if branch_id is not None and not self._branches.get_by_id(int(branch_id)):
            raise BranchNotFound()

    def create_user(self, *, username: str, password: str, role: str, branch_id: Optional[int]) -> User:
        username = require_non_empty(username, "username")
        require_non_empty(password, "password")
        require_min_length(password, "password", PASSWORD_MIN_LENGTH)
        role_e = _parse_role(role)

        if role_e == Role.CLERK and branch_id is None:
            raise ValidationError("Branch ID is required for clerk role", field="branchId")

        if self._users.get_by_username(username):
            raise DuplicateError("Username already exists")
        self._check_branch(branch_id)

        user_id = self._users.create_user(
            username=username,
            password_hash=generate_password_hash(password),
            role=role_e,
            branch_id=branch_id,
        )
        return self.get_user(user_id)

    def update_user(
        self,
        user_id: int,
        *,
        role: Optional[str] = None,
        branch_id: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> User:
        existing = self.get_user(user_id)
        role_e = _parse_role(role) if role is not None else None
        effective_role = role_e or existing.role

        if effective_role == Role.CLERK and branch_id is None and existing.branch_id is None:
            raise ValidationError("Branch ID is required for clerk role", field="branchId")
        self._check_branch(branch_id)

        self._users.update_user(
            existing.user_id,
            role=role_e,
            branch_id=branch_id,
            clear_branch=effective_role == Role.ADMIN and branch_id is None and role_e == Role.ADMIN,
            is_active=is_active,
        )
        return self.get_user(existing.user_id)

    def deactivate_user(self, *, current_user_id: int, user_id: int) -> None:
        existing = self.get_user(user_id)
        if existing.user_id == int(current_user_id):
            raise AuthorizationError("Cannot deactivate your own account")
        self._users.update_user(existing.user_id, is_active=False)

    def reset_password(self, *, user_id: int, new_password: str) -> None:
        require_min_length(new_password, "newPassword", PASSWORD_MIN_LENGTH)
        existing = self.get_user(user_id)
        self._users.set_password_hash(existing.user_id, generate_password_hash(new_password))
