from __future__ import annotations

from functools import wraps

from flask import current_app, g, session

from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError
from ..users.model import User

EXTENSION_KEY = "queuematic"


def get_container():
    return current_app.extensions[EXTENSION_KEY]


def current_user() -> User:
    return g.current_user


def login_required(view):
    """Resolve the signed session cookie to an active user on ``g.current_user``."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        user_id = session.get("user_id")
        if user_id is None:
            raise AuthenticationError("Authentication required")
        try:
            g.current_user = get_container().auth_service.load_active_user(int(user_id))
        except AuthenticationError:
            session.clear()
            raise
        return view(*args, **kwargs)

    return wrapper


def role_required(*roles: Role):
    def decorator(view):
        @login_required
        @wraps(view)
        def wrapper(*args, **kwargs):
            if g.current_user.role not in roles:
                raise AuthorizationError()
            return view(*args, **kwargs)

        return wrapper

    return decorator


admin_required = role_required(Role.ADMIN)
clerk_required = role_required(Role.CLERK)
