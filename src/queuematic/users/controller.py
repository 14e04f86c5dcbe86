from __future__ import annotations

from flask import Flask, session

from ..common.datetime_utils import isoformat
from ..common.validators import optional_bool, optional_positive_int, require_positive_int
from ..container import Container
from ..core.enums import Role
from ..http.auth import admin_required, current_user, login_required
from ..http.middleware import client_ip
from ..http.responses import json_body, ok
from .model import User


def user_payload(u: User) -> dict:
    return {
        "id": u.user_id,
        "username": u.username,
        "role": u.role.value,
        "branchId": u.branch_id,
        "branchName": u.branch_name,
        "isActive": u.is_active,
        "createdAt": isoformat(u.created_at),
        "lastLogin": isoformat(u.last_login),
    }


def register(app: Flask, container: Container) -> None:
    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    def login():
        data = json_body()
        su = container.auth_service.authenticate(
            str(data.get("username") or "").strip(),
            str(data.get("password") or ""),
            client_id=client_ip(),
        )

        session.clear()
        session["user_id"] = su.user_id
        session["role"] = su.role.value
        session["branch_id"] = su.branch_id
        session.permanent = True

        return ok(
            {
                "user": {
                    "id": su.user_id,
                    "username": su.username,
                    "role": su.role.value,
                    "branchId": su.branch_id,
                    "branchName": su.branch_name,
                }
            },
            message="Login successful",
        )

    @app.route("/api/auth/logout", methods=["POST"], endpoint="auth_logout")
    @login_required
    def logout():
        user = current_user()
        if user.role == Role.CLERK:
            container.counter_session_service.end_open_session_for_user(user.user_id)
        session.clear()
        return ok(None, message="Logout successful")

    @app.route("/api/auth/me", methods=["GET"], endpoint="auth_me")
    @login_required
    def me():
        return ok(user_payload(current_user()))

    @app.route("/api/auth/change-password", methods=["POST"], endpoint="auth_change_password")
    @login_required
    def change_password():
        data = json_body()
        container.auth_service.change_password(
            user_id=current_user().user_id,
            current_password=str(data.get("currentPassword") or ""),
            new_password=str(data.get("newPassword") or ""),
        )
        return ok(None, message="Password changed successfully")

    # ===== ADMIN: USERS =====

    @app.route("/api/users", methods=["GET"], endpoint="users_list")
    @admin_required
    def users_list():
        return ok([user_payload(u) for u in container.user_service.list_users()])

    @app.route("/api/users", methods=["POST"], endpoint="users_create")
    @admin_required
    def users_create():
        data = json_body()
        user = container.user_service.create_user(
            username=str(data.get("username") or ""),
            password=str(data.get("password") or ""),
            role=str(data.get("role") or ""),
            branch_id=optional_positive_int(data.get("branchId"), "branchId"),
        )
        return ok(user_payload(user), message="User created successfully", status=201)

    @app.route("/api/users/<int:user_id>", methods=["GET"], endpoint="users_get")
    @admin_required
    def users_get(user_id: int):
        return ok(user_payload(container.user_service.get_user(user_id)))

    @app.route("/api/users/<int:user_id>", methods=["PUT"], endpoint="users_update")
    @admin_required
    def users_update(user_id: int):
        data = json_body()
        user = container.user_service.update_user(
            user_id,
            role=data.get("role"),
            branch_id=optional_positive_int(data.get("branchId"), "branchId"),
            is_active=optional_bool(data.get("isActive"), "isActive"),
        )
        return ok(user_payload(user), message="User updated successfully")

    @app.route("/api/users/<int:user_id>", methods=["DELETE"], endpoint="users_delete")
    @admin_required
    def users_delete(user_id: int):
        container.user_service.deactivate_user(current_user_id=current_user().user_id, user_id=user_id)
        return ok(None, message="User deactivated successfully")

    @app.route("/api/users/<int:user_id>/reset-password", methods=["POST"], endpoint="users_reset_password")
    @admin_required
    def users_reset_password(user_id: int):
        data = json_body()
        container.user_service.reset_password(
            user_id=require_positive_int(user_id, "userId"),
            new_password=str(data.get("newPassword") or ""),
        )
        return ok(None, message="Password reset successfully")
