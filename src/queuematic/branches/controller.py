from __future__ import annotations

from flask import Flask

from ..common.datetime_utils import isoformat
from ..common.validators import optional_bool
from ..container import Container
from ..counters.controller import overview_payload
from ..http.auth import admin_required, current_user, login_required
from ..http.responses import json_body, ok
from .model import Branch


def branch_payload(b: Branch) -> dict:
    return {
        "id": b.branch_id,
        "name": b.name,
        "address": b.address,
        "phone": b.phone,
        "isActive": b.is_active,
        "createdAt": isoformat(b.created_at),
        "updatedAt": isoformat(b.updated_at),
    }


def register(app: Flask, container: Container) -> None:
    # Branch lookups are public: the customer tablet picks its branch here.
    @app.route("/api/branches", methods=["GET"], endpoint="branches_list")
    def branches_list():
        return ok([branch_payload(b) for b in container.branch_service.list_branches()])

    @app.route("/api/branches/<int:branch_id>", methods=["GET"], endpoint="branches_get")
    def branches_get(branch_id: int):
        branch, stats = container.branch_service.get_with_stats(branch_id)
        payload = branch_payload(branch)
        payload["counterCount"] = stats.counter_count
        payload["activeCounters"] = stats.active_counters
        return ok(payload)

    @app.route("/api/branches/<int:branch_id>/counters", methods=["GET"], endpoint="branches_counters")
    @login_required
    def branches_counters(branch_id: int):
        rows = container.counter_service.list_overview(user=current_user(), branch_id=branch_id)
        return ok([overview_payload(r) for r in rows])

    @app.route("/api/branches", methods=["POST"], endpoint="branches_create")
    @admin_required
    def branches_create():
        data = json_body()
        branch = container.branch_service.create_branch(
            name=str(data.get("name") or ""),
            address=str(data.get("address") or ""),
            phone=data.get("phone"),
        )
        return ok(branch_payload(branch), message="Branch created successfully", status=201)

    @app.route("/api/branches/<int:branch_id>", methods=["PUT"], endpoint="branches_update")
    @admin_required
    def branches_update(branch_id: int):
        data = json_body()
        branch = container.branch_service.update_branch(
            branch_id,
            name=data.get("name"),
            address=data.get("address"),
            phone=data.get("phone"),
            is_active=optional_bool(data.get("isActive"), "isActive"),
        )
        return ok(branch_payload(branch), message="Branch updated successfully")

    @app.route("/api/branches/<int:branch_id>", methods=["DELETE"], endpoint="branches_delete")
    @admin_required
    def branches_delete(branch_id: int):
        container.branch_service.deactivate_branch(branch_id)
        return ok(None, message="Branch deactivated successfully")
