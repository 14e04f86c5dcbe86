from __future__ import annotations

from typing import Optional

from flask import Flask

from ..common.datetime_utils import isoformat
from ..common.validators import optional_bool
from ..container import Container
from ..http.auth import admin_required, clerk_required, current_user, login_required
from ..http.responses import json_body, ok
from .model import Counter, CounterOverview, CurrentTicket


def counter_payload(c: Counter) -> dict:
    return {
        "id": c.counter_id,
        "branchId": c.branch_id,
        "number": c.number,
        "isActive": c.is_active,
    }


def _current_ticket_payload(t: Optional[CurrentTicket]) -> Optional[dict]:
    if t is None:
        return None
    return {
        "id": t.ticket_id,
        "number": t.number,
        "status": t.status.value,
        "createdAt": isoformat(t.created_at),
    }


def overview_payload(o: CounterOverview) -> dict:
    payload = counter_payload(o.counter)
    payload.update(
        {
            "sessionId": o.session_id,
            "userId": o.user_id,
            "clerkUsername": o.clerk_username,
            "startTime": isoformat(o.start_time),
            "currentTicket": _current_ticket_payload(o.current_ticket),
        }
    )
    return payload


def register(app: Flask, container: Container) -> None:
    @app.route("/api/counters/start-session", methods=["POST"], endpoint="counters_start_session")
    @clerk_required
    def start_session():
        data = json_body()
        session, counter = container.counter_session_service.start_session(
            user=current_user(),
            counter_id=data.get("counterId"),
        )
        return ok(
            {
                "sessionId": session.session_id,
                "counterId": counter.counter_id,
                "counterNumber": counter.number,
                "branchId": counter.branch_id,
                "startTime": isoformat(session.start_time),
            },
            message="Counter session started",
        )

    @app.route("/api/counters/end-session", methods=["POST"], endpoint="counters_end_session")
    @login_required
    def end_session():
        data = json_body()
        session = container.counter_session_service.end_session(user=current_user(), session_id=data.get("sessionId"))
        return ok(
            {
                "sessionId": session.session_id,
                "counterId": session.counter_id,
                "endTime": isoformat(session.end_time),
            },
            message="Counter session ended",
        )

    @app.route("/api/counters/my-session", methods=["GET"], endpoint="counters_my_session")
    @clerk_required
    def my_session():
        active = container.counter_session_service.get_active_session(current_user().user_id)
        if active is None:
            return ok(None)
        return ok(
            {
                "sessionId": active.session_id,
                "counterId": active.counter_id,
                "counterNumber": active.counter_number,
                "branchId": active.branch_id,
                "branchName": active.branch_name,
                "startTime": isoformat(active.start_time),
                "currentTicket": _current_ticket_payload(active.current_ticket),
            }
        )

    @app.route("/api/counters/last-used", methods=["GET"], endpoint="counters_last_used")
    @clerk_required
    def last_used():
        last = container.counter_session_service.get_last_used_counter(current_user().user_id)
        if last is None:
            return ok(None)
        return ok(
            {
                "counterId": last.counter_id,
                "counterNumber": last.counter_number,
                "branchId": last.branch_id,
                "branchName": last.branch_name,
                "lastUsed": isoformat(last.last_used),
            }
        )

    @app.route("/api/counters/available/<int:branch_id>", methods=["GET"], endpoint="counters_available")
    @login_required
    def available(branch_id: int):
        rows = container.counter_service.list_available(user=current_user(), branch_id=branch_id)
        return ok([counter_payload(c) for c in rows])

    @app.route("/api/counters/branch/<int:branch_id>", methods=["GET"], endpoint="counters_by_branch")
    @login_required
    def by_branch(branch_id: int):
        rows = container.counter_service.list_overview(user=current_user(), branch_id=branch_id)
        return ok([overview_payload(r) for r in rows])

    # ===== ADMIN: COUNTERS =====

    @app.route("/api/counters", methods=["POST"], endpoint="counters_create")
    @admin_required
    def counters_create():
        data = json_body()
        counter = container.counter_service.create_counter(branch_id=data.get("branchId"), number=data.get("number"))
        return ok(counter_payload(counter), message="Counter created successfully", status=201)

    @app.route("/api/counters/<int:counter_id>", methods=["PUT"], endpoint="counters_update")
    @admin_required
    def counters_update(counter_id: int):
        data = json_body()
        counter = container.counter_service.update_counter(
            counter_id,
            number=data.get("number"),
            is_active=optional_bool(data.get("isActive"), "isActive"),
        )
        return ok(counter_payload(counter), message="Counter updated successfully")

    @app.route("/api/counters/<int:counter_id>", methods=["DELETE"], endpoint="counters_delete")
    @admin_required
    def counters_delete(counter_id: int):
        deleted = container.counter_service.delete_counter(counter_id)
        message = "Counter deleted successfully" if deleted else "Counter has ticket history and was deactivated"
        return ok({"deleted": deleted}, message=message)
