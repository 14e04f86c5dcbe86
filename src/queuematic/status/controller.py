from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date
from ..container import Container
from ..core.exceptions import ValidationError
from ..http.auth import current_user, login_required
from ..http.responses import ok


def register(app: Flask, container: Container) -> None:
    @app.route("/api/queue/status/<branch_id>", methods=["GET"], endpoint="queue_status")
    def status(branch_id):
        return ok(container.status_service.branch_status(branch_id))

    @app.route("/api/queue/display/<branch_id>", methods=["GET"], endpoint="queue_display")
    def display(branch_id):
        return ok(container.status_service.display_snapshot(branch_id))

    @app.route("/api/queue/history/<user_id>", methods=["GET"], endpoint="queue_history")
    @login_required
    def history(user_id):
        raw = request.args.get("date")
        day = None
        if raw:
            try:
                day = parse_iso_date(raw)
            except ValueError:
                raise ValidationError("date must be YYYY-MM-DD", field="date")
        return ok(container.status_service.work_history(viewer=current_user(), user_id=user_id, day=day))
