from __future__ import annotations

from flask import Flask

from ..common.datetime_utils import isoformat
from ..container import Container
from ..http.auth import admin_required, clerk_required, current_user, login_required
from ..http.responses import json_body, ok
from .model import QueueTicket


def ticket_payload(t: QueueTicket) -> dict:
    return {
        "id": t.ticket_id,
        "branchId": t.branch_id,
        "number": t.number,
        "status": t.status.value,
        "createdAt": isoformat(t.created_at),
        "calledAt": isoformat(t.called_at),
        "servingAt": isoformat(t.serving_at),
        "completedAt": isoformat(t.completed_at),
        "counterId": t.counter_id,
        "counterNumber": t.counter_number,
        "serviceDuration": t.service_duration,
    }


def register(app: Flask, container: Container) -> None:
    # Customers are anonymous; issuing a number needs no login.
    @app.route("/api/queue/next-number", methods=["POST"], endpoint="queue_next_number")
    def next_number():
        data = json_body()
        ticket = container.ticket_service.request_ticket(data.get("branchId"))
        return ok(ticket_payload(ticket), message=f"Your number is {ticket.number}", status=201)

    @app.route("/api/queue/call-next", methods=["POST"], endpoint="queue_call_next")
    @clerk_required
    def call_next():
        data = json_body()
        ticket = container.ticket_service.call_next(user=current_user(), counter_id=data.get("counterId"))
        return ok(ticket_payload(ticket), message=f"Calling number {ticket.number}")

    @app.route("/api/queue/start-serving", methods=["POST"], endpoint="queue_start_serving")
    @login_required
    def start_serving():
        data = json_body()
        ticket = container.ticket_service.start_serving(user=current_user(), ticket_id=data.get("ticketId"))
        return ok(ticket_payload(ticket), message="Service started")

    @app.route("/api/queue/complete", methods=["POST"], endpoint="queue_complete")
    @login_required
    def complete():
        data = json_body()
        ticket = container.ticket_service.complete_service(user=current_user(), ticket_id=data.get("ticketId"))
        return ok(ticket_payload(ticket), message="Service completed")

    @app.route("/api/queue/<int:ticket_id>", methods=["DELETE"], endpoint="queue_delete")
    @admin_required
    def delete(ticket_id: int):
        container.ticket_service.cancel_ticket(ticket_id)
        return ok(None, message="Queue item deleted")
