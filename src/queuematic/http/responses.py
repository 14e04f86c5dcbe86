from __future__ import annotations

from typing import Any, Optional

from flask import jsonify, request


def ok(data: Any = None, *, message: Optional[str] = None, status: int = 200):
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return jsonify(body), status


def fail(message: str, *, code: str, status: int, field: Optional[str] = None):
    error: dict[str, Any] = {"code": code}
    if field:
        error["field"] = field
    return jsonify({"success": False, "message": message, "error": error}), status


def json_body() -> dict:
    """Request JSON as a dict; a missing or malformed body reads as empty."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
