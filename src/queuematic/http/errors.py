from __future__ import annotations

import logging

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from .responses import fail

logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their bases.
STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (RateLimitedError, 429),
)


def status_for(error: DomainError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 400


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        status = status_for(e)
        log = logger.warning if status in (401, 403, 429) else logger.info
        log("%s %s -> %s %s: %s", request.method, request.path, status, e.code, e.message)
        return fail(e.message, code=e.code, status=status, field=getattr(e, "field", None))

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        code = "NOT_FOUND" if e.code == 404 else "HTTP_ERROR"
        return fail(e.description or e.name, code=code, status=e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return fail("Internal server error", code="INTERNAL_ERROR", status=500)
