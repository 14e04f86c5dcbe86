from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from flask import Flask, current_app, g, request

from ..common.rate_limit import FixedWindowLimiter
from ..core.exceptions import RateLimitedError

logger = logging.getLogger("queuematic.requests")

RATE_LIMIT_EXEMPT_PATHS = frozenset({"/health"})


def client_ip() -> str:
    # Forwarded headers are honoured only through ProxyFix (PROXY_FIX_X_FOR).
    return request.remote_addr or "-"


class Cors:
    """Allow-list CORS with credentials; answers preflight requests itself."""

    def __init__(self, app: Optional[Flask] = None, *, origins: Iterable[str] = ()):
        self.origins = frozenset(origins)
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.before_request(self.before_request)
        app.after_request(self.after_request)

    def before_request(self):
        if request.method == "OPTIONS":
            return app_response_no_content()
        return None

    def after_request(self, response):
        origin = request.headers.get("Origin")
        if origin and origin in self.origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
            response.headers.add("Vary", "Origin")
        return response


def app_response_no_content():
    return current_app.response_class(status=204)


class RateLimit:
    """Fixed-window request limit per client IP."""

    def __init__(self, app: Optional[Flask] = None, *, limiter: Optional[FixedWindowLimiter] = None):
        self.limiter = limiter
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.before_request(self.before_request)

    def before_request(self):
        if self.limiter is None or request.method == "OPTIONS" or request.path in RATE_LIMIT_EXEMPT_PATHS:
            return None
        if not self.limiter.hit(client_ip()):
            raise RateLimitedError()
        return None


class RequestLogging:
    def __init__(self, app: Optional[Flask] = None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.before_request(self.before_request)
        app.after_request(self.after_request)

    def before_request(self):
        g.request_started = time.perf_counter()

    def after_request(self, response):
        started = g.get("request_started")
        duration_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        logger.info(
            "%s %s %s %.1fms %s",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            client_ip(),
        )
        return response


class SecurityHeaders:
    """Baseline response headers for a JSON API."""

    def __init__(self, app: Optional[Flask] = None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.after_request(self.after_request)
        if app.config.get("SESSION_COOKIE_SAMESITE") is None:
            app.config["SESSION_COOKIE_SAMESITE"] = "Lax"

    def after_request(self, response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
        return response
