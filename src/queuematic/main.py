from __future__ import annotations

import importlib
import os
from typing import Optional

from dotenv import load_dotenv
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from .branches.controller import register as register_branches
from .common.datetime_utils import isoformat, now_local
from .common.rate_limit import FixedWindowLimiter
from .config import get_settings_module
from .container import Container, build_container
from .core.constants import DEFAULT_SERVICE_SECONDS
from .counters.controller import register as register_counters
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .http.auth import EXTENSION_KEY
from .http.errors import register_error_handlers
from .http.middleware import Cors, RateLimit, RequestLogging, SecurityHeaders
from .http.responses import ok
from .logging_config import configure_logging
from .status.controller import register as register_status
from .tickets.controller import register as register_tickets
from .users.controller import register as register_users


def create_app(*, settings_module: Optional[str] = None, container: Optional[Container] = None) -> Flask:
    """Build the Flask app.

    ``container`` replaces the MySQL wiring (tests pass one built from
    in-memory repositories); database bootstrap is skipped in that case.
    """

    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.json.sort_keys = False

    proxy_hops = int(getattr(settings, "PROXY_FIX_X_FOR", 0))
    if proxy_hops > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=proxy_hops)

    logger = configure_logging(getattr(settings, "LOG_LEVEL", "INFO"), getattr(settings, "LOG_FILE", None))
    db_config = getattr(settings, "DB_CONFIG")
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if container is None:
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config)
            logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config)
            ensure_demo_users(db_config)
            logger.info("Demo seed ready")
        container = build_container(
            db_config=db_config,
            default_service_seconds=int(getattr(settings, "DEFAULT_SERVICE_SECONDS", DEFAULT_SERVICE_SECONDS)),
        )
    app.extensions[EXTENSION_KEY] = container

    # before_request hooks run in this order; Cors answers preflight before the limiter.
    RequestLogging(app)
    SecurityHeaders(app)
    Cors(app, origins=getattr(settings, "CORS_ORIGINS", []))
    RateLimit(
        app,
        limiter=FixedWindowLimiter(
            limit=int(getattr(settings, "RATE_LIMIT_MAX_REQUESTS", 1000)),
            window_seconds=int(getattr(settings, "RATE_LIMIT_WINDOW_SECONDS", 900)),
        ),
    )
    register_error_handlers(app)

    @app.route("/health", methods=["GET"], endpoint="health")
    def health():
        return ok({"status": "ok", "timestamp": isoformat(now_local())})

    register_users(app, container)
    register_branches(app, container)
    register_counters(app, container)
    register_tickets(app, container)
    register_status(app, container)

    return app


def run() -> None:
    app = create_app()
    app.run(host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "5000")), debug=app.config["DEBUG"])


if __name__ == "__main__":
    run()
