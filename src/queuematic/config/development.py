import os

from . import parse_origins

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "qm_user"),
    "password": os.getenv("DB_PASSWORD", "qm_password"),
    "database": os.getenv("DB_NAME", "queuematic"),
}

CORS_ORIGINS = parse_origins(
    os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5174,http://localhost:5173,http://localhost:3000",
    )
)

# Short window, high threshold while developing against hot-reloading clients
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "10000"))

# Number of trusted reverse proxies in front of the app; 0 ignores X-Forwarded-For
PROXY_FIX_X_FOR = int(os.getenv("PROXY_FIX_X_FOR", "0"))

DEFAULT_SERVICE_SECONDS = int(os.getenv("DEFAULT_SERVICE_SECONDS", "180"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
LOG_FILE = os.getenv("LOG_FILE") or None

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed demo data on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
