import os

from . import parse_origins

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "qm_user"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "queuematic"),
}

CORS_ORIGINS = parse_origins(os.getenv("CORS_ORIGINS", ""))

RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900"))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "1000"))

# Number of trusted reverse proxies in front of the app; 0 ignores X-Forwarded-For
PROXY_FIX_X_FOR = int(os.getenv("PROXY_FIX_X_FOR", "0"))

DEFAULT_SERVICE_SECONDS = int(os.getenv("DEFAULT_SERVICE_SECONDS", "180"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "logs/queuematic.log")

DEBUG = False

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
