import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "qm_user"),
    "password": os.getenv("DB_PASSWORD", "qm_password"),
    "database": os.getenv("DB_NAME", "queuematic_test"),
}

CORS_ORIGINS = ["http://localhost:5173"]

RATE_LIMIT_WINDOW_SECONDS = 60
RATE_LIMIT_MAX_REQUESTS = 10000

PROXY_FIX_X_FOR = 0

DEFAULT_SERVICE_SECONDS = 180

LOG_LEVEL = "WARNING"
LOG_FILE = None

DEBUG = False
TESTING = True

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
