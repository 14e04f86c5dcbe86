"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_SERVICE_SECONDS = 180
RECENT_COMPLETED_STATUS_LIMIT = 5
RECENT_COMPLETED_DISPLAY_LIMIT = 3
DISPLAY_WAITING_LIMIT = 10
PASSWORD_MIN_LENGTH = 6

LOGIN_MAX_ATTEMPTS = 5
LOGIN_WINDOW_SECONDS = 15 * 60

STALE_WAITING_DAYS = 1
COMPLETED_RETENTION_DAYS = 7
