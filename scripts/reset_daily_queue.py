from __future__ import annotations

import importlib
import sys
from pathlib import Path

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from queuematic.config import get_settings_module
from queuematic.container import build_container
from queuematic.logging_config import configure_logging


def main() -> None:
    """Nightly job: cancel yesterday's leftover waiting tickets, purge old completed ones."""
    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"), getattr(settings, "LOG_FILE", None))

    container = build_container(db_config=dict(settings.DB_CONFIG))
    result = container.ticket_service.run_daily_maintenance()

    print(f"OK: cancelled {result.cancelled_waiting} waiting, purged {result.purged_completed} completed")


if __name__ == "__main__":
    main()
