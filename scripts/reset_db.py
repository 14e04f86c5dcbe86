from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from queuematic.config import get_settings_module
from queuematic.database.bootstrap import apply_schema, apply_seed_sql, drop_all_tables, ensure_demo_users


def main() -> None:
    parser = argparse.ArgumentParser(description="Drop all tables, re-apply schema.sql and optionally seed demo data.")
    parser.add_argument("--seed", action="store_true", help="also load seed.sql and demo users")
    parser.add_argument("--yes", action="store_true", help="do not ask for confirmation")
    args = parser.parse_args()

    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)
    target = f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}"

    if not args.yes:
        answer = input(f"This deletes ALL data in {target}. Continue? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted.")
            return

    drop_all_tables(db_config)
    apply_schema(db_config)
    if args.seed:
        apply_seed_sql(db_config)
        ensure_demo_users(db_config)

    print(f"OK: Reset database -> {target}" + (" (seeded)" if args.seed else ""))


if __name__ == "__main__":
    main()
