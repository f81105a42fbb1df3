from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.clinical_hours.clinical_hours.database.bootstrap import (
    DEMO_PASSWORDS,
    DEMO_STUDENT_PASSWORD,
    apply_seed_sql,
    ensure_demo_users,
)


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    apply_seed_sql(db_config, seed_path=REPO_ROOT / "database" / "seed.sql")
    ensure_demo_users(db_config)

    print(f"OK: demo data seeded into {db_config.get('database')}")
    for email, password in DEMO_PASSWORDS.items():
        print(f"  {email} / {password}")
    print(f"  seeded students / {DEMO_STUDENT_PASSWORD}")


if __name__ == "__main__":
    main()
