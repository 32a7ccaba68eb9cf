"""
Release phase: migrate the schema to head, then make sure a dashboard
account exists. Prints one summary line so deploy logs show what changed.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def release_database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL must be set for the release phase.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against a sqlite DATABASE_URL in production.")
    return db_url


def migrate(db_url: str) -> str:
    """Upgrade to head and return the head revision id."""
    from alembic import command
    from alembic.config import Config
    from alembic.script import ScriptDirectory

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")
    return ScriptDirectory.from_config(cfg).get_current_head() or "(none)"


def run_release() -> dict:
    db_url = release_database_url()
    revision = migrate(db_url)

    from scripts import init_db

    seeded = init_db.seed_only(database_url=db_url)
    report = {"revision": revision, "seeded": seeded}
    print(f"Release complete: schema at {revision}; seeded={seeded or 'nothing'}", flush=True)
    return report


if __name__ == "__main__":
    run_release()
