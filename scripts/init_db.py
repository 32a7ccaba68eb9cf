import sys
from pathlib import Path
import os

from sqlalchemy.orm import Session
from contextlib import contextmanager

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.adminkit.db import make_engine, make_sessionmaker
from app.adminkit.models import Account, AccountClass, Base
from app.adminkit.modules.accounts.repository import AuthRepository
from app.adminkit.security import hash_password


@contextmanager
def _session_scope(database_url: str, *, create_tables: bool):
    engine = make_engine(database_url)
    if create_tables:
        Base.metadata.create_all(bind=engine)
    s: Session = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


def seed_only(*, database_url: str | None = None, create_tables: bool = False) -> str | None:
    """
    Create the first dashboard account when the database has none.

    Returns the seeded email, or None when nothing was created. Existing
    accounts (and their passwords) are never touched.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_name = (os.environ.get("ADMIN_NAME") or "Administrator").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///adminkit.db").strip()

    with _session_scope(db_url, create_tables=create_tables) as s:
        repo = AuthRepository(s)
        existing = repo.count_by({"account_class": AccountClass.DASHBOARD})
        if existing:
            print(f"Seed skipped: {existing} dashboard account(s) already present.")
            return None
        if repo.email_taken(admin_email):
            print(f"Seed skipped: {admin_email} belongs to a non-dashboard or deleted account.")
            return None
        repo.add(
            Account(
                name=admin_name,
                email=admin_email,
                password_hash=hash_password(admin_password),
                is_active=True,
                account_class=AccountClass.DASHBOARD,
                email_verified=True,
            )
        )

    print(f"Seeded dashboard account: {admin_email} (password from ADMIN_PASSWORD)")
    return admin_email


def main() -> None:
    # Local/dev convenience: create tables directly, no migrations.
    seed_only(database_url=None, create_tables=True)


if __name__ == "__main__":
    main()
