"""Seed, release and start entrypoints."""
import pytest
from sqlalchemy import select

from app.adminkit.db import make_engine, make_sessionmaker
from app.adminkit.models import Account, AccountClass, Base
from app.adminkit.security import hash_password, verify_password
from scripts import init_db, release, start


@pytest.fixture()
def db_url(tmp_path, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAIL", "Root@Example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "secret1")
    monkeypatch.setenv("ADMIN_NAME", "Root")
    return f"sqlite:///{tmp_path/'seed.db'}"


def _accounts(db_url):
    engine = make_engine(db_url)
    s = make_sessionmaker(engine)()
    try:
        return s.scalars(select(Account).order_by(Account.id)).all()
    finally:
        s.close()
        engine.dispose()


def test_seed_creates_first_dashboard_account_once(db_url):
    assert init_db.seed_only(database_url=db_url, create_tables=True) == "root@example.com"
    assert init_db.seed_only(database_url=db_url) is None

    accounts = _accounts(db_url)
    assert len(accounts) == 1
    assert accounts[0].account_class == AccountClass.DASHBOARD
    assert accounts[0].email_verified
    assert verify_password(accounts[0].password_hash, "secret1")


def test_seed_skips_when_any_dashboard_account_exists(db_url, monkeypatch):
    init_db.seed_only(database_url=db_url, create_tables=True)
    monkeypatch.setenv("ADMIN_EMAIL", "second@example.com")
    assert init_db.seed_only(database_url=db_url) is None
    assert [a.email for a in _accounts(db_url)] == ["root@example.com"]


def test_seed_does_not_take_over_panel_account_email(db_url):
    engine = make_engine(db_url)
    Base.metadata.create_all(bind=engine)
    s = make_sessionmaker(engine)()
    s.add(Account(name="P", email="root@example.com", password_hash=hash_password("pw1234"), account_class="panel"))
    s.commit()
    s.close()
    engine.dispose()

    assert init_db.seed_only(database_url=db_url) is None
    assert [a.account_class for a in _accounts(db_url)] == [AccountClass.PANEL]


def test_release_migrates_then_seeds(db_url, monkeypatch):
    migrated = []

    def fake_migrate(url):
        engine = make_engine(url)
        Base.metadata.create_all(bind=engine)
        engine.dispose()
        migrated.append(url)
        return "a0c1d2e3f4a5"

    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setattr(release, "migrate", fake_migrate)

    assert release.run_release() == {"revision": "a0c1d2e3f4a5", "seeded": "root@example.com"}
    assert release.run_release() == {"revision": "a0c1d2e3f4a5", "seeded": None}
    assert migrated == [db_url, db_url]


def test_release_requires_postgres_in_production(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        release.release_database_url()
    monkeypatch.setenv("DATABASE_URL", "sqlite:///prod.db")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError):
        release.release_database_url()


def test_gunicorn_argv_defaults_and_overrides(monkeypatch):
    for k in ("PORT", "WEB_CONCURRENCY", "GUNICORN_TIMEOUT"):
        monkeypatch.delenv(k, raising=False)
    argv = start.gunicorn_argv()
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:8080"
    assert argv[argv.index("--workers") + 1] == "2"

    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("WEB_CONCURRENCY", "4")
    argv = start.gunicorn_argv()
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:9000"
    assert argv[argv.index("--workers") + 1] == "4"


@pytest.mark.parametrize("port", ["http", "0", "70000"])
def test_gunicorn_argv_rejects_bad_port(monkeypatch, port):
    monkeypatch.setenv("PORT", port)
    with pytest.raises(SystemExit):
        start.gunicorn_argv()
