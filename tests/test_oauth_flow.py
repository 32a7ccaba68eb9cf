"""Federated sign-in with a stubbed provider client."""
from urllib.parse import parse_qs, urlparse

import pytest

from app.adminkit import create_app
from app.adminkit.db import session_scope
from app.adminkit.models import Account, AccountClass, Base
from app.adminkit.modules.accounts.auth_service import FederatedIdentity
from app.adminkit.oauth import GoogleOAuthClient, OAuthError
from app.adminkit.security import hash_password


class StubGoogle:
    configured = True

    def __init__(self, identity: FederatedIdentity | None = None, fail: bool = False):
        self.identity = identity
        self.fail = fail
        self.codes: list[str] = []

    def authorization_url(self, state: str) -> str:
        return f"https://accounts.example/auth?state={state}"

    def exchange_code(self, code: str) -> str:
        if self.fail:
            raise OAuthError("exchange failed")
        self.codes.append(code)
        return "access-token"

    def fetch_userinfo(self, access_token: str) -> FederatedIdentity:
        return self.identity


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("MAIL_BACKEND", "memory")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    with session_scope(app) as s:
        s.add(
            Account(
                name="Local",
                email="local@example.com",
                password_hash=hash_password("secret1"),
                account_class=AccountClass.PANEL,
                email_verified=True,
            )
        )
    app.extensions["google_oauth"] = StubGoogle(
        FederatedIdentity(provider="google", provider_id="g-42", email="g@example.com", name="Gül")
    )
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _start(client) -> str:
    r = client.get("/auth/google/login")
    assert r.status_code == 302
    return parse_qs(urlparse(r.headers["Location"]).query)["state"][0]


def test_callback_creates_verified_account_and_signs_in(app, client):
    state = _start(client)
    r = client.get(f"/auth/google/callback?state={state}&code=abc")
    assert r.status_code == 303
    assert r.headers["Location"].endswith("/panel/home")
    assert client.get("/panel/home").status_code == 200
    assert app.extensions["google_oauth"].codes == ["abc"]

    with session_scope(app) as s:
        a = s.query(Account).filter(Account.email == "g@example.com").one()
        assert a.email_verified
        assert a.password_hash is None
        assert (a.provider, a.provider_id) == ("google", "g-42")


def test_second_sign_in_reuses_account(app, client):
    client.get(f"/auth/google/callback?state={_start(client)}&code=abc")
    client.get("/auth/logout")
    client.get(f"/auth/google/callback?state={_start(client)}&code=def")
    with session_scope(app) as s:
        assert s.query(Account).filter(Account.provider == "google").count() == 1


def test_state_mismatch_is_rejected(app, client):
    _start(client)
    r = client.get("/auth/google/callback?state=forged&code=abc")
    assert r.headers["Location"].endswith("/auth/login")
    assert app.extensions["google_oauth"].codes == []


def test_state_is_single_use(app, client):
    state = _start(client)
    client.get(f"/auth/google/callback?state={state}&code=abc")
    client.get("/auth/logout")
    r = client.get(f"/auth/google/callback?state={state}&code=abc")
    assert r.headers["Location"].endswith("/auth/login")
    assert app.extensions["google_oauth"].codes == ["abc"]


def test_missing_code(client):
    r = client.get(f"/auth/google/callback?state={_start(client)}")
    assert r.headers["Location"].endswith("/auth/login")


def test_provider_failure(app, client):
    app.extensions["google_oauth"] = StubGoogle(fail=True)
    r = client.get(f"/auth/google/callback?state={_start(client)}&code=abc", follow_redirects=True)
    assert b"Google sign-in failed" in r.data


def test_existing_local_email_is_not_linked(app, client):
    app.extensions["google_oauth"] = StubGoogle(
        FederatedIdentity(provider="google", provider_id="g-7", email="local@example.com")
    )
    r = client.get(f"/auth/google/callback?state={_start(client)}&code=abc", follow_redirects=True)
    assert b"An account with this email already exists." in r.data
    with session_scope(app) as s:
        assert s.query(Account).filter(Account.provider == "google").count() == 0


def test_unconfigured_client_refuses_login(app, client):
    app.extensions["google_oauth"] = GoogleOAuthClient(client_id="", client_secret="", redirect_uri="")
    r = client.get("/auth/google/login")
    assert r.headers["Location"].endswith("/auth/login")


def test_authorization_url_carries_state_and_scopes():
    c = GoogleOAuthClient(client_id="cid", client_secret="sec", redirect_uri="http://localhost/cb")
    q = parse_qs(urlparse(c.authorization_url("xyz")).query)
    assert q["state"] == ["xyz"]
    assert q["client_id"] == ["cid"]
    assert "userinfo.email" in q["scope"][0]
