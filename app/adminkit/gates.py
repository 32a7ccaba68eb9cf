"""
Authorization gates for protected areas.

Gates run in a fixed order and each returns ``None`` to let the request
through or a redirect response to stop it:

    require_authenticated -> require_active -> require_account_class -> require_verified

Install a chain on a blueprint with ``bp.before_request(gate_chain(...))`` or
on a single view with ``@protected(...)``. ``guest_only`` guards pages that
only make sense without a session (login form, registration).
"""
from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, flash, g, redirect, request, session, url_for

from app.adminkit.db import db_session
from app.adminkit.errors import AuthUnavailable, UserNotFound
from app.adminkit.models import Account, AccountClass
from app.adminkit.modules.accounts.auth_service import AuthService

Gate = Callable[[], Any]

SESSION_ACCOUNT_ID = "account_id"
SESSION_ACCOUNT_CLASS = "account_class"
SESSION_PENDING_VERIFICATION = "pending_verification"


def auth_service() -> AuthService:
    cfg = current_app.config
    return AuthService(
        db_session(),
        current_app.extensions["mailer"],
        base_url=cfg.get("APP_BASE_URL") or "",
        password_min_length=int(cfg.get("PASSWORD_MIN_LENGTH") or 6),
        token_max_age_seconds=int(cfg.get("TOKEN_MAX_AGE_SECONDS") or 0),
    )


def login_account(account: Account) -> None:
    session.clear()
    session[SESSION_ACCOUNT_ID] = account.id
    session[SESSION_ACCOUNT_CLASS] = account.account_class
    session.permanent = True


def _session_account_id() -> int | None:
    raw = session.get(SESSION_ACCOUNT_ID)
    try:
        account_id = int(raw)
    except (TypeError, ValueError):
        return None
    return account_id if account_id > 0 else None


def _resolve_session_account() -> Account | None:
    account_id = _session_account_id()
    if account_id is None:
        return None
    try:
        return auth_service().get_profile(account_id)
    except UserNotFound:
        return None
    except AuthUnavailable:
        current_app.logger.error(
            "Session account could not be resolved account_id=%s request_id=%s",
            account_id,
            getattr(g, "request_id", None),
        )
        return None


def _to_login(message: str | None = None, *, clear: bool = True):
    if clear:
        session.clear()
    if message:
        flash(message, "danger")
    return redirect(url_for("auth.login_get"))


def require_authenticated():
    account = _resolve_session_account()
    if account is None:
        had_session = _session_account_id() is not None
        return _to_login("Please sign in again." if had_session else "Please sign in.")
    g.current_account = account
    return None


def require_active():
    account: Account = g.current_account
    if not account.is_active:
        current_app.logger.warning("Gate: inactive account account_id=%s path=%s", account.id, request.path)
        return _to_login("Your account is not active.")
    return None


def require_account_class(required: str) -> Gate:
    if required not in AccountClass.ALL:
        raise ValueError(f"Unknown account class: {required}")

    def gate():
        account: Account = g.current_account
        if account.account_class != required:
            current_app.logger.warning(
                "Gate: account class mismatch account_id=%s class=%s required=%s path=%s",
                account.id,
                account.account_class,
                required,
                request.path,
            )
            return _to_login("You are not allowed to access this area.")
        return None

    return gate


def require_verified():
    account: Account = g.current_account
    if not account.email_verified:
        session[SESSION_PENDING_VERIFICATION] = True
        return _to_login("Please verify your email address.", clear=False)
    return None


def gate_chain(account_class: str | None = None, verified: bool = False) -> Gate:
    gates: list[Gate] = [require_authenticated, require_active]
    if account_class is not None:
        gates.append(require_account_class(account_class))
    if verified:
        gates.append(require_verified)

    def run():
        for gate in gates:
            resp = gate()
            if resp is not None:
                return resp
        return None

    return run


def protected(account_class: str | None = None, verified: bool = False) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    chain = gate_chain(account_class=account_class, verified=verified)

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            resp = chain()
            if resp is not None:
                return resp
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def guest_only(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if _session_account_id() is None:
            return fn(*args, **kwargs)
        account = _resolve_session_account()
        if account is None or not account.is_active or account.home_path is None:
            session.clear()
            return fn(*args, **kwargs)
        return redirect(account.home_path)

    return wrapped
