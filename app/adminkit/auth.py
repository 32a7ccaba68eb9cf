from __future__ import annotations

import uuid

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for

from app.adminkit.errors import AppError, PasswordTooShort, UserNotFound
from app.adminkit.gates import (
    SESSION_PENDING_VERIFICATION,
    auth_service,
    guest_only,
    login_account,
    protected,
)
from app.adminkit.oauth import OAuthError
from app.adminkit.security import consume_oauth_state, issue_oauth_state

bp = Blueprint("auth", __name__)

GENERIC_ERROR = "Something went wrong. Please try again."

# error code -> (flash message, fixed redirect endpoint or None, clear session)
ERROR_ROUTES: dict[str, tuple[str, str | None, bool]] = {
    "invalid_credentials": ("Invalid email or password.", None, False),
    "user_inactive": ("Your account is not active. Please contact an administrator.", None, False),
    "user_not_found": ("Account not found, please sign in again.", "auth.login_get", True),
    "current_password_incorrect": ("Your current password is incorrect.", "auth.profile", False),
    "password_too_short": ("The new password is too short.", None, False),
    "password_same_as_old": ("The new password must differ from the current one.", "auth.profile", False),
    "invalid_token": ("The link is invalid or has already been used.", None, False),
    "token_expired": ("The link has expired. Please request a new one.", None, False),
    "email_already_registered": ("An account with this email already exists.", None, False),
    "mail_delivery_failed": ("The email could not be sent. Please try again later.", None, False),
    "auth_unavailable": ("Sign-in is temporarily unavailable. Please try again.", None, False),
    "hashing_failed": (GENERIC_ERROR, None, False),
    "database_update_failed": (GENERIC_ERROR, None, False),
}


def load_request_context() -> None:
    """Assign a per-request id for log correlation."""
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_account = None


def _fail(e: AppError, default_endpoint: str, action: str, **endpoint_args):
    message, endpoint, logout = ERROR_ROUTES.get(e.code, (GENERIC_ERROR, None, False))
    if e.code not in ERROR_ROUTES:
        current_app.logger.error(
            "%s: unexpected error code=%s request_id=%s", action, e.code, getattr(g, "request_id", None)
        )
    if logout:
        session.clear()
    flash(message, "danger")
    if endpoint is None:
        return redirect(url_for(default_endpoint, **endpoint_args), 303)
    return redirect(url_for(endpoint), 303)


def _safe_next(nxt: str) -> str | None:
    # Local paths only.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


# ---------- login / logout ----------
@bp.get("/login")
def login_get():
    pending = bool(session.pop(SESSION_PENDING_VERIFICATION, False))
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt, pending_verification=pending)


@bp.post("/login")
@guest_only
def login_post():
    email = (request.form.get("email") or "").strip()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()

    try:
        account = auth_service().authenticate(email, password)
    except AppError as e:
        return _fail(e, "auth.login_get", "login")

    home = account.home_path
    if home is None:
        current_app.logger.error("Login: account has no home area account_id=%s", account.id)
        session.clear()
        flash("Your account type is not allowed to sign in.", "danger")
        return redirect(url_for("auth.login_get"), 303)

    login_account(account)
    return redirect(_safe_next(nxt) or home)


@bp.get("/logout")
def logout():
    session.clear()
    return redirect(url_for("auth.login_get"))


# ---------- profile ----------
@bp.get("/profile")
@protected()
def profile():
    return render_template("auth/profile.html", account=g.current_account)


@bp.post("/profile/update-password")
@protected()
def update_password():
    account = g.current_account
    current_password = request.form.get("current_password") or ""
    new_password = request.form.get("new_password") or ""

    try:
        auth_service().update_password(account.id, current_password, new_password)
    except AppError as e:
        return _fail(e, "auth.profile", "update_password")

    session.clear()
    flash("Password updated. Please sign in with your new password.", "success")
    return redirect(url_for("auth.login_get"))


# ---------- registration ----------
@bp.get("/register")
@guest_only
def register_get():
    return render_template("auth/register.html")


@bp.post("/register")
@guest_only
def register_post():
    name = (request.form.get("name") or "").strip()
    email = (request.form.get("email") or "").strip()
    password = request.form.get("password") or ""
    if not name or not email or "@" not in email:
        flash("Name and a valid email are required.", "danger")
        return redirect(url_for("auth.register_get"), 303)

    try:
        auth_service().register(name, email, password)
    except AppError as e:
        return _fail(e, "auth.register_get", "register")

    flash("Registration complete. Please check your email to verify your address.", "success")
    return redirect(url_for("auth.login_get"), 303)


# ---------- password reset ----------
@bp.get("/forgot-password")
def forgot_password_get():
    return render_template("auth/forgot_password.html")


@bp.post("/forgot-password")
@guest_only
def forgot_password_post():
    email = (request.form.get("email") or "").strip()
    if not email:
        flash("Email is required.", "danger")
        return redirect(url_for("auth.forgot_password_get"), 303)

    try:
        auth_service().request_password_reset(email)
    except UserNotFound:
        flash("The password reset link could not be sent.", "danger")
        return redirect(url_for("auth.forgot_password_get"), 303)
    except AppError as e:
        return _fail(e, "auth.forgot_password_get", "forgot_password")

    flash("A password reset link has been sent to your email.", "success")
    return redirect(url_for("auth.login_get"), 303)


@bp.get("/reset-password")
def reset_password_get():
    token = (request.args.get("token") or "").strip()
    if not token:
        flash("The reset link is missing its token.", "danger")
        return redirect(url_for("auth.forgot_password_get"), 303)
    return render_template("auth/reset_password.html", token=token)


@bp.post("/reset-password")
@guest_only
def reset_password_post():
    token = (request.form.get("token") or "").strip()
    new_password = request.form.get("new_password") or ""
    if not token:
        flash("The reset link is missing its token.", "danger")
        return redirect(url_for("auth.forgot_password_get"), 303)

    try:
        auth_service().redeem_password_reset(token, new_password)
    except PasswordTooShort as e:
        return _fail(e, "auth.reset_password_get", "reset_password", token=token)
    except AppError as e:
        return _fail(e, "auth.forgot_password_get", "reset_password")

    flash("Your password has been reset. You can sign in now.", "success")
    return redirect(url_for("auth.login_get"), 303)


# ---------- email verification ----------
@bp.get("/verify-email")
def verify_email():
    token = (request.args.get("token") or "").strip()
    if not token:
        flash("The verification link is missing its token.", "danger")
        return redirect(url_for("auth.resend_verification_get"), 303)

    try:
        auth_service().redeem_email_verification(token)
    except AppError as e:
        return _fail(e, "auth.resend_verification_get", "verify_email")

    flash("Your email address has been verified.", "success")
    return redirect(url_for("auth.login_get"), 303)


@bp.get("/resend-verification")
def resend_verification_get():
    return render_template("auth/resend_verification.html")


@bp.post("/resend-verification")
def resend_verification_post():
    email = (request.form.get("email") or "").strip()
    if not email:
        flash("Email is required.", "danger")
        return redirect(url_for("auth.resend_verification_get"), 303)

    try:
        auth_service().request_email_verification(email)
    except UserNotFound:
        flash("The verification link could not be sent.", "danger")
        return redirect(url_for("auth.resend_verification_get"), 303)
    except AppError as e:
        return _fail(e, "auth.resend_verification_get", "resend_verification")

    flash("A verification link has been sent if your address still needs one.", "success")
    return redirect(url_for("auth.login_get"), 303)


# ---------- Google ----------
@bp.get("/google/login")
def google_login():
    client = current_app.extensions["google_oauth"]
    if not client.configured:
        flash("Google sign-in is not configured.", "danger")
        return redirect(url_for("auth.login_get"))
    return redirect(client.authorization_url(issue_oauth_state()))


@bp.get("/google/callback")
def google_callback():
    if not consume_oauth_state(request.args.get("state")):
        current_app.logger.warning("Google callback: state mismatch request_id=%s", getattr(g, "request_id", None))
        flash("Invalid sign-in state. Please try again.", "danger")
        return redirect(url_for("auth.login_get"), 303)

    code = (request.args.get("code") or "").strip()
    if not code:
        flash("Google did not return an authorization code.", "danger")
        return redirect(url_for("auth.login_get"), 303)

    client = current_app.extensions["google_oauth"]
    try:
        identity = client.fetch_userinfo(client.exchange_code(code))
    except OAuthError as e:
        current_app.logger.error("Google callback failed: %s request_id=%s", e, getattr(g, "request_id", None))
        flash("Google sign-in failed. Please try again.", "danger")
        return redirect(url_for("auth.login_get"), 303)

    try:
        account = auth_service().find_or_create(identity)
    except AppError as e:
        return _fail(e, "auth.login_get", "google_callback")

    if not account.is_active:
        flash(ERROR_ROUTES["user_inactive"][0], "danger")
        return redirect(url_for("auth.login_get"), 303)

    login_account(account)
    flash("Signed in with Google.", "success")
    return redirect(account.home_path or url_for("auth.login_get"), 303)
