"""
Authentication flows: password login, password change, reset-by-token,
email verification and federated find-or-create.

Every operation returns a value or raises one of the named conditions in
``app.adminkit.errors``. Expected failures (unknown account, bad password,
used token) are logged as warnings; storage and hashing failures are logged
with their traceback and surfaced as generic conditions.

Each write operation is its own unit of work: the service commits on success
and rolls back on failure.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.adminkit.errors import (
    AuthUnavailable,
    CurrentPasswordIncorrect,
    DatabaseUpdateFailed,
    DuplicateRecord,
    EmailAlreadyRegistered,
    HashingFailed,
    InvalidCredentials,
    InvalidToken,
    MailDeliveryFailed,
    PasswordSameAsOld,
    PasswordTooShort,
    PersistenceError,
    TokenExpired,
    UserInactive,
    UserNotFound,
)
from app.adminkit.mail import MailError, Mailer
from app.adminkit.models import Account, AccountClass, utcnow
from app.adminkit.modules.accounts.repository import AuthRepository, token_age_seconds
from app.adminkit.security import generate_token, hash_password, verify_password

logger = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_PASSWORD_MIN_LENGTH = 6


@dataclass(frozen=True)
class FederatedIdentity:
    provider: str
    provider_id: str
    email: str
    name: str = ""


class AuthService:
    def __init__(
        self,
        s: Session,
        mailer: Mailer,
        *,
        base_url: str = "",
        password_min_length: int = DEFAULT_PASSWORD_MIN_LENGTH,
        token_max_age_seconds: int = 0,
    ) -> None:
        self.s = s
        self.repo = AuthRepository(s)
        self.mailer = mailer
        self.base_url = base_url.rstrip("/")
        self.password_min_length = password_min_length
        self.token_max_age_seconds = token_max_age_seconds

    # ---------- internals ----------
    def _lookup(self, fn: Callable[..., R], *args: Any, **context: Any) -> R:
        try:
            return fn(*args)
        except PersistenceError as e:
            logger.error("Account lookup failed %s", context)
            raise AuthUnavailable() from e

    def _write(self, action: str, fn: Callable[[], R], **context: Any) -> R:
        try:
            result = fn()
            self.s.commit()
        except DuplicateRecord as e:
            self.s.rollback()
            logger.warning("%s: unique value already in use %s", action, context)
            raise EmailAlreadyRegistered() from e
        except PersistenceError as e:
            self.s.rollback()
            logger.error("%s: database update failed %s", action, context)
            raise DatabaseUpdateFailed() from e
        except SQLAlchemyError as e:
            self.s.rollback()
            logger.exception("%s: commit failed %s", action, context)
            raise DatabaseUpdateFailed() from e
        return result

    def _hash(self, password: str, **context: Any) -> str:
        try:
            return hash_password(password)
        except (TypeError, ValueError) as e:
            logger.exception("Password hashing failed %s", context)
            raise HashingFailed() from e

    def _send(self, to: str, subject: str, body: str, *, action: str) -> None:
        try:
            self.mailer.send(to, subject, body)
        except MailError as e:
            logger.error("%s: mail to %s failed: %s", action, to, e)
            raise MailDeliveryFailed() from e

    def _account_by_email(self, email: str) -> Account:
        account = self._lookup(self.repo.find_by_email, email, email=email)
        if account is None:
            logger.warning("Account not found email=%s", email)
            raise UserNotFound()
        return account

    def _account_by_id(self, account_id: int) -> Account:
        account = self._lookup(self.repo.find_by_id, account_id, account_id=account_id)
        if account is None:
            logger.warning("Account not found account_id=%s", account_id)
            raise UserNotFound()
        return account

    def _check_password_length(self, password: str, **context: Any) -> None:
        if len(password or "") < self.password_min_length:
            logger.warning("New password too short %s", context)
            raise PasswordTooShort()

    def _expired(self, issued_at) -> bool:
        if not self.token_max_age_seconds:
            return False
        age = token_age_seconds(issued_at)
        return age is not None and age > self.token_max_age_seconds

    def _link(self, path: str, token: str) -> str:
        return f"{self.base_url}{path}?token={token}"

    # ---------- login / profile ----------
    def authenticate(self, email: str, password: str) -> Account:
        account = self._account_by_email(email)

        if not account.is_active:
            logger.warning("Login rejected: account inactive email=%s account_id=%s", email, account.id)
            raise UserInactive()

        if not verify_password(account.password_hash, password):
            logger.warning("Login rejected: invalid password email=%s account_id=%s", email, account.id)
            raise InvalidCredentials()

        logger.info("Authentication succeeded email=%s account_id=%s", email, account.id)
        return account

    def get_profile(self, account_id: int) -> Account:
        return self._account_by_id(account_id)

    def update_password(self, account_id: int, current_password: str, new_password: str) -> None:
        account = self._account_by_id(account_id)

        if not verify_password(account.password_hash, current_password):
            logger.warning("Password change rejected: current password incorrect account_id=%s", account_id)
            raise CurrentPasswordIncorrect()

        self._check_password_length(new_password, account_id=account_id)

        if new_password == current_password:
            logger.warning("Password change rejected: same as old account_id=%s", account_id)
            raise PasswordSameAsOld()

        new_hash = self._hash(new_password, account_id=account_id)

        def _apply() -> None:
            account.password_hash = new_hash
            self.repo.save(account, actor_id=account_id)

        self._write("update_password", _apply, account_id=account_id)
        logger.info("Password updated account_id=%s", account_id)

    # ---------- registration ----------
    def register(
        self,
        name: str,
        email: str,
        password: str,
        account_class: str = AccountClass.PANEL,
        *,
        actor_id: int | None = None,
    ) -> Account:
        """Create an active, unverified local account and mail its verification link."""
        email = (email or "").strip()
        if account_class not in AccountClass.ALL:
            raise ValueError(f"Unknown account class: {account_class}")
        self._check_password_length(password, email=email)

        if self._lookup(self.repo.email_taken, email, email=email):
            logger.warning("Registration rejected: email already registered email=%s", email)
            raise EmailAlreadyRegistered()

        token = generate_token()
        account = Account(
            name=(name or "").strip(),
            email=email,
            password_hash=self._hash(password, email=email),
            is_active=True,
            account_class=account_class,
            email_verified=False,
            verification_token=token,
            verification_token_issued_at=utcnow(),
        )
        self._write("register", lambda: self.repo.add(account, actor_id), email=email)
        logger.info("Account registered email=%s account_id=%s", email, account.id)

        try:
            self._send_verification(account, token)
        except MailDeliveryFailed:
            # The account exists; the user can ask for a new link.
            logger.warning("Verification mail not sent after registration account_id=%s", account.id)
        return account

    # ---------- password reset ----------
    def request_password_reset(self, email: str) -> None:
        account = self._account_by_email(email)
        token = generate_token()

        def _apply() -> None:
            account.reset_token = token
            account.reset_token_issued_at = utcnow()
            self.repo.save(account)

        self._write("request_password_reset", _apply, account_id=account.id)
        body = "To reset your password, open the following link:\n\n" + self._link("/auth/reset-password", token)
        self._send(account.email, "Password reset", body, action="request_password_reset")
        logger.info("Password reset link sent account_id=%s", account.id)

    def redeem_password_reset(self, token: str, new_password: str) -> None:
        token = (token or "").strip()
        account = self._lookup(self.repo.find_by_reset_token, token) if token else None
        if account is None:
            logger.warning("Password reset rejected: unknown or used token")
            raise InvalidToken()

        self._check_password_length(new_password, account_id=account.id)

        if self._expired(account.reset_token_issued_at):
            self._write(
                "expire_reset_token",
                lambda: self.repo.consume_reset_token(account.id, token, None),
                account_id=account.id,
            )
            logger.warning("Password reset rejected: token expired account_id=%s", account.id)
            raise TokenExpired()

        new_hash = self._hash(new_password, account_id=account.id)
        consumed = self._write(
            "redeem_password_reset",
            lambda: self.repo.consume_reset_token(account.id, token, new_hash),
            account_id=account.id,
        )
        if not consumed:
            logger.warning("Password reset rejected: token already used account_id=%s", account.id)
            raise InvalidToken()
        logger.info("Password reset completed account_id=%s", account.id)

    # ---------- email verification ----------
    def _send_verification(self, account: Account, token: str) -> None:
        body = "Please confirm your email address by opening the following link:\n\n" + self._link(
            "/auth/verify-email", token
        )
        self._send(account.email, "Email verification", body, action="email_verification")

    def request_email_verification(self, email: str) -> None:
        account = self._account_by_email(email)
        if account.email_verified:
            logger.info("Verification link not needed, already verified account_id=%s", account.id)
            return

        token = generate_token()

        def _apply() -> None:
            account.verification_token = token
            account.verification_token_issued_at = utcnow()
            self.repo.save(account)

        self._write("request_email_verification", _apply, account_id=account.id)
        self._send_verification(account, token)
        logger.info("Verification link sent account_id=%s", account.id)

    def redeem_email_verification(self, token: str) -> None:
        token = (token or "").strip()
        account = self._lookup(self.repo.find_by_verification_token, token) if token else None
        if account is None:
            logger.warning("Email verification rejected: unknown or used token")
            raise InvalidToken()

        if self._expired(account.verification_token_issued_at):
            self._write(
                "expire_verification_token",
                lambda: self.repo.consume_verification_token(account.id, token, mark_verified=False),
                account_id=account.id,
            )
            logger.warning("Email verification rejected: token expired account_id=%s", account.id)
            raise TokenExpired()

        consumed = self._write(
            "redeem_email_verification",
            lambda: self.repo.consume_verification_token(account.id, token),
            account_id=account.id,
        )
        if not consumed:
            logger.warning("Email verification rejected: token already used account_id=%s", account.id)
            raise InvalidToken()
        logger.info("Email verified account_id=%s", account.id)

    # ---------- federated login ----------
    def find_or_create(self, identity: FederatedIdentity) -> Account:
        """
        Return the account linked to ``(provider, provider_id)`` or create one.

        New federated accounts are trusted as verified because the provider
        already confirmed the address. They have no local password. An existing
        local account with the same email is not linked automatically.
        """
        context = {"provider": identity.provider, "provider_id": identity.provider_id}
        account = self._lookup(self.repo.find_by_provider, identity.provider, identity.provider_id, **context)
        if account is not None:
            logger.info("Federated login matched account_id=%s %s", account.id, context)
            return account

        email = (identity.email or "").strip()
        if self._lookup(self.repo.email_taken, email, email=email):
            logger.warning("Federated login rejected: email belongs to another account email=%s %s", email, context)
            raise EmailAlreadyRegistered()

        account = Account(
            name=(identity.name or email).strip(),
            email=email,
            password_hash=None,
            is_active=True,
            account_class=AccountClass.PANEL,
            email_verified=True,
            provider=identity.provider,
            provider_id=identity.provider_id,
        )
        try:
            self._write("find_or_create", lambda: self.repo.add(account), **context)
        except EmailAlreadyRegistered:
            # A concurrent callback may have created the same provider identity.
            existing = self._lookup(self.repo.find_by_provider, identity.provider, identity.provider_id, **context)
            if existing is None:
                raise
            return existing
        logger.info("Federated account created account_id=%s %s", account.id, context)
        return account
