from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.adminkit.errors import DuplicateRecord, PersistenceError
from app.adminkit.listing import ListParams, PaginatedResult
from app.adminkit.models import Account, AccountClass
from app.adminkit.modules.accounts.repository import AuthRepository
from app.adminkit.security import hash_password

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "email", "is_active", "account_class", "email_verified")
TEXT_FIELDS = ("name", "email", "password", "account_class")


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw or "").strip().lower() in ("1", "true", "yes", "on")


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def validate_account_payload(payload: dict, *, creating: bool, password_min_length: int = 6) -> list[str]:
    """Validate account create/update payload. Returns list of errors."""
    errors = []
    for key in TEXT_FIELDS:
        value = payload.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(f"Field '{key}' must be a string.")
    if errors:
        return errors
    name = _text(payload, "name")
    email = _text(payload, "email")
    password = payload.get("password") or ""
    if creating or "name" in payload:
        if not name:
            errors.append("Name is required.")
    if creating or "email" in payload:
        if not email or "@" not in email:
            errors.append("A valid email is required.")
    if creating and not password:
        errors.append("Password is required.")
    if password and len(password) < password_min_length:
        errors.append(f"Password must be at least {password_min_length} characters.")
    account_class = _text(payload, "account_class")
    if account_class and account_class not in AccountClass.ALL:
        errors.append(f"Invalid account class. Must be one of: {', '.join(AccountClass.ALL)}")
    return errors


def account_to_dict(a: Account) -> dict[str, Any]:
    return {
        "id": a.id,
        "name": a.name,
        "email": a.email,
        "is_active": a.is_active,
        "account_class": a.account_class,
        "email_verified": a.email_verified,
        "provider": a.provider,
        "created_at": a.created_at.isoformat() if a.created_at else None,
        "updated_at": a.updated_at.isoformat() if a.updated_at else None,
    }


class AccountService:
    """Dashboard user management on top of the account repository; owns the commit."""

    def __init__(self, s: Session) -> None:
        self.s = s
        self.repo = AuthRepository(s)

    def _commit(self, action: str, **context: Any) -> None:
        try:
            self.s.commit()
        except SQLAlchemyError as e:
            self.s.rollback()
            logger.exception("%s: commit failed %s", action, context)
            raise PersistenceError() from e

    def list_accounts(self, params: ListParams) -> PaginatedResult[Account]:
        params = params.normalized()
        items, total = self.repo.list(params)
        return PaginatedResult.build(items, total, params)

    def get_account(self, account_id: int) -> Account:
        return self.repo.get_by_id(account_id)

    def count_accounts(self) -> int:
        return self.repo.count()

    def _ensure_email_free(self, email: str, account_id: int | None = None) -> None:
        if self.repo.email_taken(email, exclude_id=account_id):
            logger.info("Account email already in use account_id=%s", account_id)
            raise DuplicateRecord("An account with this email already exists.")

    def create_account(self, payload: dict, actor_id: int | None) -> Account:
        email = _text(payload, "email")
        self._ensure_email_free(email)
        account = Account(
            name=_text(payload, "name"),
            email=email,
            password_hash=hash_password(payload.get("password") or ""),
            is_active=_as_bool(payload.get("is_active", True)),
            account_class=_text(payload, "account_class") or AccountClass.PANEL,
            email_verified=_as_bool(payload.get("email_verified", False)),
        )
        try:
            self.repo.create(account, actor_id)
        except PersistenceError:
            self.s.rollback()
            raise
        self._commit("create_account", actor_id=actor_id)
        logger.info("Account created account_id=%s by actor_id=%s", account.id, actor_id)
        return account

    def update_account(self, account_id: int, payload: dict, actor_id: int | None) -> None:
        data: dict[str, Any] = {}
        for key in UPDATABLE_FIELDS:
            if key not in payload:
                continue
            value = payload[key]
            if key in ("is_active", "email_verified"):
                value = _as_bool(value)
            elif isinstance(value, str):
                value = value.strip()
            data[key] = value
        password = payload.get("password") or ""
        if password:
            data["password_hash"] = hash_password(password)
        if not data:
            # Nothing to change; still confirm the row exists.
            self.repo.get_by_id(account_id)
            return
        if "email" in data:
            self.repo.get_by_id(account_id)
            self._ensure_email_free(data["email"], account_id)
        try:
            self.repo.update(account_id, data, actor_id)
        except PersistenceError:
            self.s.rollback()
            raise
        self._commit("update_account", account_id=account_id, actor_id=actor_id)
        logger.info("Account updated account_id=%s fields=%s by actor_id=%s", account_id, sorted(data), actor_id)

    def delete_account(self, account_id: int, actor_id: int | None) -> None:
        self.repo.delete(account_id, actor_id)
        self._commit("delete_account", account_id=account_id, actor_id=actor_id)
        logger.info("Account deleted account_id=%s by actor_id=%s", account_id, actor_id)
