from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select, update

from app.adminkit.models import Account, utcnow
from app.adminkit.repository import BaseRepository


class AccountRepository(BaseRepository[Account]):
    model = Account

    allowed_sort_columns = frozenset(
        {"id", "name", "email", "created_at", "updated_at", "account_class", "is_active"}
    )
    filter_columns = {"name": "name", "status": "is_active", "type": "account_class"}


class AuthRepository(AccountRepository):
    """
    Account lookups used by the auth flows. All finders return None for
    missing (or soft-deleted) accounts; storage failures surface as
    PersistenceError from the base guard.
    """

    def _find_one(self, action: str, *clauses, **context) -> Account | None:
        with self._guard(action, **context):
            stmt = select(Account).where(self._live(), *clauses)
            return self.s.scalars(stmt).first()

    def find_by_email(self, email: str) -> Account | None:
        email = (email or "").strip().lower()
        if not email:
            return None
        return self._find_one("find_by_email", func.lower(Account.email) == email, email=email)

    def find_by_id(self, account_id: int) -> Account | None:
        return self._find_one("find_by_id", Account.id == account_id, account_id=account_id)

    def find_by_reset_token(self, token: str) -> Account | None:
        if not token:
            return None
        return self._find_one("find_by_reset_token", Account.reset_token == token)

    def find_by_verification_token(self, token: str) -> Account | None:
        if not token:
            return None
        return self._find_one("find_by_verification_token", Account.verification_token == token)

    def find_by_provider(self, provider: str, provider_id: str) -> Account | None:
        if not provider or not provider_id:
            return None
        return self._find_one(
            "find_by_provider",
            Account.provider == provider,
            Account.provider_id == provider_id,
            provider=provider,
            provider_id=provider_id,
        )

    def email_taken(self, email: str, exclude_id: int | None = None) -> bool:
        # Soft-deleted rows still hold the unique email.
        email = (email or "").strip().lower()
        with self._guard("email_taken", email=email):
            stmt = select(func.count()).select_from(Account).where(func.lower(Account.email) == email)
            if exclude_id is not None:
                stmt = stmt.where(Account.id != exclude_id)
            return (self.s.scalar(stmt) or 0) > 0

    def add(self, account: Account, actor_id: int | None = None) -> Account:
        return self.create(account, actor_id)

    def save(self, account: Account, actor_id: int | None = None) -> Account:
        account.updated_at = utcnow()
        if actor_id:
            account.updated_by = actor_id
        with self._guard("save", account_id=account.id):
            self.s.add(account)
            self.s.flush()
        return account

    def _consume(self, action: str, token_column, account_id: int, token: str, values: dict) -> bool:
        """Conditional write: only succeeds while the token is still stored on the row."""
        if not token:
            return False
        values["updated_at"] = utcnow()
        with self._guard(action, account_id=account_id):
            stmt = (
                update(Account)
                .where(Account.id == account_id, token_column == token, self._live())
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            return self.s.execute(stmt).rowcount == 1

    def consume_reset_token(self, account_id: int, token: str, password_hash: str | None) -> bool:
        """Clear the reset token; set the new password hash in the same statement when given."""
        values: dict = {"reset_token": None, "reset_token_issued_at": None}
        if password_hash is not None:
            values["password_hash"] = password_hash
        return self._consume("consume_reset_token", Account.reset_token, account_id, token, values)

    def consume_verification_token(self, account_id: int, token: str, *, mark_verified: bool = True) -> bool:
        values: dict = {"verification_token": None, "verification_token_issued_at": None}
        if mark_verified:
            values["email_verified"] = True
        return self._consume("consume_verification_token", Account.verification_token, account_id, token, values)


def token_age_seconds(issued_at: datetime | None) -> float | None:
    if issued_at is None:
        return None
    if issued_at.tzinfo is None:
        # SQLite returns naive datetimes; values are always written in UTC.
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return (utcnow() - issued_at).total_seconds()
