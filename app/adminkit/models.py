from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class AuditMixin:
    """
    Audit envelope shared by every persisted entity.

    Actor columns are stamped by the repository from the acting principal;
    rows are soft-deleted (deleted_at + deleted_by) and never removed.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deleted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)


AUDIT_COLUMNS = frozenset({"id", "created_at", "updated_at", "deleted_at", "created_by", "updated_by", "deleted_by"})


class AccountClass:
    DASHBOARD = "dashboard"
    PANEL = "panel"

    ALL = (DASHBOARD, PANEL)

    # Home area each class lands on after login.
    HOME_PATHS = {
        DASHBOARD: "/dashboard/home",
        PANEL: "/panel/home",
    }


class Account(AuditMixin, Base):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("account_class IN ('dashboard', 'panel')", name="ck_accounts_account_class"),
        UniqueConstraint("provider", "provider_id", name="uq_accounts_provider"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    # NULL for accounts created through a federated provider.
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    account_class: Mapped[str] = mapped_column(String(16), nullable=False, default=AccountClass.PANEL, index=True)

    reset_token: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    reset_token_issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    verification_token: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    verification_token_issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    provider_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    @property
    def home_path(self) -> str | None:
        return AccountClass.HOME_PATHS.get(self.account_class)

    def __repr__(self) -> str:
        return f"<Account id={self.id} email={self.email!r} class={self.account_class}>"


# Emails are matched case-insensitively, so uniqueness must be too.
Index("uq_accounts_email_lower", func.lower(Account.email), unique=True)
