import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    app_base_url: str

    mail_backend: str
    mail_from: str
    smtp_host: str
    smtp_port: int
    smtp_username: str
    smtp_password: str
    smtp_use_ssl: bool
    smtp_timeout_seconds: int

    google_client_id: str
    google_client_secret: str
    google_redirect_uri: str

    password_min_length: int
    token_max_age_seconds: int
    default_per_page: int
    max_per_page: int
    session_lifetime_hours: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///adminkit.db"),
        app_base_url=_getenv("APP_BASE_URL", "http://localhost:5000").rstrip("/"),
        mail_backend=_getenv("MAIL_BACKEND", "console").lower(),
        mail_from=_getenv("MAIL_FROM", ""),
        smtp_host=_getenv("SMTP_HOST", "smtp.example.com"),
        smtp_port=_getenv_int("SMTP_PORT", 587),
        smtp_username=_getenv("SMTP_USERNAME", ""),
        smtp_password=_getenv("SMTP_PASSWORD", ""),
        smtp_use_ssl=_getenv_bool("SMTP_USE_SSL", False),
        smtp_timeout_seconds=_getenv_int("SMTP_TIMEOUT_SECONDS", 20),
        google_client_id=_getenv("GOOGLE_CLIENT_ID", ""),
        google_client_secret=_getenv("GOOGLE_CLIENT_SECRET", ""),
        google_redirect_uri=_getenv("GOOGLE_REDIRECT_URI", ""),
        password_min_length=_getenv_int("PASSWORD_MIN_LENGTH", 6),
        token_max_age_seconds=_getenv_int("TOKEN_MAX_AGE_SECONDS", 24 * 3600),
        default_per_page=_getenv_int("DEFAULT_PER_PAGE", 20),
        max_per_page=_getenv_int("MAX_PER_PAGE", 100),
        session_lifetime_hours=_getenv_int("SESSION_LIFETIME_HOURS", 24),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "APP_BASE_URL": s.app_base_url,
        "MAIL_BACKEND": s.mail_backend,
        "MAIL_FROM": s.mail_from or s.smtp_username,
        "SMTP_HOST": s.smtp_host,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USERNAME": s.smtp_username,
        "SMTP_PASSWORD": s.smtp_password,
        "SMTP_USE_SSL": s.smtp_use_ssl,
        "SMTP_TIMEOUT_SECONDS": s.smtp_timeout_seconds,
        "GOOGLE_CLIENT_ID": s.google_client_id,
        "GOOGLE_CLIENT_SECRET": s.google_client_secret,
        "GOOGLE_REDIRECT_URI": s.google_redirect_uri,
        "PASSWORD_MIN_LENGTH": s.password_min_length,
        "TOKEN_MAX_AGE_SECONDS": s.token_max_age_seconds,
        "DEFAULT_PER_PAGE": s.default_per_page,
        "MAX_PER_PAGE": s.max_per_page,
        "SESSION_LIFETIME_HOURS": s.session_lifetime_hours,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
    }
