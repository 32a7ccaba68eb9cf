import secrets

from flask import session
from werkzeug.security import check_password_hash, generate_password_hash

OAUTH_STATE_KEY = "oauth_state"


def hash_password(password: str) -> str:
    """Salted one-way hash (werkzeug scrypt/pbkdf2 depending on version)."""
    return generate_password_hash(password)


def verify_password(password_hash: str | None, password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def generate_token() -> str:
    """128-bit random token, hex encoded. Used for reset/verification links."""
    return secrets.token_hex(16)


def issue_oauth_state() -> str:
    """Store a fresh state value in the session for the federated callback."""
    state = secrets.token_urlsafe(32)
    session[OAUTH_STATE_KEY] = state
    return state


def consume_oauth_state(received: str | None) -> bool:
    """Pop the stored state and compare it with the callback's value."""
    expected = session.pop(OAUTH_STATE_KEY, None)
    if not expected or not received:
        return False
    return secrets.compare_digest(str(expected), str(received))
