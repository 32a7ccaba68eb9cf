"""
Closed set of named failure conditions returned by the repositories and the
auth service. Handlers map ``code`` to a user-facing message; they never
inspect the message text or the underlying storage exception.
"""
from __future__ import annotations


class AppError(RuntimeError):
    code = "app_error"
    message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


# ---------- Repository ----------
class NotFound(AppError):
    code = "not_found"
    message = "Record not found."


class MissingActor(AppError):
    code = "missing_actor"
    message = "A valid acting account is required for this change."


class PersistenceError(AppError):
    code = "persistence_error"
    message = "The record could not be saved."


class DuplicateRecord(PersistenceError):
    code = "duplicate_record"
    message = "A record with the same unique value already exists."


# ---------- Auth service ----------
class AuthError(AppError):
    code = "auth_error"


class UserNotFound(AuthError):
    code = "user_not_found"
    message = "Account not found."


class InvalidToken(UserNotFound):
    code = "invalid_token"
    message = "The link is invalid or has already been used."


class TokenExpired(InvalidToken):
    code = "token_expired"
    message = "The link has expired."


class UserInactive(AuthError):
    code = "user_inactive"
    message = "Account is not active."


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    message = "Invalid email or password."


class CurrentPasswordIncorrect(AuthError):
    code = "current_password_incorrect"
    message = "Current password is incorrect."


class PasswordTooShort(AuthError):
    code = "password_too_short"
    message = "New password is too short."


class PasswordSameAsOld(AuthError):
    code = "password_same_as_old"
    message = "New password must differ from the current password."


class HashingFailed(AuthError):
    code = "hashing_failed"
    message = "Password could not be processed."


class DatabaseUpdateFailed(AuthError):
    code = "database_update_failed"
    message = "The change could not be saved."


class AuthUnavailable(AuthError):
    code = "auth_unavailable"
    message = "Authentication is temporarily unavailable."


class EmailAlreadyRegistered(AuthError):
    code = "email_already_registered"
    message = "An account with this email already exists."


class MailDeliveryFailed(AuthError):
    code = "mail_delivery_failed"
    message = "The email could not be sent."
