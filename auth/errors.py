"""
auth/errors.py -- Typed failures raised by the auth core.

Every business failure carries an HTTP status and a stable machine-readable
code. The API layer renders them uniformly; nothing in auth/ builds HTTP
responses itself.

Token failures are deliberately coarse: one "bad token" code per kind, so a
caller cannot distinguish an expired token from a revoked or forged one.

Collaborator failures (database, SMTP, network) are never wrapped here. They
propagate unchanged to the generic 500 handler.
"""

from __future__ import annotations

from typing import Any

USER_NOT_FOUND = "USER_NOT_FOUND"
INCORRECT_CREDENTIALS = "INCORRECT_CREDENTIALS"
EMAIL_NOT_CONFIRMED = "EMAIL_NOT_CONFIRMED"
BAD_REFRESH_TOKEN = "BAD_REFRESH_TOKEN"
BAD_RESET_TOKEN = "BAD_RESET_TOKEN"
BAD_CONFIRM_TOKEN = "BAD_CONFIRM_TOKEN"
BAD_ID_TOKEN = "BAD_ID_TOKEN"
INVALID_TOKEN = "INVALID_TOKEN"
NOT_FOUND = "NOT_FOUND"
ALREADY_EXISTS = "ALREADY_EXISTS"

_MESSAGES: dict[str, str] = {
    USER_NOT_FOUND: "User with the specified email was not found.",
    INCORRECT_CREDENTIALS: "The password or email you entered is incorrect.",
    EMAIL_NOT_CONFIRMED: "Please confirm your email address to log in.",
    BAD_REFRESH_TOKEN: "The refresh token is invalid or has expired.",
    BAD_RESET_TOKEN: "The password reset link is invalid or has expired.",
    BAD_CONFIRM_TOKEN: "The email confirmation link is invalid or has expired.",
    BAD_ID_TOKEN: "The identity provider ticket could not be verified.",
    INVALID_TOKEN: "The token is invalid or has expired.",
    NOT_FOUND: "The requested record was not found.",
    ALREADY_EXISTS: "A user with this email already exists.",
}


class AuthError(Exception):
    """Base class for every failure the auth core reports to its callers."""

    def __init__(self, status_code: int, code: str, message: str | None = None) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message or _MESSAGES.get(code, code)
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, code={self.code!r})"


class InvalidTokenError(AuthError):
    """Signature, expiry, or type check failed. Raised by the codec only."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(401, INVALID_TOKEN, message)


class UserNotFoundError(AuthError):
    def __init__(self) -> None:
        super().__init__(404, NOT_FOUND)


class UserAlreadyExistsError(AuthError):
    def __init__(self) -> None:
        super().__init__(409, ALREADY_EXISTS)
