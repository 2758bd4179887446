"""
auth/credentials.py -- Credential Verifier and the bcrypt password primitive.

Passwords: bcrypt directly (no passlib wrapper). passlib's internal wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects
with an explicit error.

verify_login() owns the login decision:
  1. password matches OR the caller vouches the identity came from a verified
     Google ticket (is_from_google) -- otherwise INCORRECT_CREDENTIALS.
  2. only then, the email confirmation gate -- EMAIL_NOT_CONFIRMED.
The user-not-found check happens earlier, in the service, before this module
is reached.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt
from starlette.concurrency import run_in_threadpool

from auth.errors import EMAIL_NOT_CONFIRMED, INCORRECT_CREDENTIALS, AuthError
from auth.models import User


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password fields well below that.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed or non-bcrypt hash stored for this user.
        return False


async def check_password(plain: str, hashed: str | None) -> bool:
    """Compare off the event loop; bcrypt's work factor blocks for ~100ms+."""
    if not hashed or not plain:
        return False
    return await run_in_threadpool(verify_password, plain, hashed)


async def verify_login(user: User, password: str, is_from_google: bool = False) -> None:
    """Raise AuthError unless the login attempt for this user is authorized."""
    password_ok = await check_password(password, user.password) or is_from_google
    if not password_ok:
        raise AuthError(401, INCORRECT_CREDENTIALS)
    if not user.is_email_confirmed:
        raise AuthError(401, EMAIL_NOT_CONFIRMED)
