"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores own persistence,
the service owns sequencing; these types only carry shape between them.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenKind(str, Enum):
    """Token kinds. Every kind except ACCESS_TOKEN is persisted in the TokenStore."""

    ACCESS_TOKEN = "ACCESS_TOKEN"
    REFRESH_TOKEN = "REFRESH_TOKEN"
    RESET_TOKEN = "RESET_TOKEN"
    CONFIRM_TOKEN = "CONFIRM_TOKEN"


@dataclass
class User:
    """A registered account.

    password is the bcrypt hash, never the plaintext. It is None for accounts
    that have only ever signed in through Google.

    role is the currently active role; it is the value embedded in access and
    refresh tokens at issue time.
    """

    email: str
    role: str
    first_name: str = ""
    last_name: str = ""
    id: int | None = None
    password: str | None = None
    language: str = "en"
    native_language: str | None = None
    is_email_confirmed: bool = False
    is_first_login: bool = True
    last_login: str | None = None
    created_at: str | None = None


@dataclass
class StoredToken:
    """One persisted refresh, reset, or confirm token.

    Presence of the row is what makes the token usable; deleting it revokes
    the token even though its signature and expiry remain valid.
    """

    user_id: int
    token: str
    kind: TokenKind
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
