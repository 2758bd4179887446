"""
auth/tokens.py -- Token Codec: stateless creation and verification of JWTs.

Security design decisions:
  JWT: python-jose with HS256. Each token kind (access, refresh, reset,
       confirm) is signed with its own secret and carries its own lifetime,
       so a token of one kind never verifies as another. The "type" claim is
       checked as well, which keeps that guarantee even if an operator
       configures two kinds with the same secret.

  jti: refresh, reset and confirm tokens carry a random jti. Two tokens
       minted for the same user in the same second are therefore different
       strings and occupy different rows in the TokenStore.

  verify() raises InvalidTokenError on any failure. The validate_* wrappers
       return None instead, which keeps the orchestrator's "signature check
       AND store lookup" condition a single boolean expression.

  Configuration is passed in explicitly (TokenConfig). Nothing here reads
       settings at import time.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from jose import JWTError, jwt

from auth.errors import InvalidTokenError
from auth.models import TokenKind, TokenPair

if TYPE_CHECKING:
    from core.config import Settings

_ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenSettings:
    secret: str
    expire_seconds: int


@dataclass(frozen=True)
class TokenConfig:
    """Per-kind signing secret and lifetime."""

    access: TokenSettings
    refresh: TokenSettings
    reset: TokenSettings
    confirm: TokenSettings

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            access=TokenSettings(settings.access_token_secret, settings.access_token_expire_seconds),
            refresh=TokenSettings(settings.refresh_token_secret, settings.refresh_token_expire_seconds),
            reset=TokenSettings(settings.reset_token_secret, settings.reset_token_expire_seconds),
            confirm=TokenSettings(settings.confirm_token_secret, settings.confirm_token_expire_seconds),
        )

    def for_kind(self, kind: TokenKind) -> TokenSettings:
        return {
            TokenKind.ACCESS_TOKEN: self.access,
            TokenKind.REFRESH_TOKEN: self.refresh,
            TokenKind.RESET_TOKEN: self.reset,
            TokenKind.CONFIRM_TOKEN: self.confirm,
        }[kind]


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class TokenCodec:
    """Mint and verify signed tokens. Pure: no storage, no I/O.

    Usage:
        codec = TokenCodec(TokenConfig.from_settings(get_settings()))
        pair = codec.generate_tokens(user_id=1, role="student", is_first_login=True)
        claims = codec.verify(pair.access_token, TokenKind.ACCESS_TOKEN)
    """

    def __init__(self, config: TokenConfig) -> None:
        self._config = config

    def _encode(self, kind: TokenKind, user_id: int, claims: dict[str, Any], with_jti: bool = True) -> str:
        settings = self._config.for_kind(kind)
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "user_id": user_id,
            "type": kind.value,
            "iat": now,
            "exp": now + timedelta(seconds=settings.expire_seconds),
            **claims,
        }
        if with_jti:
            payload["jti"] = secrets.token_hex(16)
        return jwt.encode(payload, settings.secret, algorithm=_ALGORITHM)

    def generate_access_token(self, user_id: int, role: str, is_first_login: bool) -> str:
        return self._encode(
            TokenKind.ACCESS_TOKEN,
            user_id,
            {"role": role, "is_first_login": is_first_login},
            with_jti=False,
        )

    def generate_tokens(self, user_id: int, role: str, is_first_login: bool) -> TokenPair:
        """Return a fresh access + refresh pair with independent lifetimes."""
        claims = {"role": role, "is_first_login": is_first_login}
        return TokenPair(
            access_token=self.generate_access_token(user_id, role, is_first_login),
            refresh_token=self._encode(TokenKind.REFRESH_TOKEN, user_id, claims),
        )

    def generate_reset_token(self, user_id: int, first_name: str, email: str) -> str:
        return self._encode(TokenKind.RESET_TOKEN, user_id, {"first_name": first_name, "email": email})

    def generate_confirm_token(self, user_id: int, role: str) -> str:
        return self._encode(TokenKind.CONFIRM_TOKEN, user_id, {"role": role})

    def verify(self, token: str, kind: TokenKind) -> dict[str, Any]:
        """Check signature, expiry and kind. Never consults storage.

        Raises:
            InvalidTokenError: malformed, expired, badly signed, or wrong kind.
        """
        settings = self._config.for_kind(kind)
        try:
            payload = jwt.decode(token, settings.secret, algorithms=[_ALGORITHM])
        except JWTError as exc:
            raise InvalidTokenError() from exc
        if payload.get("type") != kind.value or "user_id" not in payload:
            raise InvalidTokenError()
        return payload

    # ------------------------------------------------------------------
    # Soft variants -- None on any failure
    # ------------------------------------------------------------------

    def _validate(self, token: str, kind: TokenKind) -> dict[str, Any] | None:
        try:
            return self.verify(token, kind)
        except InvalidTokenError:
            return None

    def validate_access_token(self, token: str) -> dict[str, Any] | None:
        return self._validate(token, TokenKind.ACCESS_TOKEN)

    def validate_refresh_token(self, token: str) -> dict[str, Any] | None:
        return self._validate(token, TokenKind.REFRESH_TOKEN)

    def validate_reset_token(self, token: str) -> dict[str, Any] | None:
        return self._validate(token, TokenKind.RESET_TOKEN)

    def validate_confirm_token(self, token: str) -> dict[str, Any] | None:
        return self._validate(token, TokenKind.CONFIRM_TOKEN)
