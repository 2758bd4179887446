"""Unit tests for auth/tokens.py -- TokenCodec minting and verification.

Covers:
- access/refresh pair carries user id, role and first-login flag
- every persisted kind gets a unique jti, so equal inputs give distinct tokens
- expiry, tampering, garbage input and cross-kind use are all rejected
- validate_* wrappers return None instead of raising
- TokenConfig.from_settings maps each kind to its own secret and lifetime
"""

from __future__ import annotations

import pytest

from auth.errors import INVALID_TOKEN, InvalidTokenError
from auth.models import TokenKind
from auth.tokens import TokenCodec, TokenConfig, TokenSettings
from core.config import Settings


class TestGenerateAndVerify:
    def test_access_token_claims_round_trip(self, codec: TokenCodec) -> None:
        pair = codec.generate_tokens(user_id=7, role="tutor", is_first_login=True)
        claims = codec.verify(pair.access_token, TokenKind.ACCESS_TOKEN)
        assert claims["user_id"] == 7
        assert claims["sub"] == "7"
        assert claims["role"] == "tutor"
        assert claims["is_first_login"] is True
        assert claims["type"] == "ACCESS_TOKEN"
        assert claims["exp"] > claims["iat"]

    def test_refresh_token_claims_round_trip(self, codec: TokenCodec) -> None:
        pair = codec.generate_tokens(user_id=7, role="student", is_first_login=False)
        claims = codec.verify(pair.refresh_token, TokenKind.REFRESH_TOKEN)
        assert claims["user_id"] == 7
        assert claims["role"] == "student"
        assert claims["is_first_login"] is False
        assert claims["jti"]

    def test_pair_members_differ(self, codec: TokenCodec) -> None:
        pair = codec.generate_tokens(1, "student", False)
        assert pair.access_token != pair.refresh_token

    def test_refresh_tokens_are_unique_for_identical_input(self, codec: TokenCodec) -> None:
        """Two logins in the same second must not collide in the token store."""
        first = codec.generate_tokens(1, "student", False)
        second = codec.generate_tokens(1, "student", False)
        assert first.refresh_token != second.refresh_token

    def test_reset_token_carries_name_and_email(self, codec: TokenCodec) -> None:
        token = codec.generate_reset_token(3, "Ada", "ada@example.com")
        claims = codec.verify(token, TokenKind.RESET_TOKEN)
        assert claims["user_id"] == 3
        assert claims["first_name"] == "Ada"
        assert claims["email"] == "ada@example.com"

    def test_confirm_token_carries_role(self, codec: TokenCodec) -> None:
        token = codec.generate_confirm_token(3, "tutor")
        claims = codec.verify(token, TokenKind.CONFIRM_TOKEN)
        assert claims["user_id"] == 3
        assert claims["role"] == "tutor"


class TestRejection:
    def test_expired_token_is_rejected(self) -> None:
        expired = TokenSettings("e" * 40, -60)
        expired_codec = TokenCodec(TokenConfig(expired, expired, expired, expired))
        pair = expired_codec.generate_tokens(1, "student", False)
        with pytest.raises(InvalidTokenError) as excinfo:
            expired_codec.verify(pair.access_token, TokenKind.ACCESS_TOKEN)
        assert excinfo.value.code == INVALID_TOKEN
        assert excinfo.value.status_code == 401

    def test_tampered_signature_is_rejected(self, codec: TokenCodec) -> None:
        token = codec.generate_tokens(1, "student", False).access_token
        head, payload, signature = token.split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        with pytest.raises(InvalidTokenError):
            codec.verify(f"{head}.{payload}.{flipped}", TokenKind.ACCESS_TOKEN)

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
    def test_garbage_is_rejected(self, codec: TokenCodec, garbage: str) -> None:
        with pytest.raises(InvalidTokenError):
            codec.verify(garbage, TokenKind.REFRESH_TOKEN)

    def test_access_token_does_not_verify_as_refresh(self, codec: TokenCodec) -> None:
        pair = codec.generate_tokens(1, "student", False)
        with pytest.raises(InvalidTokenError):
            codec.verify(pair.access_token, TokenKind.REFRESH_TOKEN)

    def test_reset_token_does_not_verify_as_confirm(self, codec: TokenCodec) -> None:
        token = codec.generate_reset_token(1, "Ada", "ada@example.com")
        with pytest.raises(InvalidTokenError):
            codec.verify(token, TokenKind.CONFIRM_TOKEN)

    def test_type_claim_enforced_when_secrets_are_shared(self) -> None:
        """Kinds stay separate even if an operator reuses one secret for all of them."""
        shared = TokenSettings("x" * 40, 3600)
        same_secret_codec = TokenCodec(TokenConfig(shared, shared, shared, shared))
        pair = same_secret_codec.generate_tokens(1, "student", False)
        with pytest.raises(InvalidTokenError):
            same_secret_codec.verify(pair.refresh_token, TokenKind.ACCESS_TOKEN)

    def test_validate_wrappers_return_none(self, codec: TokenCodec) -> None:
        assert codec.validate_access_token("junk") is None
        assert codec.validate_refresh_token("junk") is None
        assert codec.validate_reset_token("junk") is None
        assert codec.validate_confirm_token("junk") is None

    def test_validate_wrapper_returns_claims(self, codec: TokenCodec) -> None:
        pair = codec.generate_tokens(5, "admin", False)
        claims = codec.validate_refresh_token(pair.refresh_token)
        assert claims is not None
        assert claims["user_id"] == 5


class TestTokenConfig:
    def test_from_settings_maps_every_kind(self) -> None:
        settings = Settings(
            debug=False,
            access_token_secret="1" * 32,
            refresh_token_secret="2" * 32,
            reset_token_secret="3" * 32,
            confirm_token_secret="4" * 32,
            access_token_expire_seconds=60,
            refresh_token_expire_seconds=120,
            reset_token_expire_seconds=180,
            confirm_token_expire_seconds=240,
        )
        config = TokenConfig.from_settings(settings)
        assert config.for_kind(TokenKind.ACCESS_TOKEN) == TokenSettings("1" * 32, 60)
        assert config.for_kind(TokenKind.REFRESH_TOKEN) == TokenSettings("2" * 32, 120)
        assert config.for_kind(TokenKind.RESET_TOKEN) == TokenSettings("3" * 32, 180)
        assert config.for_kind(TokenKind.CONFIRM_TOKEN) == TokenSettings("4" * 32, 240)
