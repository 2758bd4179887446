"""
tests/test_config.py -- Token secret policy in core/config.py.

Covers:
  - production mode refuses to start without every secret
  - debug mode generates missing secrets, distinct per kind
  - short secrets are rejected in both modes
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

_SECRETS = {
    "access_token_secret": "a" * 32,
    "refresh_token_secret": "r" * 32,
    "reset_token_secret": "s" * 32,
    "confirm_token_secret": "c" * 32,
}


def test_production_requires_every_secret():
    partial = dict(_SECRETS, confirm_token_secret="")
    with pytest.raises(ValidationError, match="CONFIRM_TOKEN_SECRET is required"):
        Settings(debug=False, **partial)


def test_production_accepts_full_configuration():
    settings = Settings(debug=False, **_SECRETS)
    assert settings.refresh_token_secret == "r" * 32


def test_debug_generates_distinct_secrets():
    settings = Settings(
        debug=True, access_token_secret="", refresh_token_secret="", reset_token_secret="", confirm_token_secret=""
    )
    generated = {
        settings.access_token_secret,
        settings.refresh_token_secret,
        settings.reset_token_secret,
        settings.confirm_token_secret,
    }
    assert len(generated) == 4
    assert all(len(s) >= 32 for s in generated)


@pytest.mark.parametrize("debug", [True, False])
def test_short_secret_rejected(debug):
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(debug=debug, **dict(_SECRETS, reset_token_secret="too-short"))
