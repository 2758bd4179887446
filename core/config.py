"""
core/config.py -- Settings for authcore, read from the environment and .env.

get_settings() is the only way other modules see configuration; nothing else
reads os.environ. The instance is built once (lru_cache) so every request and
the lifespan share the same secrets. Env var names are the upper-cased field
names, e.g. REFRESH_TOKEN_EXPIRE_SECONDS.

Token secrets:
  Each token kind (access, refresh, reset, confirm) signs with its own
  secret, so a leaked reset secret cannot mint refresh tokens.

  [M6] Secrets shorter than 32 chars are rejected outright. HS256 is only as
       strong as its key.

  [M7] With DEBUG unset, a missing secret stops startup. With DEBUG=true a
       random secret is generated and a warning logged; sessions then die
       with the process.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authcore.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'authcore.db'}"

_SECRET_FIELDS = (
    "access_token_secret",
    "refresh_token_secret",
    "reset_token_secret",
    "confirm_token_secret",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Token secrets -- one per kind so a leaked reset secret cannot mint
    # refresh tokens. Empty string is the "not configured" sentinel.
    # ------------------------------------------------------------------

    access_token_secret: str = ""
    refresh_token_secret: str = ""
    reset_token_secret: str = ""
    confirm_token_secret: str = ""

    # ------------------------------------------------------------------
    # Token lifetimes (seconds)
    # ------------------------------------------------------------------

    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 30 * 24 * 3600
    reset_token_expire_seconds: int = 3 * 3600
    confirm_token_expire_seconds: int = 24 * 3600

    # ------------------------------------------------------------------
    # Google sign-in (empty client id means the provider is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""

    # ------------------------------------------------------------------
    # Outbound email (empty smtp_host means emails are logged, not sent)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    email_from: str = "no-reply@localhost"
    client_url: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    login_rate_limit: str = "10/minute"
    # List env vars are JSON, e.g. ALLOWED_HOSTS='["auth.example.com"]'
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Enforce the token secret policy [M7].

        Dev mode (DEBUG=true): auto-generate every missing secret with a
            warning. Refresh sessions will not survive restart.

        Production mode: refuse to start if any secret is missing.

        Both modes: reject secrets shorter than 32 characters [M6].
        """
        for field in _SECRET_FIELDS:
            value = getattr(self, field)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{field.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                value = secrets.token_hex(32)
                setattr(self, field, value)
                logger.warning("Using auto-generated %s. Tokens will not survive restarts.", field.upper())
            if len(value) < 32:
                raise ValueError(f"{field.upper()} must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
