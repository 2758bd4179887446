"""
API request and response models for authcore REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    student = "student"
    tutor = "tutor"
    admin = "admin"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class _EmailBody(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        """Emails are stored lowercased so lookups are case-insensitive."""
        return value.lower()


class SignupRequest(_EmailBody):
    """Request body for POST /api/v1/auth/signup."""

    role: RoleEnum
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    # 72 bytes is bcrypt's truncation threshold.
    password: str = Field(min_length=8, max_length=72)
    language: str = Field(default="en", min_length=2, max_length=10)
    native_language: Optional[str] = Field(default=None, min_length=2, max_length=10)


class LoginRequest(_EmailBody):
    """Request body for POST /api/v1/auth/login."""

    password: str = Field(min_length=1, max_length=72)


class GoogleAuthRequest(BaseModel):
    """Request body for POST /api/v1/auth/google-auth."""

    token: str = Field(min_length=1, max_length=4096)


class RefreshTokenBody(BaseModel):
    """Optional body for /refresh and /logout when the cookie is unavailable."""

    refresh_token: Optional[str] = Field(default=None, max_length=4096)


class ForgotPasswordRequest(_EmailBody):
    """Request body for POST /api/v1/auth/forgot-password."""

    language: str = Field(default="en", min_length=2, max_length=10)


class ResetPasswordRequest(BaseModel):
    """Request body for PATCH /api/v1/auth/reset-password/{reset_token}."""

    password: str = Field(min_length=8, max_length=72)
    language: str = Field(default="en", min_length=2, max_length=10)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SignupResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    user_email: str


class TokenResponse(BaseModel):
    """Tokens returned by login, refresh and Google sign-in.

    The refresh token is also set as an httpOnly cookie; it is echoed in the
    body for non-browser clients that cannot read cookies.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    first_name: str
    last_name: str
    role: str
    is_first_login: bool
    last_login: Optional[str] = None


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
