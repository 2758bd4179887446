"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST  /api/v1/auth/signup                        -- create account; sends confirmation email
  POST  /api/v1/auth/confirm-email/{confirm_token} -- consume confirm token; 204
  POST  /api/v1/auth/login                         -- password login; returns tokens, sets refresh cookie
  POST  /api/v1/auth/google-auth                   -- Google ID token login; same response as /login
  POST  /api/v1/auth/logout                        -- revoke refresh token; clears cookie; 204
  GET   /api/v1/auth/refresh                       -- exchange refresh token for a new pair
  POST  /api/v1/auth/refresh                       -- same, token in JSON body
  POST  /api/v1/auth/forgot-password               -- email a reset link; 204
  PATCH /api/v1/auth/reset-password/{reset_token}  -- consume reset token, set new password; 204
  GET   /api/v1/auth/me                            -- current user from access token

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  [M5] Cache-Control: no-store on every response that carries tokens.
  The refresh cookie is httpOnly and scoped to /api/v1/auth so it is never
  sent with ordinary API calls.

Business failures raise auth.errors.AuthError; api/main.py renders them.
Routes contain no auth logic of their own.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    ForgotPasswordRequest,
    GoogleAuthRequest,
    LoginRequest,
    MeResponse,
    RefreshTokenBody,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    TokenResponse,
)
from auth.dependencies import get_auth_service, get_current_user
from auth.errors import BAD_REFRESH_TOKEN, AuthError
from auth.models import TokenPair, User
from auth.service import AuthService
from core.config import get_settings

REFRESH_COOKIE = "refresh_token"
_REFRESH_COOKIE_PATH = "/api/v1/auth"

# Auth policy:
# - every route except GET /me is public -- they are how a caller obtains credentials
# - GET /me requires a valid access token (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _token_response(tokens: TokenPair) -> JSONResponse:
    """Build the token body and set the refresh cookie alongside it."""
    settings = get_settings()
    resp = JSONResponse(
        status_code=200,
        content=TokenResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=settings.access_token_expire_seconds,
        ).model_dump(),
    )
    resp.set_cookie(
        REFRESH_COOKIE,
        value=tokens.refresh_token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.refresh_token_expire_seconds,
        path=_REFRESH_COOKIE_PATH,
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _refresh_token_from(request: Request, fallback: str | None) -> str:
    """Cookie first, then the token the client sent explicitly."""
    token = request.cookies.get(REFRESH_COOKIE) or fallback
    if not token:
        raise AuthError(400, BAD_REFRESH_TOKEN, "No refresh token supplied.")
    return token


# ---------------------------------------------------------------------------
# Signup and confirmation
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=SignupResponse, status_code=201)
async def signup(body: SignupRequest, service: AuthService = Depends(get_auth_service)) -> SignupResponse:
    """Create an account. The user must confirm their email before logging in."""
    result = await service.signup(
        body.role.value,
        body.first_name,
        body.last_name,
        body.email,
        body.password,
        body.language,
        body.native_language,
    )
    return SignupResponse(**result)


@router.post("/auth/confirm-email/{confirm_token}", status_code=204)
async def confirm_email(confirm_token: str, service: AuthService = Depends(get_auth_service)) -> Response:
    await service.confirm_email(confirm_token)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@limiter.limit(login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=TokenResponse)
async def login(
    request: Request,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with email and password."""
    tokens = await service.login(body.email, body.password)
    return _token_response(tokens)


@router.post("/auth/google-auth", response_model=TokenResponse)
async def google_auth(body: GoogleAuthRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Authenticate with a Google ID token obtained by the browser."""
    tokens = await service.google_login(body.token)
    return _token_response(tokens)


@router.post("/auth/logout", status_code=204)
async def logout(
    request: Request,
    body: RefreshTokenBody | None = None,
    service: AuthService = Depends(get_auth_service),
) -> Response:
    """Revoke the caller's refresh token. Safe to repeat."""
    token = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    if token:
        await service.logout(token)
    resp = Response(status_code=204)
    resp.delete_cookie(REFRESH_COOKIE, path=_REFRESH_COOKIE_PATH)
    return resp


@router.get("/auth/refresh", response_model=TokenResponse)
async def refresh(
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Mint a new token pair from the refresh cookie or X-Refresh-Token header."""
    token = _refresh_token_from(request, request.headers.get("X-Refresh-Token"))
    tokens = await service.refresh_access_token(token)
    return _token_response(tokens)


@router.post("/auth/refresh", response_model=TokenResponse)
async def refresh_with_body(
    request: Request,
    body: RefreshTokenBody | None = None,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Same as GET /refresh for clients that send the token in a JSON body."""
    token = _refresh_token_from(request, body.refresh_token if body else None)
    tokens = await service.refresh_access_token(token)
    return _token_response(tokens)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/auth/forgot-password", status_code=204)
async def forgot_password(body: ForgotPasswordRequest, service: AuthService = Depends(get_auth_service)) -> Response:
    await service.send_reset_password_email(body.email, body.language)
    return Response(status_code=204)


@router.patch("/auth/reset-password/{reset_token}", status_code=204)
async def reset_password(
    reset_token: str,
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> Response:
    await service.update_password(reset_token, body.password, body.language)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(
        user_id=current_user.id,
        email=current_user.email,
        first_name=current_user.first_name,
        last_name=current_user.last_name,
        role=current_user.role,
        is_first_login=current_user.is_first_login,
        last_login=current_user.last_login,
    )
