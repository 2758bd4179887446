"""
api/main.py -- FastAPI application entry point for authcore.

Run with:  uvicorn api.main:app --reload

Starlette wraps each add_middleware() call around the previous ones, so the
request meets them in reverse registration order:
  log_requests -> SlowAPIMiddleware -> CORSMiddleware -> TrustedHostMiddleware

Lifespan builds the object graph once (stores, codec, email sender, Google
verifier, AuthService) and tears the stores down symmetrically on shutdown.
Routes reach the service through app.state via auth.dependencies.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.email import LoggingEmailSender, SmtpEmailSender
from auth.errors import AuthError
from auth.oauth import GoogleTicketVerifier
from auth.service import AuthService
from auth.store import TokenStore, UserStore
from auth.tokens import TokenCodec, TokenConfig
from core.config import Settings, get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authcore.api")


# ---------------------------------------------------------------------------
# Object graph
# ---------------------------------------------------------------------------


def build_auth_service(settings: Settings, user_store: UserStore, token_store: TokenStore) -> AuthService:
    """Wire AuthService from settings and already-open stores."""
    if settings.smtp_host:
        email_sender = SmtpEmailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.email_from,
            client_url=settings.client_url,
            username=settings.smtp_username,
            password=settings.smtp_password,
        )
    else:
        logger.warning("SMTP_HOST not set -- auth emails will be logged, not delivered")
        email_sender = LoggingEmailSender(client_url=settings.client_url)

    if not settings.google_client_id:
        logger.info("GOOGLE_CLIENT_ID not set -- Google sign-in will reject every ticket")

    return AuthService(
        codec=TokenCodec(TokenConfig.from_settings(settings)),
        token_store=token_store,
        user_store=user_store,
        email_sender=email_sender,
        ticket_verifier=GoogleTicketVerifier(),
        google_client_id=settings.google_client_id,
    )


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown, even if a request handler raised.
    """
    settings = get_settings()
    logger.info("authcore API starting up")
    app.state.user_store = UserStore(settings.database_url)
    app.state.token_store = TokenStore(settings.database_url)
    app.state.auth_service = build_auth_service(settings, app.state.user_store, app.state.token_store)
    logger.info("Auth initialized")

    yield

    app.state.token_store.close()
    app.state.user_store.close()
    logger.info("authcore API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authcore API",
    description="Signup, login, session refresh, password reset and email confirmation.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack (innermost first, see module docstring)
# ---------------------------------------------------------------------------

_settings = get_settings()

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,  # refresh cookie
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "X-Refresh-Token"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# One access line per request. Paths only: tokens in /confirm-email/{token}
# and /reset-password/{token} are single-use secrets, so the last path
# segment of those routes is masked.
# ---------------------------------------------------------------------------

_TOKEN_PATH_PREFIXES = ("/api/v1/auth/confirm-email/", "/api/v1/auth/reset-password/")


def _loggable_path(path: str) -> str:
    for prefix in _TOKEN_PATH_PREFIXES:
        if path.startswith(prefix):
            return prefix + "***"
    return path


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "%s %s %d %.1fms %s",
        request.method,
        _loggable_path(request.url.path),
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every failure leaves the API as {"error": {"code", "message", "detail"}}.
# Auth codes (USER_NOT_FOUND, BAD_REFRESH_TOKEN, ...) pass through verbatim;
# framework failures get lowercase codes.
# ---------------------------------------------------------------------------


def _error_response(
    status_code: int,
    code: str,
    message: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render a business failure from the auth core with its own status and code."""
    return _error_response(exc.status_code, exc.code, exc.message, headers={"Cache-Control": "no-store"})


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "?")
    retry_after = int(getattr(exc, "retry_after", 60))
    return _error_response(
        429, "rate_limited", "Too many attempts. Try again later.", str(exc), {"Retry-After": str(retry_after)}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Structured dict details (from auth.dependencies) keep their own code."""
    if isinstance(exc.detail, dict):
        return _error_response(exc.status_code, exc.detail["code"], exc.detail.get("message", ""))
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected failures, e.g. the SMTP relay being down.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit -- health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, current version, and database reachability."""
    database = "ok"
    try:
        with request.app.state.user_store.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )
