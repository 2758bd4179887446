"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Access tokens are read from, in priority order:
  1. Authorization: Bearer <token> header -- API and SPA clients.
  2. "access_token" cookie -- browser sessions.

Access tokens are stateless: validity is signature + expiry only, so these
helpers never touch the token store. The user record is still loaded so a
deleted account stops working immediately.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_role() builds a dependency that additionally checks the token's role.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi because it is part of the
  FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.models import User
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService wired into app.state by the lifespan."""
    return request.app.state.auth_service


def _extract_access_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return request.cookies.get("access_token")


def try_get_current_user(request: Request) -> User | None:
    """Authenticate the request from its access token. Never raises."""
    token = _extract_access_token(request)
    if not token:
        return None

    service = get_auth_service(request)
    claims = service.codec.validate_access_token(token)
    if not claims:
        return None

    user = service.user_store.get_by_id(claims["user_id"])
    if user is None:
        return None
    # The token's role is authoritative for this session window.
    user.role = claims.get("role", user.role)
    return user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "INVALID_TOKEN", "message": "Authentication required."},
        )
    return user


def require_role(*roles: str) -> Callable[[Request], User]:
    """Build a dependency that requires one of the given roles.

    Use as a FastAPI dependency:
        @router.post("/admin-only")
        async def route(user: User = Depends(require_role("admin"))): ...
    """

    def dependency(request: Request) -> User:
        user = get_current_user(request)
        if user.role not in roles:
            raise HTTPException(
                status_code=403,
                detail={"code": "FORBIDDEN", "message": "Insufficient role for this operation."},
            )
        return user

    return dependency
