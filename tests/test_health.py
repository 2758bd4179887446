"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database key present and reports 'ok'
  - No authentication required
"""

from __future__ import annotations

from api.main import VERSION, _loggable_path


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api_client.client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == VERSION
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_response_includes_database_component(api_client):
    """Health response components dict includes database status."""
    data = api_client.client.get("/api/v1/health").json()
    assert "database" in data["components"]
    assert data["components"]["database"] in ("ok", "error")


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    api_client.client.cookies.clear()
    resp = api_client.client.get("/api/v1/health", headers={})
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_unknown_host_is_rejected(api_client):
    """TrustedHostMiddleware refuses Host headers outside ALLOWED_HOSTS."""
    resp = api_client.client.get("/api/v1/health", headers={"Host": "evil.example.com"})
    assert resp.status_code == 400


def test_access_log_masks_path_tokens():
    """Single-use tokens in the path never reach the access log."""
    assert _loggable_path("/api/v1/auth/reset-password/eyJ.secret.sig") == "/api/v1/auth/reset-password/***"
    assert _loggable_path("/api/v1/auth/confirm-email/eyJ.secret.sig") == "/api/v1/auth/confirm-email/***"
    assert _loggable_path("/api/v1/auth/login") == "/api/v1/auth/login"
