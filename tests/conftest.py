"""
tests/conftest.py -- Shared test fixtures for authcore.

This module provides:
  - RecordingEmailSender / FakeTicketVerifier: in-memory collaborators that
    satisfy the EmailSender and TicketVerifier protocols
  - db_url: a unique named shared-memory SQLite URI per test
  - codec / user_store / token_store / service: unit-level building blocks
  - make_user: creates a user (confirmed by default) and returns it
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool, and bcrypt checks run
in worker threads too. Plain :memory: DBs are per-connection and would present
a blank schema to each worker thread.

DEBUG must be set before any core/auth/api import so get_settings()
auto-generates token secrets instead of raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

# CRITICAL: Set env before any core/auth/api import -- get_settings() is cached
# on first call and api.main reads it at import time.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.oauth import TicketVerificationError
from auth.service import AuthService
from auth.store import TokenStore, UserStore
from auth.tokens import TokenCodec, TokenConfig, TokenSettings

GOOGLE_CLIENT_ID = os.environ["GOOGLE_CLIENT_ID"]
DEFAULT_PASSWORD = "correct-horse-battery"

# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


@dataclass
class SentEmail:
    to_address: str
    subject_key: str
    language: str
    template_data: dict[str, Any]


@dataclass
class RecordingEmailSender:
    """Keeps every email instead of delivering it. Set fail_with to simulate an outage."""

    sent: list[SentEmail] = field(default_factory=list)
    fail_with: Exception | None = None

    async def send(self, to_address: str, subject_key: str, language: str, template_data: dict[str, Any]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(SentEmail(to_address, subject_key, language, dict(template_data)))

    def last(self, subject_key: str) -> SentEmail:
        matching = [e for e in self.sent if e.subject_key == subject_key]
        assert matching, f"no {subject_key} email was sent"
        return matching[-1]


@dataclass
class FakeTicketVerifier:
    """Accepts only tickets registered in `tickets`, and only for GOOGLE_CLIENT_ID."""

    tickets: dict[str, dict[str, Any]] = field(default_factory=dict)
    calls: int = 0

    async def verify_ticket(self, id_token: str, audience: str) -> dict[str, Any]:
        self.calls += 1
        if audience != GOOGLE_CLIENT_ID or id_token not in self.tickets:
            raise TicketVerificationError("unknown ticket")
        return self.tickets[id_token]


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def shared_memory_url(name: str) -> str:
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


def make_token_config(expire_seconds: int = 3600) -> TokenConfig:
    return TokenConfig(
        access=TokenSettings("a" * 32 + "-access-secret", expire_seconds),
        refresh=TokenSettings("r" * 32 + "-refresh-secret", expire_seconds),
        reset=TokenSettings("s" * 32 + "-reset-secret", expire_seconds),
        confirm=TokenSettings("c" * 32 + "-confirm-secret", expire_seconds),
    )


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url() -> str:
    return shared_memory_url(f"authcore_{uuid.uuid4().hex}")


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(make_token_config())


@pytest.fixture
def user_store(db_url: str) -> Generator[UserStore, None, None]:
    store = UserStore(db_url)
    yield store
    store.close()


@pytest.fixture
def token_store(db_url: str) -> Generator[TokenStore, None, None]:
    store = TokenStore(db_url)
    yield store
    store.close()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def ticket_verifier() -> FakeTicketVerifier:
    return FakeTicketVerifier()


@pytest.fixture
def service(
    codec: TokenCodec,
    token_store: TokenStore,
    user_store: UserStore,
    email_sender: RecordingEmailSender,
    ticket_verifier: FakeTicketVerifier,
) -> AuthService:
    return AuthService(
        codec=codec,
        token_store=token_store,
        user_store=user_store,
        email_sender=email_sender,
        ticket_verifier=ticket_verifier,
        google_client_id=GOOGLE_CLIENT_ID,
    )


@pytest.fixture
def make_user(user_store: UserStore) -> Callable[..., User]:
    """Return a factory: make_user(email, password=..., confirmed=True, role="student")."""

    def factory(
        email: str,
        password: str = DEFAULT_PASSWORD,
        confirmed: bool = True,
        role: str = "student",
        first_name: str = "Ada",
    ) -> User:
        user = user_store.create(role, first_name, "Lovelace", email, password, "en", "en")
        if confirmed:
            user = user_store.update(user.id, is_email_confirmed=True)
        return user

    return factory


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    service: AuthService
    email_sender: RecordingEmailSender
    ticket_verifier: FakeTicketVerifier


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test AuthService (isolated stores, fake email and Google
    collaborators) into app.state so no real SMTP or network call is made.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = service.user_store
        app.state.token_store = service.token_store
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for HTTP integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers but use isolated in-memory stores.
    """
    url = shared_memory_url(f"authcore_api_{request.module.__name__.replace('.', '_')}")
    user_store = UserStore(url)
    token_store = TokenStore(url)
    email_sender = RecordingEmailSender()
    ticket_verifier = FakeTicketVerifier()
    service = AuthService(
        codec=TokenCodec(make_token_config()),
        token_store=token_store,
        user_store=user_store,
        email_sender=email_sender,
        ticket_verifier=ticket_verifier,
        google_client_id=GOOGLE_CLIENT_ID,
    )

    app.router.lifespan_context = _patch_lifespan(service)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield ApiContext(client, service, email_sender, ticket_verifier)

    token_store.close()
    user_store.close()
