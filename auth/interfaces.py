"""
auth/interfaces.py -- Contracts the session orchestrator depends on.

AuthService depends on these protocols, not on the concrete stores, the SMTP
sender or the Google verifier. Tests substitute in-memory fakes; deployments
can swap the SQLite stores for another backend without touching the service.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from auth.models import StoredToken, TokenKind, User


@runtime_checkable
class UserRepository(Protocol):
    """User records. The auth core reads and updates them, never deletes them."""

    def get_by_email(self, email: str) -> User | None: ...

    def get_by_id(self, user_id: int) -> User | None: ...

    def create(
        self,
        role: str,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        language: str,
        native_language: str | None,
    ) -> User:
        """Create a user from a plaintext password.

        Raises:
            UserAlreadyExistsError: the email is already registered.
        """
        ...

    def update(self, user_id: int, **fields: Any) -> User:
        """Apply a partial update.

        Raises:
            UserNotFoundError: no user with that id.
        """
        ...


@runtime_checkable
class TokenRepository(Protocol):
    def save(self, user_id: int, token: str, kind: TokenKind) -> StoredToken: ...

    def find(self, token: str, kind: TokenKind) -> StoredToken | None: ...

    def remove(self, token: str, kind: TokenKind | None = None) -> int: ...

    def remove_all_for_user(self, user_id: int, kind: TokenKind) -> int: ...


@runtime_checkable
class EmailSender(Protocol):
    async def send(self, to_address: str, subject_key: str, language: str, template_data: dict[str, Any]) -> None:
        """Deliver one templated email. Failures propagate to the caller."""
        ...


@runtime_checkable
class TicketVerifier(Protocol):
    async def verify_ticket(self, id_token: str, audience: str) -> dict[str, Any]:
        """Return the verified ticket payload.

        Raises:
            Exception: any subclass, on an invalid, expired or foreign ticket.
        """
        ...
