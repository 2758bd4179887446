"""
auth/service.py -- Session orchestrator: every user-facing auth flow.

AuthService composes the token codec, the token store, the credential
verifier and the external collaborators (user store, email sender, Google
ticket verifier). It owns business-rule sequencing and side-effect ordering;
it holds no mutable state of its own, so one instance serves every request.

Ordering rules worth knowing before editing a flow:

  login          All checks (user exists, password or Google bypass, email
                 confirmed) run before anything is minted or persisted, so a
                 rejected login never leaves a token behind. The first-login
                 and last-login updates run after persistence and are not
                 rolled back if they fail.

  refresh        A refresh token is accepted only if its signature/expiry are
                 valid AND its row is still in the store. The old token is not
                 revoked; sessions accumulate until logout.

  reset request  If the email cannot be sent, the reset token that was just
                 stored is removed again before the error propagates. Nobody
                 received the link, so it should not stay usable.

  reset complete The password is changed before the reset tokens are removed.
                 A failure in between leaves the token usable for a retry
                 rather than consumed with the password unchanged.

Token failures collapse into one code per kind (BAD_REFRESH_TOKEN,
BAD_RESET_TOKEN, BAD_CONFIRM_TOKEN). Expired, revoked and forged tokens are
indistinguishable to the caller.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from starlette.concurrency import run_in_threadpool

from auth.credentials import hash_password, verify_login
from auth.email import EMAIL_CONFIRMATION, RESET_PASSWORD, SUCCESSFUL_PASSWORD_RESET
from auth.errors import (
    BAD_CONFIRM_TOKEN,
    BAD_ID_TOKEN,
    BAD_REFRESH_TOKEN,
    BAD_RESET_TOKEN,
    USER_NOT_FOUND,
    AuthError,
)
from auth.interfaces import EmailSender, TicketVerifier, TokenRepository, UserRepository
from auth.models import TokenKind, TokenPair
from auth.tokens import TokenCodec

logger = logging.getLogger("authcore.auth.service")


class AuthService:
    """Token lifecycle orchestration.

    Usage:
        service = AuthService(codec, token_store, user_store, email_sender, verifier, google_client_id)
        pair = await service.login("ada@example.com", "secret")
        pair = await service.refresh_access_token(pair.refresh_token)
        await service.logout(pair.refresh_token)
    """

    def __init__(
        self,
        codec: TokenCodec,
        token_store: TokenRepository,
        user_store: UserRepository,
        email_sender: EmailSender,
        ticket_verifier: TicketVerifier,
        google_client_id: str = "",
    ) -> None:
        self.codec = codec
        self.token_store = token_store
        self.user_store = user_store
        self.email_sender = email_sender
        self.ticket_verifier = ticket_verifier
        self.google_client_id = google_client_id

    # ------------------------------------------------------------------
    # Signup / email confirmation
    # ------------------------------------------------------------------

    async def signup(
        self,
        role: str,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        language: str,
        native_language: str | None,
    ) -> dict[str, Any]:
        """Create the account and issue its email confirmation token.

        UserAlreadyExistsError from the user store propagates unchanged. The
        store hashes the password, so the create call runs in the threadpool.
        """
        user = await run_in_threadpool(
            self.user_store.create, role, first_name, last_name, email, password, language, native_language
        )

        confirm_token = self.codec.generate_confirm_token(user.id, role)
        self.token_store.save(user.id, confirm_token, TokenKind.CONFIRM_TOKEN)

        await self.email_sender.send(
            user.email,
            EMAIL_CONFIRMATION,
            language,
            {"confirm_token": confirm_token, "email": user.email, "first_name": user.first_name},
        )
        logger.info("Signup complete for user_id=%s", user.id)

        return {"user_id": user.id, "user_email": user.email}

    async def confirm_email(self, confirm_token: str) -> None:
        claims = self.codec.validate_confirm_token(confirm_token)
        stored = self.token_store.find(confirm_token, TokenKind.CONFIRM_TOKEN)

        if not claims or not stored:
            logger.warning("Rejected email confirmation token")
            raise AuthError(400, BAD_CONFIRM_TOKEN)

        user_id = claims["user_id"]
        self.user_store.update(user_id, is_email_confirmed=True)
        self.token_store.remove_all_for_user(user_id, TokenKind.CONFIRM_TOKEN)
        logger.info("Email confirmed for user_id=%s", user_id)

    # ------------------------------------------------------------------
    # Login / logout / refresh
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str, is_from_google: bool = False) -> TokenPair:
        user = self.user_store.get_by_email(email)

        if user is None:
            logger.warning("Login failed: unknown email")
            raise AuthError(401, USER_NOT_FOUND)

        try:
            await verify_login(user, password, is_from_google)
        except AuthError as exc:
            logger.warning("Login failed for user_id=%s: %s", user.id, exc.code)
            raise

        tokens = self.codec.generate_tokens(user.id, user.role, user.is_first_login)
        self.token_store.save(user.id, tokens.refresh_token, TokenKind.REFRESH_TOKEN)

        if user.is_first_login:
            self.user_store.update(user.id, is_first_login=False)

        self.user_store.update(user.id, last_login=datetime.now(timezone.utc).isoformat())
        logger.info("Login succeeded for user_id=%s (google=%s)", user.id, is_from_google)

        return tokens

    async def logout(self, refresh_token: str) -> None:
        removed = self.token_store.remove(refresh_token, TokenKind.REFRESH_TOKEN)
        logger.info("Logout removed %d refresh token row(s)", removed)

    async def refresh_access_token(self, refresh_token: str) -> TokenPair:
        claims = self.codec.validate_refresh_token(refresh_token)
        stored = self.token_store.find(refresh_token, TokenKind.REFRESH_TOKEN)

        if not claims or not stored:
            logger.warning("Rejected refresh token")
            raise AuthError(400, BAD_REFRESH_TOKEN)

        user = self.user_store.get_by_id(claims["user_id"])
        if user is None:
            raise AuthError(404, USER_NOT_FOUND)

        tokens = self.codec.generate_tokens(user.id, user.role, user.is_first_login)
        self.token_store.save(user.id, tokens.refresh_token, TokenKind.REFRESH_TOKEN)

        return tokens

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    async def send_reset_password_email(self, email: str, language: str) -> None:
        user = self.user_store.get_by_email(email)

        if user is None:
            raise AuthError(404, USER_NOT_FOUND)

        reset_token = self.codec.generate_reset_token(user.id, user.first_name, email)
        self.token_store.save(user.id, reset_token, TokenKind.RESET_TOKEN)

        try:
            await self.email_sender.send(
                email,
                RESET_PASSWORD,
                language,
                {"reset_token": reset_token, "email": email, "first_name": user.first_name},
            )
        except Exception:
            self.token_store.remove(reset_token, TokenKind.RESET_TOKEN)
            logger.exception("Reset email delivery failed for user_id=%s; reset token withdrawn", user.id)
            raise

        logger.info("Reset email sent for user_id=%s", user.id)

    async def update_password(self, reset_token: str, password: str, language: str) -> None:
        claims = self.codec.validate_reset_token(reset_token)
        stored = self.token_store.find(reset_token, TokenKind.RESET_TOKEN)

        if not claims or not stored:
            logger.warning("Rejected reset token")
            raise AuthError(400, BAD_RESET_TOKEN)

        user_id = claims["user_id"]
        hashed = await run_in_threadpool(hash_password, password)
        self.user_store.update(user_id, password=hashed)

        self.token_store.remove_all_for_user(user_id, TokenKind.RESET_TOKEN)
        logger.info("Password updated for user_id=%s", user_id)

        await self.email_sender.send(
            claims["email"],
            SUCCESSFUL_PASSWORD_RESET,
            language,
            {"first_name": claims.get("first_name", "")},
        )

    # ------------------------------------------------------------------
    # Google sign-in
    # ------------------------------------------------------------------

    async def get_payload_from_google_ticket(self, id_token: str) -> dict[str, Any]:
        """Exchange a Google ID token for its verified payload. No retry."""
        try:
            return await self.ticket_verifier.verify_ticket(id_token, audience=self.google_client_id)
        except Exception as exc:
            logger.warning("Google ticket rejected: %s", exc)
            raise AuthError(401, BAD_ID_TOKEN) from exc

    async def google_login(self, id_token: str) -> TokenPair:
        """Log in the account matching a verified Google ticket's email."""
        payload = await self.get_payload_from_google_ticket(id_token)
        return await self.login(payload["email"], "", is_from_google=True)
