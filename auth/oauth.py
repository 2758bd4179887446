"""
auth/oauth.py -- Google ID-token ("ticket") verification.

The browser completes Google Sign-In on its own and posts the resulting ID
token to /api/v1/auth/google-auth. GoogleTicketVerifier checks that token
locally with authlib's JOSE implementation against Google's published JWKS:

  - RS256 signature against a key from the JWKS (matched by kid)
  - iss is accounts.google.com
  - aud equals our OAuth client id
  - exp / iat are sane

Security notes:
  [H1] Email verification is mandatory. A ticket whose email_verified claim
       is not true is rejected. The login that follows trusts the ticket's
       email in place of a password, so an unverified address would let an
       attacker sign in as its owner.

  The JWKS is cached for _JWKS_TTL seconds. A kid that is missing from the
  cached set forces one refetch, which covers Google's key rotation. Forced
  refetches are limited to one per _FORCED_REFETCH_INTERVAL, so tickets with
  made-up kids cannot drive traffic to Google.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests
from authlib.jose import JsonWebKey, JsonWebToken
from authlib.jose.errors import JoseError
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger("authcore.auth.oauth")

GOOGLE_JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ["accounts.google.com", "https://accounts.google.com"]

_JWKS_TTL = 60 * 60
# At most one forced refetch (unknown kid) per this many seconds.
_FORCED_REFETCH_INTERVAL = 60

# Module-level session shared across verifier instances for connection pooling.
_session = requests.Session()
_session.max_redirects = 3


class TicketVerificationError(Exception):
    """The ID token is malformed, expired, mis-signed, or issued for another client."""


class GoogleTicketVerifier:
    """Verify Google ID tokens. Satisfies the TicketVerifier protocol.

    Usage:
        verifier = GoogleTicketVerifier()
        payload = await verifier.verify_ticket(id_token, audience=settings.google_client_id)
        payload["email"], payload["sub"]
    """

    def __init__(self, jwks_url: str = GOOGLE_JWKS_URL, timeout: float = 10.0) -> None:
        self._jwks_url = jwks_url
        self._timeout = timeout
        self._jwt = JsonWebToken(["RS256"])
        self._jwks: dict[str, Any] | None = None
        self._jwks_fetched_at = 0.0
        self._last_forced_refetch: float | None = None

    def _fetch_jwks(self) -> dict[str, Any]:
        resp = _session.get(self._jwks_url, timeout=self._timeout)
        resp.raise_for_status()
        return resp.json()

    async def _get_jwks(self, force: bool = False) -> dict[str, Any]:
        stale = time.monotonic() - self._jwks_fetched_at > _JWKS_TTL
        if force or self._jwks is None or stale:
            self._jwks = await run_in_threadpool(self._fetch_jwks)
            self._jwks_fetched_at = time.monotonic()
            logger.info("Fetched Google JWKS (%d keys)", len(self._jwks.get("keys", [])))
        return self._jwks

    def _refetch_allowed(self) -> bool:
        now = time.monotonic()
        if self._last_forced_refetch is not None and now - self._last_forced_refetch < _FORCED_REFETCH_INTERVAL:
            return False
        self._last_forced_refetch = now
        return True

    def _decode(self, id_token: str, jwks: dict[str, Any], audience: str) -> dict[str, Any]:
        claims = self._jwt.decode(
            id_token,
            JsonWebKey.import_key_set(jwks),
            claims_options={
                "iss": {"essential": True, "values": GOOGLE_ISSUERS},
                "aud": {"essential": True, "value": audience},
                "sub": {"essential": True},
                "exp": {"essential": True},
            },
        )
        claims.validate()
        return dict(claims)

    async def verify_ticket(self, id_token: str, audience: str) -> dict[str, Any]:
        """Return the verified ticket payload.

        Raises:
            TicketVerificationError: the ticket is invalid for any reason.
            requests.RequestException: Google's JWKS endpoint is unreachable.
        """
        if not audience:
            raise TicketVerificationError("Google sign-in is not configured (GOOGLE_CLIENT_ID is empty)")

        jwks = await self._get_jwks()
        try:
            payload = self._decode(id_token, jwks, audience)
        except ValueError as exc:
            # Unknown kid: Google may have rotated keys since the last fetch.
            if not self._refetch_allowed():
                raise TicketVerificationError(str(exc)) from exc
            jwks = await self._get_jwks(force=True)
            try:
                payload = self._decode(id_token, jwks, audience)
            except (JoseError, ValueError) as exc:
                raise TicketVerificationError(str(exc)) from exc
        except JoseError as exc:
            raise TicketVerificationError(str(exc)) from exc

        if payload.get("email_verified") is not True:  # [H1]
            raise TicketVerificationError("Google account email is not verified")
        if not payload.get("email"):
            raise TicketVerificationError("Google ticket carries no email claim")
        return payload
