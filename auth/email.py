"""
auth/email.py -- Outbound email for the auth flows.

Two senders satisfy the EmailSender protocol:
  SmtpEmailSender    -- real delivery over SMTP (STARTTLS when credentials
                        are configured). smtplib is blocking, so delivery runs
                        in the threadpool.
  LoggingEmailSender -- development default when SMTP_HOST is unset. Logs the
                        recipient and subject only; bodies may contain
                        single-use tokens and are never logged.

Bodies are short plain-text Jinja2 templates keyed by subject. Delivery
failures propagate unchanged -- the service decides what to roll back.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.text import MIMEText
from typing import Any

from jinja2 import Environment, StrictUndefined
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger("authcore.auth.email")

# Subject keys
EMAIL_CONFIRMATION = "EMAIL_CONFIRMATION"
RESET_PASSWORD = "RESET_PASSWORD"
SUCCESSFUL_PASSWORD_RESET = "SUCCESSFUL_PASSWORD_RESET"

_DEFAULT_LANGUAGE = "en"

_SUBJECTS: dict[str, dict[str, str]] = {
    "en": {
        EMAIL_CONFIRMATION: "Please confirm your email",
        RESET_PASSWORD: "Reset your password",
        SUCCESSFUL_PASSWORD_RESET: "Your password has been changed",
    },
    "uk": {
        EMAIL_CONFIRMATION: "Підтвердіть свою електронну адресу",
        RESET_PASSWORD: "Відновлення пароля",
        SUCCESSFUL_PASSWORD_RESET: "Ваш пароль змінено",
    },
}

_BODIES: dict[str, str] = {
    EMAIL_CONFIRMATION: (
        "Hello {{ first_name }},\n\n"
        "Confirm your email address by opening the link below:\n"
        "{{ client_url }}/confirm-email/{{ confirm_token }}\n"
    ),
    RESET_PASSWORD: (
        "Hello {{ first_name }},\n\n"
        "A password reset was requested for {{ email }}. Open the link below to choose a new password:\n"
        "{{ client_url }}/reset-password/{{ reset_token }}\n\n"
        "If you did not request this, you can ignore this email.\n"
    ),
    SUCCESSFUL_PASSWORD_RESET: (
        "Hello {{ first_name }},\n\n"
        "Your password was changed successfully. If this was not you, contact support immediately.\n"
    ),
}

_env = Environment(autoescape=False, undefined=StrictUndefined, keep_trailing_newline=True)


def render_email(subject_key: str, language: str, template_data: dict[str, Any], client_url: str) -> tuple[str, str]:
    """Return (subject, body) for a subject key. Unknown languages fall back to English.

    Raises KeyError for an unknown subject key.
    """
    subjects = _SUBJECTS.get(language, _SUBJECTS[_DEFAULT_LANGUAGE])
    subject = subjects[subject_key]
    body = _env.from_string(_BODIES[subject_key]).render(client_url=client_url, **template_data)
    return subject, body


class SmtpEmailSender:
    """Deliver auth emails through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        client_url: str,
        username: str = "",
        password: str = "",
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._client_url = client_url.rstrip("/")
        self._username = username
        self._password = password
        self._timeout = timeout

    async def send(self, to_address: str, subject_key: str, language: str, template_data: dict[str, Any]) -> None:
        subject, body = render_email(subject_key, language, template_data, self._client_url)
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self._sender
        msg["To"] = to_address
        await run_in_threadpool(self._deliver, to_address, msg)
        logger.info("Sent %s email", subject_key)

    def _deliver(self, to_address: str, msg: MIMEText) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._username:
                server.starttls()
                server.login(self._username, self._password)
            server.sendmail(self._sender, [to_address], msg.as_string())


class LoggingEmailSender:
    """Stand-in sender for local development. Renders, then logs the envelope."""

    def __init__(self, client_url: str = "http://localhost:3000") -> None:
        self._client_url = client_url.rstrip("/")

    async def send(self, to_address: str, subject_key: str, language: str, template_data: dict[str, Any]) -> None:
        subject, _body = render_email(subject_key, language, template_data, self._client_url)
        logger.info("Email not sent (SMTP disabled): to=%s subject=%r", to_address, subject)
