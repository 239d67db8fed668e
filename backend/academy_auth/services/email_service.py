"""Outbound account emails (verification code, password reset).

Two gateways:

- ``ResendNotificationGateway`` delivers through the Resend API.
- ``LogNotificationGateway`` writes the rendered message to the application
  log. It is a local-development backend, selected explicitly with
  ``MAIL_BACKEND=log``.

A failed send raises ``NotificationError``. The lifecycle lets it propagate so
the caller never gets "check your email" for a message that was not sent.
"""

from __future__ import annotations

import html
import logging
import urllib.parse
from dataclasses import dataclass
from typing import Optional, Protocol

import resend

from academy_auth.core.errors import NotificationError

logger = logging.getLogger(__name__)


class NotificationGateway(Protocol):
    def send_verification_email(self, to_email: str, code: str, name: str) -> None: ...

    def send_password_reset_email(self, to_email: str, token: str, name: str) -> None: ...


@dataclass(frozen=True)
class EmailMessage:
    to_email: str
    subject: str
    html: str
    text: str


def mask_email(email: str) -> str:
    """jane.doe@x.com -> j***@x.com (for logs)."""
    local, _, domain = str(email or "").partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


def reset_url(frontend_url: str, token: str) -> str:
    base = str(frontend_url or "").rstrip("/")
    return f"{base}/reset-password?{urllib.parse.urlencode({'token': token})}"


def build_verification_email(to_email: str, code: str, name: str, *, ttl_minutes: int = 10) -> EmailMessage:
    safe_name = html.escape(name or "there")
    safe_code = html.escape(code)
    body_html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #2c3e50;">Hello {safe_name}!</h1>
    <p>Thank you for registering. Please use the following code to verify your email:</p>
    <h2 style="letter-spacing: 4px;">{safe_code}</h2>
    <p>This code expires in {int(ttl_minutes)} minutes.</p>
</div>
    """.strip()
    body_text = f"""
Hello {name or 'there'}!

Thank you for registering. Please use the following code to verify your email:

{code}

This code expires in {int(ttl_minutes)} minutes.
    """.strip()
    return EmailMessage(to_email=to_email, subject="Verify Your Email", html=body_html, text=body_text)


def build_password_reset_email(
    to_email: str,
    token: str,
    name: str,
    *,
    frontend_url: str,
    ttl_minutes: int = 60,
) -> EmailMessage:
    link = reset_url(frontend_url, token)
    safe_name = html.escape(name or "there")
    safe_link = html.escape(link, quote=True)
    body_html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #2c3e50;">Hello {safe_name}!</h1>
    <p>You requested a password reset. Click the link below to reset your password:</p>
    <p><a href="{safe_link}">{safe_link}</a></p>
    <p>Or use this token: <strong>{html.escape(token)}</strong></p>
    <p>This link expires in {int(ttl_minutes)} minutes.</p>
    <p>If you didn't request this, please ignore this email.</p>
</div>
    """.strip()
    body_text = f"""
Hello {name or 'there'}!

You requested a password reset. Open the link below to reset your password:
{link}

Or use this token: {token}

This link expires in {int(ttl_minutes)} minutes.
If you didn't request this, please ignore this email.
    """.strip()
    return EmailMessage(to_email=to_email, subject="Reset Your Password", html=body_html, text=body_text)


class _TemplateGateway:
    def __init__(self, *, frontend_url: str, verification_ttl_minutes: int = 10, reset_ttl_minutes: int = 60):
        self.frontend_url = frontend_url
        self.verification_ttl_minutes = int(verification_ttl_minutes)
        self.reset_ttl_minutes = int(reset_ttl_minutes)

    def send_verification_email(self, to_email: str, code: str, name: str) -> None:
        msg = build_verification_email(to_email, code, name, ttl_minutes=self.verification_ttl_minutes)
        self._deliver(msg)
        logger.info("Verification email sent to %s", mask_email(to_email))

    def send_password_reset_email(self, to_email: str, token: str, name: str) -> None:
        msg = build_password_reset_email(
            to_email,
            token,
            name,
            frontend_url=self.frontend_url,
            ttl_minutes=self.reset_ttl_minutes,
        )
        self._deliver(msg)
        logger.info("Password reset email sent to %s", mask_email(to_email))

    def _deliver(self, msg: EmailMessage) -> None:
        raise NotImplementedError


class ResendNotificationGateway(_TemplateGateway):
    def __init__(
        self,
        *,
        api_key: Optional[str],
        email_from: str,
        frontend_url: str,
        verification_ttl_minutes: int = 10,
        reset_ttl_minutes: int = 60,
    ):
        super().__init__(
            frontend_url=frontend_url,
            verification_ttl_minutes=verification_ttl_minutes,
            reset_ttl_minutes=reset_ttl_minutes,
        )
        self._api_key = api_key
        self.email_from = email_from

    def _deliver(self, msg: EmailMessage) -> None:
        if not self._api_key:
            raise NotificationError("RESEND_API_KEY is not configured")
        if not self.email_from:
            raise NotificationError("EMAIL_FROM is not configured")

        # The Resend SDK reads its key from module state.
        resend.api_key = self._api_key
        params = {
            "from": self.email_from,
            "to": [msg.to_email],
            "subject": msg.subject,
            "html": msg.html,
            "text": msg.text,
        }
        try:
            response = resend.Emails.send(params)
        except Exception as exc:
            detail = str(exc)
            if self._api_key in detail:
                detail = detail.replace(self._api_key, "***REDACTED***")
            logger.error("Resend rejected email to %s: %s", mask_email(msg.to_email), detail[:200])
            raise NotificationError(f"Failed to send email: {msg.subject}") from exc

        email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        if not email_id:
            logger.error("Unexpected Resend response for %s", mask_email(msg.to_email))
            raise NotificationError(f"Failed to send email: {msg.subject}")


class LogNotificationGateway(_TemplateGateway):
    def _deliver(self, msg: EmailMessage) -> None:
        logger.info("[EMAIL:log] to=%s subject=%s\n%s", msg.to_email, msg.subject, msg.text)


def build_notification_gateway(settings) -> NotificationGateway:
    common = {
        "frontend_url": settings.FRONTEND_URL,
        "verification_ttl_minutes": settings.VERIFICATION_CODE_TTL_MINUTES,
        "reset_ttl_minutes": settings.PASSWORD_RESET_TTL_MINUTES,
    }
    if settings.MAIL_BACKEND == "log":
        logger.warning("MAIL_BACKEND=log: account emails are written to the log, not delivered")
        return LogNotificationGateway(**common)
    return ResendNotificationGateway(api_key=settings.RESEND_API_KEY, email_from=settings.EMAIL_FROM, **common)
