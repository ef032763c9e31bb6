"""Outbound password-reset mail over SMTP, with a log-only fallback for development."""

import html
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING

from app.schemas.reset import ResetDelivery

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the SMTP server cannot be reached, times out, or rejects the message."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


def redact_email(email: str) -> str:
    """Redact an email address for logging to avoid PII leakage."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


def _build_reset_message(
    delivery: ResetDelivery, reset_url: str, ttl_minutes: int
) -> tuple[str, str, str]:
    """Return (subject, text_body, html_body). The account name is escaped in the HTML part."""
    greeting = f"Hello {delivery.name}," if delivery.name else "Hello,"
    html_greeting = f"Hello {html.escape(delivery.name)}," if delivery.name else "Hello,"
    hours = ttl_minutes / 60
    validity = f"{hours:g} hours" if ttl_minutes % 60 == 0 else f"{ttl_minutes} minutes"
    subject = "Reset your password"
    text_body = (
        f"{greeting}\n\n"
        "We received a request to reset your password. Open the link below to choose a new one:\n\n"
        f"{reset_url}\n\n"
        f"The link is valid for {validity} and can be used once. "
        "If you did not request a reset, you can ignore this email.\n"
    )
    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family:Arial,Helvetica,sans-serif;color:#1f2933;">
  <p>{html_greeting}</p>
  <p>We received a request to reset your password. Click the button below to choose a new one.</p>
  <p><a href="{html.escape(reset_url)}" style="display:inline-block;padding:10px 18px;background:#1d4ed8;color:#ffffff;text-decoration:none;border-radius:4px;">Reset password</a></p>
  <p>The link is valid for {validity} and can be used once. If you did not request a reset, you can ignore this email.</p>
</body>
</html>"""
    return subject, text_body, html_body


class ResetMailer:
    """Sends reset links. When SMTP_HOST is unset, logs a redacted notice instead."""

    def __init__(self, settings: "Settings") -> None:
        self.settings = settings

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.SMTP_HOST and self._from_email)

    @property
    def _from_email(self) -> str | None:
        return self.settings.SMTP_FROM_EMAIL or self.settings.SMTP_USER

    def reset_url(self, token: str) -> str:
        return f"{self.settings.FRONTEND_URL}/reset-password?token={token}"

    def send_password_reset(self, delivery: ResetDelivery) -> None:
        """
        Deliver the reset link. Raises EmailDeliveryError on SMTP failure or timeout.
        The token itself is never logged.
        """
        subject, text_body, html_body = _build_reset_message(
            delivery,
            self.reset_url(delivery.token),
            self.settings.RESET_TOKEN_TTL_MINUTES,
        )
        if not self.is_configured:
            logger.info(
                "SMTP not configured; password reset email not sent",
                extra={"to": redact_email(delivery.email), "subject": subject},
            )
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.settings.SMTP_FROM_NAME} <{self._from_email}>"
        msg["To"] = delivery.email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        password = (
            self.settings.SMTP_PASSWORD.get_secret_value() if self.settings.SMTP_PASSWORD else None
        )
        context = ssl.create_default_context()
        timeout = self.settings.SMTP_TIMEOUT_SEC
        try:
            if self.settings.SMTP_USE_TLS:
                with smtplib.SMTP(
                    self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=timeout
                ) as server:
                    server.starttls(context=context)
                    if self.settings.SMTP_USER and password:
                        server.login(self.settings.SMTP_USER, password)
                    server.sendmail(self._from_email, delivery.email, msg.as_string())
            else:
                with smtplib.SMTP_SSL(
                    self.settings.SMTP_HOST,
                    self.settings.SMTP_PORT,
                    context=context,
                    timeout=timeout,
                ) as server:
                    if self.settings.SMTP_USER and password:
                        server.login(self.settings.SMTP_USER, password)
                    server.sendmail(self._from_email, delivery.email, msg.as_string())
        except (smtplib.SMTPException, ssl.SSLError, OSError) as e:
            raise EmailDeliveryError(
                f"Password reset email could not be delivered ({type(e).__name__})", cause=e
            ) from e

        logger.info(
            "Password reset email sent",
            extra={"to": redact_email(delivery.email), "account_id": delivery.account_id},
        )


def deliver_reset_email(mailer: ResetMailer, delivery: ResetDelivery) -> None:
    """
    Background-task entrypoint. The HTTP response has already been sent, so a
    failure is logged at error level; the stored token stays valid and the user
    can request another link.
    """
    try:
        mailer.send_password_reset(delivery)
    except EmailDeliveryError as e:
        logger.error(
            "Password reset email delivery failed",
            extra={
                "to": redact_email(delivery.email),
                "account_id": delivery.account_id,
                "reason": e.message[:500],
            },
        )
