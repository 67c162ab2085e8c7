"""SMTP implementation of EmailProvider.

Port 465 uses implicit TLS, anything else STARTTLS. smtplib is blocking, so
each send runs in a worker thread with a bounded socket timeout.

A missing SMTP_USER / SMTP_PASS / sender is not an error: the send is
skipped and reported as not delivered.
"""

import asyncio
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from config import EmailSettings
from infrastructure.email.renderer import OtpEmailRenderer, RenderedEmail
from shared.logging import get_logger

log = get_logger(__name__)


def redact_email(email: str) -> str:
    """Redact an email address for logging to avoid PII leakage."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class SmtpEmailProvider:
    def __init__(self, settings: EmailSettings, renderer: OtpEmailRenderer) -> None:
        self._settings = settings
        self._renderer = renderer

    def _build_message(self, to_email: str, rendered: RenderedEmail) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = rendered.subject
        msg["From"] = self._settings.sender
        msg["To"] = to_email
        msg.attach(MIMEText(rendered.text_body, "plain"))
        msg.attach(MIMEText(rendered.html_body, "html"))
        return msg

    def _deliver(self, to_email: str, msg: MIMEMultipart) -> None:
        s = self._settings
        context = ssl.create_default_context()
        if s.smtp_port == 465:
            with smtplib.SMTP_SSL(
                s.smtp_host, s.smtp_port, context=context, timeout=s.smtp_timeout_seconds
            ) as server:
                server.login(s.smtp_user, s.smtp_pass)
                server.sendmail(s.sender, to_email, msg.as_string())
        else:
            with smtplib.SMTP(
                s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds
            ) as server:
                server.starttls(context=context)
                server.login(s.smtp_user, s.smtp_pass)
                server.sendmail(s.sender, to_email, msg.as_string())

    async def send_otp_email(self, email: str, title: str, otp_code: str) -> bool:
        if not self._settings.smtp_configured:
            log.warning(
                "email_send_skipped",
                transport="smtp",
                reason="smtp_not_configured",
                to=redact_email(email),
            )
            return False

        rendered = self._renderer.render(title, otp_code)
        msg = self._build_message(email, rendered)
        try:
            await asyncio.to_thread(self._deliver, email, msg)
        except smtplib.SMTPAuthenticationError as e:
            log.error(
                "email_auth_failed",
                transport="smtp",
                host=self._settings.smtp_host,
                error=str(e),
            )
            return False
        except (smtplib.SMTPException, OSError) as e:
            log.error(
                "email_send_error",
                transport="smtp",
                to=redact_email(email),
                subject=title,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        log.info("email_sent_success", transport="smtp", to=redact_email(email), subject=title)
        return True


class LoggingEmailProvider:
    """Development fallback: records the delivery instead of sending it."""

    async def send_otp_email(self, email: str, title: str, otp_code: str) -> bool:
        log.info("email_dev_mode", to=redact_email(email), subject=title)
        return True
