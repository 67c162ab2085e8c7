"""Pick the EmailProvider for the configured transport."""

from typing import Optional

from config import EmailSettings
from infrastructure.email.protocol import EmailProvider
from infrastructure.email.renderer import OtpEmailRenderer
from infrastructure.email.smtp import LoggingEmailProvider, SmtpEmailProvider
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient


def build_email_provider(
    settings: EmailSettings,
    renderer: OtpEmailRenderer,
    http_client: Optional[HttpClient] = None,
    is_production: bool = False,
) -> EmailProvider:
    """ZeptoMail when a token is set, else SMTP.

    Outside production an unconfigured SMTP transport falls back to the
    logging provider; in production it stays SMTP so skipped sends are
    reported as failures.
    """
    if settings.zepto_api_token and http_client is not None:
        return ZeptoMailProvider(settings, http_client, renderer)
    if settings.smtp_configured or is_production:
        return SmtpEmailProvider(settings, renderer)
    return LoggingEmailProvider()
