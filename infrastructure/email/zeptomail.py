"""ZeptoMail implementation of EmailProvider.

Used when ZEPTO_API_TOKEN is configured; sends over the HTTP API through the
shared HttpClient so the transport timeout stays bounded.
"""

from typing import Optional

from config import EmailSettings
from infrastructure.email.renderer import OtpEmailRenderer
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        renderer: OtpEmailRenderer,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._renderer = renderer

    async def _send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [{"email_address": {"address": to_email, "name": to_email}}],
            "subject": subject,
            "htmlbody": html_body,
        }
        if text_body:
            payload["textbody"] = text_body

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"

        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
            if response.status_code in (200, 201, 202):
                log.info("email_sent_success", transport="zeptomail", subject=subject)
                return True
            log.error(
                "email_sent_failed",
                transport="zeptomail",
                subject=subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "email_send_error",
                transport="zeptomail",
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def send_otp_email(self, email: str, title: str, otp_code: str) -> bool:
        rendered = self._renderer.render(title, otp_code)
        return await self._send(
            email, rendered.subject, rendered.html_body, rendered.text_body
        )
