"""Jinja2 rendering of OTP emails, shared by every EmailProvider."""

import os
from dataclasses import dataclass

from jinja2 import Environment, FileSystemLoader, select_autoescape

_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html_body: str
    text_body: str


class OtpEmailRenderer:
    def __init__(
        self,
        app_name: str = "Elite",
        valid_minutes: int = 10,
        primary_color: str = "#C0CFD0",
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._app_name = app_name
        self._valid_minutes = valid_minutes
        self._primary_color = primary_color
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def render(self, title: str, otp_code: str) -> RenderedEmail:
        message = "Use the OTP below to complete your request."
        html_body = self._jinja.get_template("otp.html").render(
            app_name=self._app_name,
            title=title,
            message=message,
            otp_code=otp_code,
            valid_minutes=self._valid_minutes,
            primary_color=self._primary_color,
        )
        text_body = (
            f"{title} - {self._app_name}\n\n"
            f"{message}\n\n"
            f"Your code is: {otp_code}\n\n"
            f"This code expires in {self._valid_minutes} minutes.\n\n"
            f"If you did not request this, you can safely ignore this email."
        )
        return RenderedEmail(subject=title, html_body=html_body, text_body=text_body)
