"""
Request DTOs for authentication endpoints.

SignupRequest               — POST /auth/signup
SignupTechnicianRequest     — POST /auth/signup-technician
EmailRequest                — POST /auth/resend-otp, /auth/forgot-password,
                              /auth/resend-forgot-otp
VerifyOtpRequest            — POST /auth/verify-otp
LoginRequest                — POST /auth/login
ResetPasswordRequest        — POST /auth/reset-password
ChangePasswordRequest       — POST /auth/change-password
RefreshTokenRequest         — POST /auth/refresh

Fields accept both snake_case and camelCase keys (``first_name`` or
``firstName``). The exact OTP width is checked against OTP_LENGTH by the
route, since it is configurable.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from shared.validators import MAX_PASSWORD_LENGTH, MIN_PASSWORD_LENGTH, validate_zip

OTP_PATTERN = r"^\d{4,10}$"


class _AuthRequest(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
    )


class SignupRequest(_AuthRequest):
    """Request body for POST /auth/signup (customer)."""

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    # "address" on the wire, matching the mobile client
    address: str = Field(min_length=1)
    apt: Optional[str] = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip: str
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)

    @field_validator("zip", mode="after")
    @classmethod
    def _validate_zip(cls, v: str) -> str:
        if not validate_zip(v):
            raise ValueError("zip must be 5 digits or ZIP+4")
        return v


class SignupTechnicianRequest(_AuthRequest):
    """Request body for POST /auth/signup-technician."""

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)


class EmailRequest(_AuthRequest):
    email: EmailStr


class VerifyOtpRequest(_AuthRequest):
    """Request body for POST /auth/verify-otp."""

    email: EmailStr
    otp: str = Field(pattern=OTP_PATTERN)


class LoginRequest(_AuthRequest):
    """Request body for POST /auth/login."""

    email: EmailStr
    # No length rule here; a short password is simply wrong
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_LENGTH)


class ResetPasswordRequest(_AuthRequest):
    """Request body for POST /auth/reset-password."""

    email: EmailStr
    otp: str = Field(pattern=OTP_PATTERN)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)


class ChangePasswordRequest(_AuthRequest):
    """Request body for POST /auth/change-password (bearer access token)."""

    old_password: str = Field(min_length=1, max_length=MAX_PASSWORD_LENGTH)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)


class RefreshTokenRequest(_AuthRequest):
    refresh_token: str = Field(min_length=1)
