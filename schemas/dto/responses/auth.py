"""
Response DTOs for authentication endpoints.

Every body is wrapped in the success envelope ``{success, message, data}``.

AccountSummary   — public view of an account (never the hash or OTP state)
SignupData       — data of POST /auth/signup and /auth/signup-technician
LoginData        — data of POST /auth/login
TokenData        — data of POST /auth/refresh
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from schemas.models.account import AccountDoc, Role


class _AuthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class AccountSummary(_AuthResponse):
    id: str
    email: str
    role: str
    verified: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_account(cls, account: AccountDoc) -> "AccountSummary":
        return cls(
            id=str(account.id),
            email=account.email,
            role=Role(account.role).value,
            verified=account.verified,
            created_at=account.created_at,
        )


class SignupData(_AuthResponse):
    user: Optional[AccountSummary] = None
    otp_sent: bool


class LoginData(_AuthResponse):
    user: AccountSummary
    access_token: str
    refresh_token: str
    refresh_token_expires_at: datetime


class TokenData(_AuthResponse):
    access_token: str
    refresh_token: str
    refresh_token_expires_at: datetime
