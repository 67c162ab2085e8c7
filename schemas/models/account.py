"""
Account document model.

Maps to the `accounts` MongoDB collection.

An account is created UNVERIFIED by signup and flips to verified exactly
once, through a successful registration OTP. ``blocked`` and ``deleted`` are
independent gates: either one vetoes every lifecycle write. Accounts are
never physically removed; ``deleted`` is terminal.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from schemas.models.base import MongoBaseModel
from schemas.models.token import OtpChallenge, OtpPurpose, RefreshCredential


class Role(str, Enum):
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
    TECHNICIAN = "TECHNICIAN"


class AccountDoc(MongoBaseModel):
    """
    Document model for the `accounts` collection.

    email is stored lower-cased; lookups normalise the same way.
    """

    email: str
    password_hash: str
    role: Role = Role.CUSTOMER
    verified: bool = False
    blocked: bool = False
    deleted: bool = False
    registration_otp: Optional[OtpChallenge] = None
    reset_otp: Optional[OtpChallenge] = None
    refresh: Optional[RefreshCredential] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return not (self.blocked or self.deleted)

    def challenge_for(self, purpose: OtpPurpose) -> Optional[OtpChallenge]:
        return getattr(self, OtpPurpose(purpose).value)
