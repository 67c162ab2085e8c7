"""
Embedded credential sub-documents of an account.

OtpChallenge       — registration or password-reset one-time passcode.
RefreshCredential  — the single live refresh-token anchor of an account.

Both store SHA-256 digests only: the plaintext OTP code and the plaintext
refresh token are handed to the caller (or the mailbox) once and never
persisted. ``attempts`` counts failed verifications; at the ceiling the
challenge is dead until a new one is issued.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class OtpPurpose(str, Enum):
    """Which challenge slot on the account an OTP belongs to.

    The value is the account field holding the challenge.
    """

    REGISTRATION = "registration_otp"
    PASSWORD_RESET = "reset_otp"


class OtpChallenge(BaseModel):
    code_hash: str
    expires_at: datetime
    attempts: int = Field(default=0, ge=0)
    issued_at: Optional[datetime] = None


class RefreshCredential(BaseModel):
    token_hash: str
    expires_at: datetime
    issued_at: Optional[datetime] = None
