"""
One-time passcode engine.

Issues short-lived numeric challenges and consumes them against an account.
Only the SHA-256 digest of a code is stored; the plaintext leaves through the
OTP email and nowhere else.

Outcomes are deliberately distinct so the client can tell "retry the code"
from "request a new code":

- OtpExpiredError           — no challenge, challenge already used, or past expiry
- OtpAttemptsExhaustedError — failed-attempt ceiling reached; only a resend helps
- OtpMismatchError          — wrong code; the attempt counter was incremented

Consumption and the caller's state change (verify the account, replace the
password hash) are one conditional store update, so a code can never be
consumed twice and the attempt ceiling is enforced exactly under concurrency.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from errors import (
    AppError,
    ForbiddenError,
    OtpAttemptsExhaustedError,
    OtpExpiredError,
    OtpMismatchError,
)
from repositories.protocol import AccountStore
from schemas.models.account import AccountDoc
from schemas.models.token import OtpChallenge, OtpPurpose
from shared.crypto import digests_match, hash_token
from shared.datetime_utils import ensure_utc, utcnow
from shared.generators import generate_otp_code
from shared.logging import get_logger

log = get_logger(__name__)

OTP_EXPIRED_MESSAGE = "OTP expired. Please resend OTP."
OTP_EXHAUSTED_MESSAGE = "Too many OTP attempts. Please resend OTP."
OTP_MISMATCH_MESSAGE = "Invalid OTP"


@dataclass(frozen=True)
class IssuedOtp:
    """A freshly issued challenge plus the plaintext code to deliver."""

    code: str
    challenge: OtpChallenge


class OtpEngine:
    def __init__(
        self,
        store: AccountStore,
        *,
        length: int = 6,
        ttl_seconds: int = 600,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self.length = length
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_attempts = max_attempts
        self._clock = clock

    def issue(self) -> IssuedOtp:
        now = self._clock()
        code = generate_otp_code(self.length)
        challenge = OtpChallenge(
            code_hash=hash_token(code),
            expires_at=now + self.ttl,
            attempts=0,
            issued_at=now,
        )
        return IssuedOtp(code=code, challenge=challenge)

    def check(
        self,
        challenge: Optional[OtpChallenge],
        submitted: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """Classify *submitted* against *challenge* without touching the store.

        Raises OtpExpiredError / OtpAttemptsExhaustedError for dead
        challenges; otherwise returns whether the code matches.
        """
        now = now or self._clock()
        if challenge is None:
            raise OtpExpiredError(OTP_EXPIRED_MESSAGE)
        if challenge.attempts >= self.max_attempts:
            raise OtpAttemptsExhaustedError(OTP_EXHAUSTED_MESSAGE)
        if now >= ensure_utc(challenge.expires_at):
            raise OtpExpiredError(OTP_EXPIRED_MESSAGE)
        return digests_match(hash_token(submitted), challenge.code_hash)

    async def consume(
        self,
        account: AccountDoc,
        purpose: OtpPurpose,
        submitted: str,
        updates: dict[str, Any],
    ) -> AccountDoc:
        """Consume the *purpose* challenge and apply *updates* in one write.

        Returns the updated account. Raises one of the OTP errors otherwise.
        """
        now = self._clock()
        challenge = account.challenge_for(purpose)
        log_ctx = {"account_id": str(account.id), "purpose": OtpPurpose(purpose).name}

        try:
            matched = self.check(challenge, submitted, now)
        except AppError as e:
            log.warning("otp_verification_failed", reason=e.error_code, **log_ctx)
            raise

        if not matched:
            attempts = await self._store.record_failed_attempt(
                account.id, purpose, challenge.code_hash, self.max_attempts
            )
            if attempts is None:
                # Challenge replaced or ceiling hit by a concurrent request
                await self._reclassify(account, purpose, submitted, now)
            log.warning(
                "otp_verification_failed",
                reason="mismatch",
                attempts=attempts,
                **log_ctx,
            )
            raise OtpMismatchError(OTP_MISMATCH_MESSAGE)

        updated = await self._store.consume_challenge(
            account.id,
            purpose,
            challenge.code_hash,
            now,
            self.max_attempts,
            updates,
        )
        if updated is None:
            await self._reclassify(account, purpose, submitted, now)
            # Same code already consumed by a concurrent request
            raise OtpExpiredError(OTP_EXPIRED_MESSAGE)

        log.info("otp_consumed", **log_ctx)
        return updated

    async def _reclassify(
        self,
        account: AccountDoc,
        purpose: OtpPurpose,
        submitted: str,
        now: datetime,
    ) -> None:
        """Re-read the account after a lost conditional write and raise its
        current failure, if it has one."""
        fresh = await self._store.find_by_id(account.id)
        if fresh is None:
            raise OtpExpiredError(OTP_EXPIRED_MESSAGE)
        if not fresh.is_active:
            raise ForbiddenError("Account is blocked or deleted")
        challenge = fresh.challenge_for(purpose)
        if challenge is None or challenge.code_hash != account.challenge_for(purpose).code_hash:
            raise OtpExpiredError(OTP_EXPIRED_MESSAGE)
        self.check(challenge, submitted, now)
