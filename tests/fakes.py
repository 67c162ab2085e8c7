"""
In-memory test doubles for the credential store, mail transport and clock.

InMemoryAccountStore applies each conditional write without awaiting in
between the precondition check and the mutation, so writes are atomic on the
event loop just as ``find_one_and_update`` is atomic in MongoDB. Every method
yields once first, which lets ``asyncio.gather`` interleave callers.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from bson import ObjectId

from errors import ConflictError, ServiceUnavailableError
from schemas.models.account import AccountDoc
from schemas.models.profile import CustomerDoc, TechnicianDoc
from schemas.models.token import OtpChallenge, OtpPurpose, RefreshCredential
from shared.datetime_utils import ensure_utc


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        # Anchored at real time so signed JWTs still verify against PyJWT's clock
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingEmailProvider:
    def __init__(self, result: bool = True, error: Optional[Exception] = None) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self._result = result
        self._error = error

    async def send_otp_email(self, email: str, title: str, otp_code: str) -> bool:
        self.sent.append((email, title, otp_code))
        if self._error is not None:
            raise self._error
        return self._result

    def last_code(self, email: str) -> str:
        for to, _title, code in reversed(self.sent):
            if to == email:
                return code
        raise AssertionError(f"no OTP sent to {email}")


class InMemoryAccountStore:
    def __init__(self) -> None:
        self.accounts: dict[ObjectId, AccountDoc] = {}
        self.customers: list[CustomerDoc] = []
        self.technicians: list[TechnicianDoc] = []
        self.unavailable = False

    async def _tick(self) -> None:
        await asyncio.sleep(0)
        if self.unavailable:
            raise ServiceUnavailableError("Credential store is unavailable. Please retry.")

    def _live(self, account_id: ObjectId) -> Optional[AccountDoc]:
        account = self.accounts.get(account_id)
        if account is None or not account.is_active:
            return None
        return account

    def _save(self, account: AccountDoc, **changes: Any) -> AccountDoc:
        updated = account.model_copy(update=changes)
        self.accounts[account.id] = updated
        return updated

    # ── Test helpers ─────────────────────────────────────────────────────────

    def get(self, email: str) -> AccountDoc:
        for account in self.accounts.values():
            if account.email == email:
                return account
        raise KeyError(email)

    def patch(self, email: str, **changes: Any) -> AccountDoc:
        return self._save(self.get(email), **changes)

    # ── AccountStore ─────────────────────────────────────────────────────────

    async def find_by_email(self, email: str) -> Optional[AccountDoc]:
        await self._tick()
        matches = [a for a in self.accounts.values() if a.email == email]
        matches.sort(key=lambda a: a.deleted)
        return matches[0] if matches else None

    async def find_by_id(self, account_id: ObjectId) -> Optional[AccountDoc]:
        await self._tick()
        return self.accounts.get(account_id)

    async def find_by_refresh_hash(self, token_hash: str) -> Optional[AccountDoc]:
        await self._tick()
        for account in self.accounts.values():
            if account.refresh is not None and account.refresh.token_hash == token_hash:
                return account
        return None

    async def create_with_profile(
        self, account: AccountDoc, profile: Union[CustomerDoc, TechnicianDoc]
    ) -> AccountDoc:
        await self._tick()
        if any(a.email == account.email and not a.deleted for a in self.accounts.values()):
            raise ConflictError("Email already registered", field="email")
        created = account.model_copy(update={"id": ObjectId()})
        self.accounts[created.id] = created
        linked = profile.model_copy(update={"account_id": created.id})
        if isinstance(profile, TechnicianDoc):
            self.technicians.append(linked)
        else:
            self.customers.append(linked)
        return created

    async def replace_challenge(
        self, account_id: ObjectId, purpose: OtpPurpose, challenge: OtpChallenge
    ) -> Optional[AccountDoc]:
        await self._tick()
        account = self._live(account_id)
        if account is None:
            return None
        return self._save(
            account,
            **{OtpPurpose(purpose).value: challenge, "updated_at": challenge.issued_at},
        )

    async def record_failed_attempt(
        self,
        account_id: ObjectId,
        purpose: OtpPurpose,
        code_hash: str,
        max_attempts: int,
    ) -> Optional[int]:
        await self._tick()
        account = self._live(account_id)
        challenge = account.challenge_for(purpose) if account else None
        if challenge is None or challenge.code_hash != code_hash:
            return None
        if challenge.attempts >= max_attempts:
            return None
        bumped = challenge.model_copy(update={"attempts": challenge.attempts + 1})
        self._save(account, **{OtpPurpose(purpose).value: bumped})
        return bumped.attempts

    async def consume_challenge(
        self,
        account_id: ObjectId,
        purpose: OtpPurpose,
        code_hash: str,
        now: datetime,
        max_attempts: int,
        updates: dict[str, Any],
    ) -> Optional[AccountDoc]:
        await self._tick()
        account = self._live(account_id)
        challenge = account.challenge_for(purpose) if account else None
        if challenge is None or challenge.code_hash != code_hash:
            return None
        if ensure_utc(challenge.expires_at) <= now or challenge.attempts >= max_attempts:
            return None
        return self._save(
            account, **{OtpPurpose(purpose).value: None, **updates, "updated_at": now}
        )

    async def set_refresh(
        self, account_id: ObjectId, credential: RefreshCredential, now: datetime
    ) -> Optional[AccountDoc]:
        await self._tick()
        account = self._live(account_id)
        if account is None:
            return None
        return self._save(account, refresh=credential, last_login_at=now, updated_at=now)

    async def rotate_refresh(
        self,
        account_id: ObjectId,
        old_hash: str,
        credential: RefreshCredential,
        now: datetime,
    ) -> Optional[AccountDoc]:
        await self._tick()
        account = self._live(account_id)
        if account is None or account.refresh is None:
            return None
        if account.refresh.token_hash != old_hash:
            return None
        if ensure_utc(account.refresh.expires_at) <= now:
            return None
        return self._save(account, refresh=credential, updated_at=now)

    async def update_password(
        self, account_id: ObjectId, expected_hash: str, new_hash: str, now: datetime
    ) -> Optional[AccountDoc]:
        await self._tick()
        account = self._live(account_id)
        if account is None or account.password_hash != expected_hash:
            return None
        return self._save(account, password_hash=new_hash, updated_at=now)


class DictRedis:
    """Just enough of redis.asyncio.Redis for OtpThrottle; TTLs are ignored."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def set(self, key: str, value: str, nx: bool = False, ex: Optional[int] = None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    async def delete(self, key: str) -> int:
        return 1 if self.data.pop(key, None) is not None else 0
