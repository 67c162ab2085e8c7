"""
Credential lifecycle service.

Per-account state is ``{UNVERIFIED, VERIFIED} x {ACTIVE, BLOCKED, DELETED}``.
BLOCKED and DELETED absorb every write: each operation checks them first and
fails with ForbiddenError before touching OTP or refresh state.

Every state change is a single conditional store write (see AccountStore);
the service never does read-modify-write on its own. OTP emails go out after
the write has committed, and a delivery failure is logged, not raised.

The caller passes the account id explicitly for authenticated operations;
nothing here reads an ambient "current user".
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union

from bson import ObjectId

from errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
)
from infrastructure.cache.otp_throttle import OtpThrottle
from infrastructure.email.protocol import EmailProvider
from repositories.protocol import AccountStore
from schemas.models.account import AccountDoc, Role
from schemas.models.profile import AddressDoc, CustomerDoc, TechnicianDoc
from schemas.models.token import OtpPurpose
from services.otp_engine import OtpEngine
from services.token_issuer import TokenIssuer
from shared.crypto import SecretHasher, hash_token
from shared.datetime_utils import is_past, utcnow
from shared.generators import generate_customer_code
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)

VERIFY_SUBJECT = "Verify your Elite account"
RESET_SUBJECT = "Reset your Elite password"

_SUBJECTS = {
    OtpPurpose.REGISTRATION: VERIFY_SUBJECT,
    OtpPurpose.PASSWORD_RESET: RESET_SUBJECT,
}


# ── Inputs ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CustomerProfile:
    first_name: str
    last_name: str
    phone: str
    address_line: str
    city: str
    state: str
    zip: str
    apartment: Optional[str] = None


@dataclass(frozen=True)
class TechnicianProfile:
    first_name: str
    last_name: str
    phone: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ── Results ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Ack:
    message: str
    otp_sent: bool = False
    account: Optional[AccountDoc] = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
    message: str
    account: AccountDoc
    tokens: TokenPair


class AuthService:
    def __init__(
        self,
        store: AccountStore,
        hasher: SecretHasher,
        otp_engine: OtpEngine,
        token_issuer: TokenIssuer,
        email_provider: EmailProvider,
        throttle: Optional[OtpThrottle] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._otp = otp_engine
        self._tokens = token_issuer
        self._email = email_provider
        self._throttle = throttle or OtpThrottle(None)
        self._clock = clock

    # ── Gates ────────────────────────────────────────────────────────────────

    @staticmethod
    def _ensure_active(account: AccountDoc) -> None:
        if account.deleted:
            raise ForbiddenError("Account is deleted")
        if account.blocked:
            raise ForbiddenError("Account is blocked")

    async def _require_account(self, email: str) -> AccountDoc:
        account = await self._store.find_by_email(email)
        if account is None:
            raise NotFoundError("Account not found", field="email")
        return account

    # ── Signup ───────────────────────────────────────────────────────────────

    async def signup(
        self, email: str, password: str, profile: CustomerProfile
    ) -> Ack:
        """Register a customer, or resend the OTP to a pending registration."""
        return await self._signup(email, password, Role.CUSTOMER, profile)

    async def signup_technician(
        self, email: str, password: str, profile: TechnicianProfile
    ) -> Ack:
        return await self._signup(email, password, Role.TECHNICIAN, profile)

    async def _signup(
        self,
        email: str,
        password: str,
        role: Role,
        profile: Union[CustomerProfile, TechnicianProfile],
    ) -> Ack:
        email = normalize_email(email)
        existing = await self._store.find_by_email(email)
        if existing is not None:
            self._ensure_active(existing)
            if existing.verified:
                raise ConflictError("Email already registered", field="email")
            # Pending registration: signup doubles as resend
            sent = await self._reissue(existing, OtpPurpose.REGISTRATION)
            return Ack(
                "Verification OTP sent. Check your email to verify your account.",
                otp_sent=sent,
                account=existing,
            )

        password_hash = await asyncio.to_thread(self._hasher.hash, password)
        issued = self._otp.issue()
        now = issued.challenge.issued_at
        account = AccountDoc(
            email=email,
            password_hash=password_hash,
            role=role,
            registration_otp=issued.challenge,
            created_at=now,
            updated_at=now,
        )
        created = await self._store.create_with_profile(
            account, self._build_profile(email, profile, now)
        )
        log.info("signup_created", account_id=str(created.id), role=Role(role).value)

        # Start the resend cooldown for the code just issued
        await self._throttle.acquire(OtpPurpose.REGISTRATION.value, email)
        sent = await self._send_otp(email, OtpPurpose.REGISTRATION, issued.code)
        return Ack(
            "Signup successful. Check your email for verification OTP.",
            otp_sent=sent,
            account=created,
        )

    @staticmethod
    def _build_profile(
        email: str,
        profile: Union[CustomerProfile, TechnicianProfile],
        now: datetime,
    ) -> Union[CustomerDoc, TechnicianDoc]:
        if isinstance(profile, TechnicianProfile):
            return TechnicianDoc(
                name=profile.full_name,
                email=email,
                phone=profile.phone,
                created_at=now,
            )
        return CustomerDoc(
            customer_code=generate_customer_code(),
            first_name=profile.first_name,
            last_name=profile.last_name,
            email=email,
            phone=profile.phone,
            address=AddressDoc(
                address_line=profile.address_line,
                apartment=profile.apartment,
                city=profile.city,
                state=profile.state,
                zip=profile.zip,
            ),
            created_at=now,
        )

    # ── Registration OTP ─────────────────────────────────────────────────────

    async def resend_registration_otp(self, email: str) -> Ack:
        email = normalize_email(email)
        account = await self._require_account(email)
        self._ensure_active(account)
        if account.verified:
            raise ConflictError("Account already verified")
        sent = await self._reissue(account, OtpPurpose.REGISTRATION)
        return Ack(
            "Verification OTP resent. Check your email to verify your account.",
            otp_sent=sent,
        )

    async def verify_registration_otp(self, email: str, code: str) -> Ack:
        email = normalize_email(email)
        account = await self._require_account(email)
        self._ensure_active(account)
        if account.verified:
            raise ConflictError("Account already verified")
        updated = await self._otp.consume(
            account, OtpPurpose.REGISTRATION, code, {"verified": True}
        )
        log.info("account_verified", account_id=str(updated.id))
        return Ack("Account verified successfully", account=updated)

    # ── Login ────────────────────────────────────────────────────────────────

    async def login(self, email: str, password: str) -> LoginResult:
        email = normalize_email(email)
        account = await self._require_account(email)
        self._ensure_active(account)
        if not account.verified:
            raise ConflictError("Account not verified. Please verify first.")

        ok = await asyncio.to_thread(
            self._hasher.verify, password, account.password_hash
        )
        if not ok:
            log.warning("login_failed", account_id=str(account.id), reason="bad_password")
            raise AuthenticationError("Invalid password", field="password")

        if self._hasher.needs_rehash(account.password_hash):
            await self._rehash(account, password)

        refresh = self._tokens.issue_refresh_token()
        updated = await self._store.set_refresh(
            account.id, refresh.to_credential(), refresh.issued_at
        )
        if updated is None:
            # Gated between the read above and this write
            raise ForbiddenError("Account is blocked or deleted")

        log.info("login_success", account_id=str(updated.id))
        return LoginResult(
            message="Login successful",
            account=updated,
            tokens=TokenPair(
                access_token=self._tokens.sign_access_token(updated),
                refresh_token=refresh.plaintext,
                refresh_expires_at=refresh.expires_at,
            ),
        )

    # ── Password reset ───────────────────────────────────────────────────────

    async def forgot_password(self, email: str) -> Ack:
        sent = await self._issue_reset(email)
        return Ack(
            "Password reset OTP sent. Check your email. You have 10 minutes to reset.",
            otp_sent=sent,
        )

    async def resend_forgot_password_otp(self, email: str) -> Ack:
        sent = await self._issue_reset(email)
        return Ack(
            "Password reset OTP resent. Check your email. You have 10 minutes to reset.",
            otp_sent=sent,
        )

    async def _issue_reset(self, email: str) -> bool:
        email = normalize_email(email)
        account = await self._require_account(email)
        self._ensure_active(account)
        if not account.verified:
            raise ConflictError("Account not verified. Please verify first.")
        return await self._reissue(account, OtpPurpose.PASSWORD_RESET)

    async def reset_password(self, email: str, code: str, new_password: str) -> Ack:
        email = normalize_email(email)
        account = await self._require_account(email)
        self._ensure_active(account)

        # Hash before consuming so the code is spent only on a complete write
        new_hash = await asyncio.to_thread(self._hasher.hash, new_password)
        updated = await self._otp.consume(
            account, OtpPurpose.PASSWORD_RESET, code, {"password_hash": new_hash}
        )
        log.info("password_reset", account_id=str(updated.id))
        return Ack("Password reset successfully")

    # ── Authenticated operations ─────────────────────────────────────────────

    async def change_password(
        self, account_id: str, old_password: str, new_password: str
    ) -> Ack:
        if not ObjectId.is_valid(account_id):
            raise AuthenticationError("Unauthorized")
        account = await self._store.find_by_id(ObjectId(account_id))
        if account is None:
            raise AuthenticationError("Unauthorized")
        self._ensure_active(account)

        ok = await asyncio.to_thread(
            self._hasher.verify, old_password, account.password_hash
        )
        if not ok:
            log.warning(
                "change_password_failed", account_id=account_id, reason="bad_password"
            )
            raise AuthenticationError("Invalid password", field="old_password")

        new_hash = await asyncio.to_thread(self._hasher.hash, new_password)
        updated = await self._store.update_password(
            account.id, account.password_hash, new_hash, self._clock()
        )
        if updated is None:
            fresh = await self._store.find_by_id(account.id)
            if fresh is not None:
                self._ensure_active(fresh)
            # Lost to a concurrent change; the old password no longer holds
            raise AuthenticationError("Invalid password", field="old_password")

        log.info("password_changed", account_id=account_id)
        return Ack("Password changed successfully")

    async def refresh_token(self, plaintext: str) -> TokenPair:
        digest = hash_token(plaintext)
        account = await self._store.find_by_refresh_hash(digest)
        if account is None or account.refresh is None:
            raise AuthenticationError("Invalid refresh token")
        if is_past(account.refresh.expires_at, self._clock()):
            raise AuthenticationError("Refresh token expired")
        self._ensure_active(account)

        try:
            issued = await self._tokens.rotate(account.id, digest)
        except AuthenticationError:
            fresh = await self._store.find_by_id(account.id)
            if fresh is not None:
                self._ensure_active(fresh)
            raise

        return TokenPair(
            access_token=self._tokens.sign_access_token(account),
            refresh_token=issued.plaintext,
            refresh_expires_at=issued.expires_at,
        )

    # ── Helpers ──────────────────────────────────────────────────────────────

    async def _rehash(self, account: AccountDoc, password: str) -> None:
        """Re-hash a verified password under the current argon2 parameters."""
        new_hash = await asyncio.to_thread(self._hasher.hash, password)
        rehashed = await self._store.update_password(
            account.id, account.password_hash, new_hash, self._clock()
        )
        if rehashed is not None:
            log.info("password_rehashed", account_id=str(account.id))

    async def _reissue(self, account: AccountDoc, purpose: OtpPurpose) -> bool:
        """Replace the *purpose* challenge with a fresh one and email it."""
        if not await self._throttle.acquire(purpose.value, account.email):
            log.warning(
                "otp_resend_throttled",
                account_id=str(account.id),
                purpose=purpose.name,
            )
            raise RateLimitError(
                "An OTP was sent recently. Please wait before requesting another."
            )

        issued = self._otp.issue()
        try:
            updated = await self._store.replace_challenge(
                account.id, purpose, issued.challenge
            )
        except AppError:
            # No code was issued, so a retry must not hit the cooldown
            await self._throttle.release(purpose.value, account.email)
            raise
        if updated is None:
            await self._throttle.release(purpose.value, account.email)
            raise ForbiddenError("Account is blocked or deleted")

        log.info("otp_issued", account_id=str(account.id), purpose=purpose.name)
        return await self._send_otp(account.email, purpose, issued.code)

    async def _send_otp(self, email: str, purpose: OtpPurpose, code: str) -> bool:
        """Email *code*; an undelivered code lifts the resend cooldown."""
        try:
            sent = await self._email.send_otp_email(email, _SUBJECTS[purpose], code)
        except Exception as e:
            # The write already committed; the user can ask for a resend
            log.error(
                "otp_email_failed",
                purpose=purpose.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            sent = False
        if not sent:
            await self._throttle.release(purpose.value, email)
        return sent
