"""
Access and refresh token issuance.

Access tokens are short-lived JWTs carrying ``{id, sub, email, role}``.
They are verified by signature alone (RS256 when a key pair is configured,
HS256 with JWT_SECRET otherwise), so downstream consumers never need a store
lookup.

Refresh tokens are opaque: 48 random bytes, URL-safe encoded. Only their
SHA-256 digest is stored, and it doubles as the lookup key. Rotation is a
compare-and-swap on that digest: the old plaintext is dead the moment the new
digest is written, even if the caller never receives the new plaintext.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

import jwt
from bson import ObjectId

from config import JWTSettings
from errors import AuthenticationError
from repositories.protocol import AccountStore
from schemas.models.account import AccountDoc, Role
from schemas.models.token import RefreshCredential
from shared.crypto import hash_token
from shared.datetime_utils import utcnow
from shared.generators import generate_secure_token
from shared.logging import get_logger

log = get_logger(__name__)

REFRESH_TOKEN_BYTES = 48


@dataclass(frozen=True)
class IssuedRefreshToken:
    """Plaintext is for the caller only; digest and expiry go to the store."""

    plaintext: str
    digest: str
    expires_at: datetime
    issued_at: datetime

    def to_credential(self) -> RefreshCredential:
        return RefreshCredential(
            token_hash=self.digest,
            expires_at=self.expires_at,
            issued_at=self.issued_at,
        )


@dataclass(frozen=True)
class AccessClaims:
    account_id: str
    email: str
    role: Role


class TokenIssuer:
    def __init__(
        self,
        settings: JWTSettings,
        store: AccountStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings
        self._store = store
        self._clock = clock
        self._algorithm = "RS256" if settings.use_rs256 else "HS256"
        if settings.use_rs256:
            # Support keys provided via env with literal \n sequences
            self._signing_key = settings.jwt_private_key.replace("\\n", "\n")
            self._verify_key = settings.jwt_public_key.replace("\\n", "\n")
        else:
            self._signing_key = self._verify_key = settings.jwt_secret

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(days=self._settings.refresh_ttl_days)

    # ── Access tokens ────────────────────────────────────────────────────────

    def sign_access_token(self, account: AccountDoc) -> str:
        now = self._clock()
        ttl = timedelta(seconds=self._settings.access_token_ttl_seconds)
        claims = {
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "sub": str(account.id),
            "id": str(account.id),
            "email": account.email,
            "role": Role(account.role).value,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        return jwt.encode(claims, self._signing_key, algorithm=self._algorithm)

    def verify_access_token(self, token: str) -> AccessClaims:
        try:
            claims = jwt.decode(
                token,
                self._verify_key,
                algorithms=[self._algorithm],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Access token expired") from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Invalid access token") from e

        account_id = claims.get("id") or claims.get("sub")
        if not account_id or not ObjectId.is_valid(account_id):
            raise AuthenticationError("Invalid token payload")
        try:
            role = Role(claims.get("role"))
        except ValueError as e:
            raise AuthenticationError("Invalid token payload") from e
        return AccessClaims(
            account_id=account_id, email=claims.get("email", ""), role=role
        )

    # ── Refresh tokens ───────────────────────────────────────────────────────

    def issue_refresh_token(self) -> IssuedRefreshToken:
        now = self._clock()
        plaintext = generate_secure_token(REFRESH_TOKEN_BYTES)
        return IssuedRefreshToken(
            plaintext=plaintext,
            digest=hash_token(plaintext),
            expires_at=now + self.refresh_ttl,
            issued_at=now,
        )

    async def rotate(self, account_id: ObjectId, old_digest: str) -> IssuedRefreshToken:
        """Swap the stored refresh digest for a new one.

        Raises AuthenticationError when *old_digest* is no longer the live
        credential (already rotated, expired, or the account is gated).
        """
        issued = self.issue_refresh_token()
        updated = await self._store.rotate_refresh(
            account_id, old_digest, issued.to_credential(), issued.issued_at
        )
        if updated is None:
            log.warning(
                "refresh_rotation_rejected",
                account_id=str(account_id),
                reason="stale_or_superseded",
            )
            raise AuthenticationError("Invalid refresh token")
        log.info("refresh_rotated", account_id=str(account_id))
        return issued
