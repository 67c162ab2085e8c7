"""
Cryptographic helpers — password hashing and token hashing.

Uses argon2id for passwords (via argon2-cffi) and SHA-256 for token hashing.
"""

from __future__ import annotations

import hashlib
import hmac

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError


class SecretHasher:
    """One-way password hashing with a tunable argon2id work factor.

    Every digest embeds its own random salt and parameters, so two hashes of
    the same plaintext differ and old digests keep verifying after the work
    factor is raised.
    """

    def __init__(
        self,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 4,
    ) -> None:
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            type=Type.ID,
        )

    def hash(self, plaintext: str) -> str:
        """Hash *plaintext* with argon2id.

        Returns:
            Argon2 hash string (includes algorithm parameters and salt).
        """
        return self._hasher.hash(plaintext)

    def verify(self, plaintext: str, digest: str) -> bool:
        """Verify *plaintext* against an argon2 *digest*.

        Returns:
            ``True`` if the password matches, ``False`` for a mismatch or a
            digest that is not a valid argon2 hash.
        """
        try:
            return self._hasher.verify(digest, plaintext)
        except (VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, digest: str) -> bool:
        """Whether *digest* was produced with different parameters."""
        try:
            return self._hasher.check_needs_rehash(digest)
        except InvalidHashError:
            return True


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Used to hash OTP codes and refresh tokens before storing them in the
    database so the plaintext is never persisted. The digest is
    deterministic, which makes it usable as a lookup key.

    Args:
        token: The plaintext token string to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def digests_match(left: str, right: str) -> bool:
    """Constant-time comparison of two hex digests."""
    return hmac.compare_digest(left.encode("ascii"), right.encode("ascii"))
