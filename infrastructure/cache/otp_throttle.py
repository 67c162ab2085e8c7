"""Redis-backed cooldown between OTP (re)issues for one address.

The first acquire for a (purpose, email) pair inside the window wins the
key; later ones are refused until it expires. Redis is optional: with no
client, or when Redis errors, every acquire is allowed.
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shared.logging import get_logger

log = get_logger(__name__)

_KEY_PREFIX = "otp_cooldown"


class OtpThrottle:
    def __init__(
        self, redis_client: Optional[aioredis.Redis], cooldown_seconds: int = 60
    ) -> None:
        self._redis = redis_client
        self.cooldown_seconds = cooldown_seconds

    @staticmethod
    def _key(purpose: str, email: str) -> str:
        return f"{_KEY_PREFIX}:{purpose}:{email}"

    @property
    def enabled(self) -> bool:
        return self._redis is not None and self.cooldown_seconds > 0

    async def acquire(self, purpose: str, email: str) -> bool:
        """Return False when an OTP for *email* was issued within the cooldown."""
        if not self.enabled:
            return True
        try:
            acquired = await self._redis.set(
                self._key(purpose, email), "1", nx=True, ex=self.cooldown_seconds
            )
        except RedisError as e:
            log.warning(
                "otp_throttle_unavailable",
                purpose=purpose,
                error=str(e),
                error_type=type(e).__name__,
            )
            return True
        return bool(acquired)

    async def release(self, purpose: str, email: str) -> None:
        """Drop the cooldown key, e.g. when the issue it guarded was refused."""
        if not self.enabled:
            return
        try:
            await self._redis.delete(self._key(purpose, email))
        except RedisError as e:
            log.warning(
                "otp_throttle_release_failed",
                purpose=purpose,
                error=str(e),
                error_type=type(e).__name__,
            )
