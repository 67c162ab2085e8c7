"""
Date/time helpers — framework-agnostic.

MongoDB hands back naive datetimes unless the client is tz-aware; every
comparison in the credential lifecycle goes through ``ensure_utc`` so a naive
value is never compared against an aware one.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime.

    Naive datetimes (no ``tzinfo``) are assumed to be UTC. ``None`` passes
    through unchanged.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_past(moment: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when *moment* is missing or ``now >= moment``."""
    if moment is None:
        return True
    return (now or utcnow()) >= ensure_utc(moment)
