"""
Input normalisers and validators — framework-agnostic, pure functions.
"""

from __future__ import annotations

import re

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")


def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookup (case-insensitive match)."""
    return (email or "").strip().lower()


def validate_otp_format(code: str, length: int) -> bool:
    """Return True if *code* is exactly *length* ASCII digits."""
    return len(code) == length and code.isascii() and code.isdigit()


def validate_zip(zip_code: str) -> bool:
    """Return True for a US ZIP or ZIP+4 code."""
    return bool(_ZIP_RE.fullmatch(zip_code))
