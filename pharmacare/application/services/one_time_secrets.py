"""Generation and expiry checks for OTP codes and password-reset tokens."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Optional

OTP_MIN = 100000
OTP_MAX = 999999
RESET_TOKEN_BYTES = 32


def generate_otp() -> str:
    """Six-digit code drawn uniformly from ``[OTP_MIN, OTP_MAX]``."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def generate_reset_token() -> str:
    """URL-safe token carrying 256 bits of entropy."""
    return secrets.token_urlsafe(RESET_TOKEN_BYTES)


def expires_after(now: datetime, ttl: timedelta) -> datetime:
    return now + ttl


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    """A secret with no expiry on record is treated as expired."""
    if expires_at is None:
        return True
    return now > expires_at
