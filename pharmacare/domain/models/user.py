"""User domain model for account lifecycle management."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

ROLE_USER = "User"
ROLE_PHARMACIST = "Pharmacist"
ROLE_ADMIN = "Admin"

ROLES = (ROLE_USER, ROLE_PHARMACIST, ROLE_ADMIN)
PRIVILEGED_ROLES = frozenset({ROLE_ADMIN, ROLE_PHARMACIST})


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(slots=True)
class User:
    """
    User entity persisted by the user repository.

    Attributes:
        id: Unique identifier, assigned by the store on creation
        email: User email address (unique)
        first_name: Given name
        last_name: Family name
        password_hash: Slow hash of the user's password
        role: One of ``ROLES``
        email_confirmed: Whether the email address has been verified by OTP
        email_otp: Pending one-time passcode, if any
        email_otp_expires_at: Expiry of ``email_otp``
        password_reset_token: Pending password-reset token, if any
        password_reset_expires_at: Expiry of ``password_reset_token``
        is_active: Administrative switch gating login
        created_at: Account creation timestamp
        updated_at: Last update timestamp
    """

    email: str
    first_name: str
    last_name: str
    password_hash: str
    role: str = ROLE_USER
    id: Optional[int] = None
    email_confirmed: bool = False
    email_otp: Optional[str] = None
    email_otp_expires_at: Optional[datetime] = None
    password_reset_token: Optional[str] = None
    password_reset_expires_at: Optional[datetime] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    # OTP sub-state ---------------------------------------------------------
    def issue_otp(self, code: str, expires_at: datetime) -> None:
        self.email_otp = code
        self.email_otp_expires_at = expires_at

    def clear_otp(self) -> None:
        self.email_otp = None
        self.email_otp_expires_at = None

    def confirm_email(self) -> None:
        self.email_confirmed = True
        self.clear_otp()

    # Reset sub-state -------------------------------------------------------
    def issue_reset_token(self, token: str, expires_at: datetime) -> None:
        self.password_reset_token = token
        self.password_reset_expires_at = expires_at

    def clear_reset_token(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires_at = None

    def __repr__(self) -> str:
        return (
            f"<User id={self.id} email={self.email} role={self.role} "
            f"confirmed={self.email_confirmed} active={self.is_active}>"
        )
