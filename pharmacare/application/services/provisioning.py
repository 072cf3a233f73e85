from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ...domain.exceptions import EmailTaken, WeakPassword
from ...domain.models import ROLE_ADMIN, ROLES, User
from ...domain.ports.persistence import UserRepository
from ...services.password_hasher import PasswordHasher
from .password_policy import check_password

logger = logging.getLogger(__name__)


def provision_account(
    users: UserRepository,
    hasher: PasswordHasher,
    email: str,
    password: str,
    *,
    role: str = ROLE_ADMIN,
    first_name: str = "PharmaCare",
    last_name: str = "Administrator",
) -> User:
    """Create a verified, active account, bypassing OTP verification.

    Intended for operators; the password still has to satisfy the policy.
    Returns the existing account unchanged when it already has the requested
    role and a verified email; any other existing account raises EmailTaken.
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role {role!r}; expected one of {', '.join(ROLES)}")
    email_clean = email.strip().lower()
    existing = users.get_by_email(email_clean)
    if existing:
        if existing.role != role or not existing.email_confirmed:
            state = "verified" if existing.email_confirmed else "unverified"
            raise EmailTaken(
                f"{email_clean} already belongs to a {existing.role} account ({state})."
            )
        return existing

    policy = check_password(password)
    if not policy.is_valid:
        raise WeakPassword(policy.violations, policy.describe())

    now = datetime.now(tz=timezone.utc)
    user = User(
        email=email_clean,
        first_name=first_name,
        last_name=last_name,
        password_hash=hasher.hash(password),
        role=role,
        email_confirmed=True,
        created_at=now,
        updated_at=now,
    )
    created = users.create(user)
    if created is None:
        raise RuntimeError(f"Could not create account for {email_clean}")
    logger.info("Provisioned %s account for %s", role, email_clean)
    return created


def ensure_default_admin(
    users: UserRepository,
    hasher: PasswordHasher,
    email: Optional[str],
    password: Optional[str],
) -> Optional[User]:
    if not email or not password:
        return None
    try:
        return provision_account(users, hasher, email, password, role=ROLE_ADMIN)
    except EmailTaken as exc:
        logger.warning("Default admin not provisioned: %s", exc.message)
        return None
