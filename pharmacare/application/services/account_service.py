from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from urllib.parse import urlencode

from ...domain.exceptions import (
    AccountInactive,
    ConflictError,
    DeliveryError,
    EmailNotVerified,
    EmailTaken,
    InvalidCredentials,
    InvalidToken,
    MissingFields,
    NoPendingVerification,
    OtpExpired,
    OtpMismatch,
    PasswordMismatch,
    RegistrationFailed,
    ResetDeliveryFailed,
    StoreError,
    UserNotFound,
    WeakPassword,
)
from ...domain.models import ROLE_USER, ROLES, RegistrationProfile, User
from ...domain.models.session import (
    SESSION_CSRF_TOKEN,
    SESSION_PENDING_EMAIL,
    SESSION_USER_ID,
    SESSION_USER_NAME,
    SESSION_USER_ROLE,
)
from ...domain.models.user import PRIVILEGED_ROLES
from ...domain.ports.notifications import Notifier
from ...domain.ports.persistence import UserRepository
from ...domain.ports.sessions import SessionStore
from ...services.password_hasher import PasswordHasher
from . import messages
from .one_time_secrets import expires_after, generate_otp, generate_reset_token, is_expired
from .password_policy import check_password

logger = logging.getLogger(__name__)

NEXT_LOGIN = "login"
NEXT_REGISTER = "register"
NEXT_VERIFY_OTP = "verify_otp"
NEXT_RESET_PASSWORD = "reset_password"

# Message returned for every forgot-password request that reaches the
# notification step or names an unknown address.
RESET_REQUESTED_MESSAGE = (
    "If an account exists for this email, a password reset link has been sent."
)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


@dataclass(frozen=True, slots=True)
class AccountOutcome:
    message: str
    next_step: str


@dataclass(frozen=True, slots=True)
class LoginResult:
    user: User
    landing_route: str


class AccountService:
    """Moves user accounts through verification and password-reset states.

    Secrets are persisted before any notification is attempted. OTP delivery
    failures are logged together with the code so an operator can still help
    the user; reset-link delivery failures are reported to the caller.
    """

    def __init__(
        self,
        users: UserRepository,
        notifier: Notifier,
        hasher: PasswordHasher,
        *,
        clock: Callable[[], datetime] = utcnow,
        otp_ttl: timedelta = timedelta(minutes=10),
        reset_token_ttl: timedelta = timedelta(hours=1),
        privileged_landing_route: str = "/admin/index",
        standard_landing_route: str = "/frontend/index",
        reset_link_base_url: str = "http://localhost:8000/account/reset-password",
    ) -> None:
        self._users = users
        self._notifier = notifier
        self._hasher = hasher
        self._clock = clock
        self._otp_ttl = otp_ttl
        self._reset_token_ttl = reset_token_ttl
        self._privileged_landing_route = privileged_landing_route
        self._standard_landing_route = standard_landing_route
        self._reset_link_base_url = reset_link_base_url

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------
    def landing_route_for(self, role: Optional[str]) -> str:
        if role in PRIVILEGED_ROLES:
            return self._privileged_landing_route
        return self._standard_landing_route

    def login_view(self, session: SessionStore) -> Optional[str]:
        """Landing route for a visitor who is already signed in, else ``None``."""
        role = session.get(SESSION_USER_ROLE)
        if not role:
            return None
        return self.landing_route_for(role)

    async def login(self, session: SessionStore, email: str, password: str) -> LoginResult:
        email_clean = normalize_email(email)
        if not email_clean or not password or not password.strip():
            raise MissingFields(["email", "password"], "Email and password are required.")

        try:
            user = self._users.get_by_email(email_clean)
            # Always run the credential check so unknown addresses cost the same.
            valid = self._users.validate_credentials(email_clean, password)
        except StoreError as exc:
            logger.exception("Error during authentication for %s", email_clean)
            raise InvalidCredentials() from exc

        if user is None or not valid:
            logger.debug("Authentication failed for %s", email_clean)
            raise InvalidCredentials()

        if not user.email_confirmed:
            raise EmailNotVerified()

        if not user.is_active:
            raise AccountInactive()

        session.remove(SESSION_PENDING_EMAIL)
        session.remove(SESSION_CSRF_TOKEN)
        session.set(SESSION_USER_ID, user.id)
        session.set(SESSION_USER_NAME, user.display_name)
        session.set(SESSION_USER_ROLE, user.role)
        logger.info("User %s signed in with role %s", user.id, user.role)
        return LoginResult(user=user, landing_route=self.landing_route_for(user.role))

    def logout(self, session: SessionStore) -> AccountOutcome:
        session.clear()
        return AccountOutcome("You have been logged out.", NEXT_LOGIN)

    # ------------------------------------------------------------------
    # Registration and email verification
    # ------------------------------------------------------------------
    async def register(
        self,
        session: SessionStore,
        profile: RegistrationProfile,
        password: str,
        confirm_password: str,
    ) -> AccountOutcome:
        email_clean = normalize_email(profile.email)
        missing = [
            name
            for name, value in (
                ("first_name", profile.first_name),
                ("last_name", profile.last_name),
                ("email", email_clean),
                ("password", password),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise MissingFields(missing)

        if profile.role is not None and profile.role not in ROLES:
            raise ValueError(f"Unknown role {profile.role!r}; expected one of {', '.join(ROLES)}")

        if password != confirm_password:
            raise PasswordMismatch()

        policy = check_password(password)
        if not policy.is_valid:
            raise WeakPassword(policy.violations)

        if self._users.exists(email_clean):
            raise EmailTaken()

        now = self._clock()
        otp = generate_otp()
        user = User(
            email=email_clean,
            first_name=profile.first_name.strip(),
            last_name=profile.last_name.strip(),
            password_hash=self._hasher.hash(password),
            role=profile.role or ROLE_USER,
            email_confirmed=False,
            created_at=now,
            updated_at=now,
        )
        user.issue_otp(otp, expires_after(now, self._otp_ttl))

        try:
            created = self._users.create(user)
        except ConflictError as exc:
            raise EmailTaken() from exc
        except StoreError as exc:
            logger.error("Registration error for %s: %s", email_clean, exc)
            raise RegistrationFailed() from exc
        if created is None:
            raise RegistrationFailed()

        message = messages.verification_code_message(
            created.first_name, otp, self._ttl_minutes(self._otp_ttl)
        )
        session.set(SESSION_PENDING_EMAIL, created.email)
        await self._deliver_otp(created, otp, message)

        logger.info("Registered user %s; verification pending", created.id)
        return AccountOutcome(
            "Account created! Please check your email for the verification code.",
            NEXT_VERIFY_OTP,
        )

    def verify_otp_view(self, session: SessionStore) -> AccountOutcome:
        user = self._pending_user(session)
        if user.email_confirmed:
            session.remove(SESSION_PENDING_EMAIL)
            return AccountOutcome("Email already verified!", NEXT_LOGIN)
        return AccountOutcome(
            f"Enter the verification code sent to {user.email}.", NEXT_VERIFY_OTP
        )

    async def verify_otp(self, session: SessionStore, submitted_code: str) -> AccountOutcome:
        user = self._pending_user(session)
        if user.email_confirmed:
            session.remove(SESSION_PENDING_EMAIL)
            return AccountOutcome("Email already verified!", NEXT_LOGIN)

        if is_expired(user.email_otp_expires_at, self._clock()):
            raise OtpExpired()

        if user.email_otp is None or submitted_code != user.email_otp:
            raise OtpMismatch()

        user.confirm_email()
        user.updated_at = self._clock()
        self._users.update(user)
        session.remove(SESSION_PENDING_EMAIL)
        logger.info("Email confirmed for user %s", user.id)
        return AccountOutcome(
            "Email successfully confirmed! You can now login.", NEXT_LOGIN
        )

    async def resend_otp(self, session: SessionStore) -> AccountOutcome:
        user = self._pending_user(session)
        if user.email_confirmed:
            session.remove(SESSION_PENDING_EMAIL)
            return AccountOutcome("Email already verified!", NEXT_LOGIN)

        now = self._clock()
        otp = generate_otp()
        while otp == user.email_otp:
            otp = generate_otp()
        user.issue_otp(otp, expires_after(now, self._otp_ttl))
        user.updated_at = now
        self._users.update(user)

        message = messages.resent_code_message(
            user.first_name, otp, self._ttl_minutes(self._otp_ttl)
        )
        await self._deliver_otp(user, otp, message)
        return AccountOutcome(
            "A new verification code has been sent to your email.", NEXT_VERIFY_OTP
        )

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------
    async def forgot_password(self, email: str) -> AccountOutcome:
        email_clean = normalize_email(email)
        if not email_clean:
            raise MissingFields(["email"], "Email is required.")

        user = self._users.get_by_email(email_clean)
        if user is None:
            logger.info("Password reset requested for unknown address")
            raise UserNotFound(RESET_REQUESTED_MESSAGE)

        now = self._clock()
        token = generate_reset_token()
        user.issue_reset_token(token, expires_after(now, self._reset_token_ttl))
        user.updated_at = now
        self._users.update(user)

        message = messages.password_reset_message(
            user.first_name, self.reset_link(token), self._ttl_minutes(self._reset_token_ttl)
        )
        try:
            await self._notifier.send(user.email, message.subject, message.html_body)
        except DeliveryError as exc:
            logger.warning("Password reset email to user %s failed: %s", user.id, exc)
            raise ResetDeliveryFailed() from exc

        logger.info("Password reset link issued for user %s", user.id)
        return AccountOutcome(RESET_REQUESTED_MESSAGE, NEXT_LOGIN)

    def reset_password_view(self, token: str) -> AccountOutcome:
        self._user_for_reset_token(token)
        return AccountOutcome("Choose a new password.", NEXT_RESET_PASSWORD)

    async def reset_password(self, token: str, new_password: str) -> AccountOutcome:
        if not token or not new_password:
            raise MissingFields(["token", "new_password"], "Invalid request.")

        user = self._user_for_reset_token(token)

        policy = check_password(new_password)
        if not policy.is_valid:
            raise WeakPassword(policy.violations)

        user.password_hash = self._hasher.hash(new_password)
        user.clear_reset_token()
        user.updated_at = self._clock()
        self._users.update(user)
        logger.info("Password reset completed for user %s", user.id)
        return AccountOutcome("Your password has been successfully reset!", NEXT_LOGIN)

    def reset_link(self, token: str) -> str:
        return f"{self._reset_link_base_url}?{urlencode({'token': token})}"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _pending_user(self, session: SessionStore) -> User:
        email = session.get(SESSION_PENDING_EMAIL)
        if not email:
            raise NoPendingVerification()
        user = self._users.get_by_email(email)
        if user is None:
            session.remove(SESSION_PENDING_EMAIL)
            raise UserNotFound()
        return user

    def _user_for_reset_token(self, token: str) -> User:
        if not token:
            raise InvalidToken()
        user = self._users.get_by_reset_token(token)
        if user is None or user.password_reset_token != token:
            raise InvalidToken()
        if is_expired(user.password_reset_expires_at, self._clock()):
            raise InvalidToken()
        return user

    async def _deliver_otp(self, user: User, otp: str, message: messages.EmailMessage) -> None:
        try:
            await self._notifier.send(user.email, message.subject, message.html_body)
        except Exception as exc:
            logger.warning("Verification email to %s failed: %s", user.email, exc)
            logger.warning("OTP for %s: %s", user.email, otp)
            return
        logger.info("Verification code sent to %s", user.email)

    @staticmethod
    def _ttl_minutes(ttl: timedelta) -> int:
        return int(ttl.total_seconds() // 60)
