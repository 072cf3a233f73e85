"""Failures raised by the account lifecycle.

Every exception carries a ``message`` that is safe to show to the visitor.
The intermediate classes are the error kinds the presentation layer maps to
HTTP status codes; the leaf classes name the concrete failure.
"""

from __future__ import annotations

from typing import Iterable, List, Optional


class AccountError(RuntimeError):
    """Base class for account lifecycle failures."""

    default_message = "The request could not be completed."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# Error kinds -----------------------------------------------------------------
class ValidationError(AccountError):
    """Malformed or unacceptable input."""


class NotFoundError(AccountError):
    """No matching user, token or pending verification."""


class ExpiredError(AccountError):
    """A one-time secret is past its expiry."""


class MismatchError(AccountError):
    """A submitted secret or credential does not match."""


class ConflictError(AccountError):
    """The store already holds a conflicting record."""

    default_message = "A conflicting record already exists."


class AccessDeniedError(AccountError):
    """Credentials are valid but the account may not sign in."""


class DeliveryError(AccountError):
    """The notification transport failed."""

    default_message = "The message could not be delivered."


class StoreError(AccountError):
    """The user store failed."""

    default_message = "The account store is unavailable. Please try again."


# Validation ------------------------------------------------------------------
class MissingFields(ValidationError):
    default_message = "Please fill in all required fields."

    def __init__(self, fields: Iterable[str] = (), message: Optional[str] = None) -> None:
        self.fields: List[str] = list(fields)
        super().__init__(message)


class PasswordMismatch(ValidationError):
    default_message = "Password and confirmation do not match."


class WeakPassword(ValidationError):
    default_message = (
        "Password must be at least 8 characters long and contain an uppercase "
        "letter and a special character."
    )

    def __init__(self, violations: Iterable[str], message: Optional[str] = None) -> None:
        self.violations: List[str] = list(violations)
        super().__init__(message)


# Lookups ---------------------------------------------------------------------
class UserNotFound(NotFoundError):
    default_message = "User not found. Please register again."


class NoPendingVerification(NotFoundError):
    default_message = "Session expired. Please register again."


class InvalidToken(NotFoundError):
    default_message = "Token is invalid or has expired."


# Secrets and credentials -----------------------------------------------------
class OtpExpired(ExpiredError):
    default_message = "Verification code has expired. Please request a new code."


class OtpMismatch(MismatchError):
    default_message = "Invalid verification code. Please try again."


class InvalidCredentials(MismatchError):
    default_message = "Invalid email or password."


class EmailTaken(ConflictError):
    default_message = "Email already exists."


class EmailNotVerified(AccessDeniedError):
    default_message = "Please verify your email before logging in."


class AccountInactive(AccessDeniedError):
    default_message = "Your account is inactive. Please contact an administrator."


# Collaborators ---------------------------------------------------------------
class ResetDeliveryFailed(DeliveryError):
    default_message = "Failed to send password reset email. Please try again."


class RegistrationFailed(StoreError):
    default_message = "Registration failed."
