"""Domain models for the PharmaCare accounts service."""

from .registration import RegistrationProfile
from .user import PRIVILEGED_ROLES, ROLE_ADMIN, ROLE_PHARMACIST, ROLE_USER, ROLES, User

__all__ = [
    "PRIVILEGED_ROLES",
    "ROLES",
    "ROLE_ADMIN",
    "ROLE_PHARMACIST",
    "ROLE_USER",
    "RegistrationProfile",
    "User",
]
