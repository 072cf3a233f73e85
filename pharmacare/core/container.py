from dataclasses import dataclass

from ..application.services.account_service import AccountService
from ..infrastructure.repositories.user_repository import UserRepository
from ..services.email_service import EmailService
from ..services.password_hasher import PasswordHasher
from .config import Settings


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    password_hasher: PasswordHasher
    user_repository: UserRepository
    email_service: EmailService
    account_service: AccountService
