from __future__ import annotations

from typing import Optional, Protocol

from ..models import User


class UserRepository(Protocol):
    """Persistence functions related to user accounts.

    ``create`` raises :class:`ConflictError` when the email is already taken,
    so concurrent registrations are settled by the store rather than by a
    prior existence check. Other failures surface as :class:`StoreError`.
    """

    def get_by_email(self, email: str) -> Optional[User]:
        ...

    def get_by_reset_token(self, token: str) -> Optional[User]:
        ...

    def exists(self, email: str) -> bool:
        ...

    def create(self, user: User) -> Optional[User]:
        ...

    def update(self, user: User) -> None:
        ...

    def validate_credentials(self, email: str, password: str) -> bool:
        ...
