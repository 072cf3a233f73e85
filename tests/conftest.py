from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from pharmacare.application.services.account_service import AccountService
from pharmacare.domain.exceptions import ConflictError, DeliveryError
from pharmacare.domain.models import User
from pharmacare.infrastructure.session_store import MappingSessionStore
from pharmacare.services.password_hasher import PasswordHasher

START = datetime(2025, 11, 8, 17, 36, 15, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemoryUserRepository:
    """UserRepository keeping copies, so unsaved mutations are not visible."""

    def __init__(self, hasher: PasswordHasher) -> None:
        self._hasher = hasher
        self._users: Dict[int, User] = {}
        self._next_id = 1
        self.updates = 0

    def get_by_email(self, email: str) -> Optional[User]:
        for user in self._users.values():
            if user.email.lower() == email.strip().lower():
                return replace(user)
        return None

    def get_by_reset_token(self, token: str) -> Optional[User]:
        for user in self._users.values():
            if token and user.password_reset_token == token:
                return replace(user)
        return None

    def exists(self, email: str) -> bool:
        return self.get_by_email(email) is not None

    def create(self, user: User) -> Optional[User]:
        if self.exists(user.email):
            raise ConflictError()
        stored = replace(user, id=self._next_id)
        self._next_id += 1
        self._users[stored.id] = stored
        return replace(stored)

    def update(self, user: User) -> None:
        self.updates += 1
        self._users[user.id] = replace(user)

    def validate_credentials(self, email: str, password: str) -> bool:
        user = self.get_by_email(email)
        if user is None:
            self._hasher.dummy_verify()
            return False
        return self._hasher.verify(password, user.password_hash)

    def stored(self, email: str) -> User:
        user = self.get_by_email(email)
        assert user is not None
        return user


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: List[dict] = []
        self.fail = False

    async def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise DeliveryError("SMTP connection refused")
        self.sent.append({"to": to, "subject": subject, "html_body": html_body})


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def users(hasher: PasswordHasher) -> InMemoryUserRepository:
    return InMemoryUserRepository(hasher)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def session() -> MappingSessionStore:
    return MappingSessionStore()


@pytest.fixture
def account_service(users, notifier, hasher, clock) -> AccountService:
    return AccountService(
        users,
        notifier,
        hasher,
        clock=clock,
        privileged_landing_route="/admin/index",
        standard_landing_route="/frontend/index",
        reset_link_base_url="https://pharmacare.test/account/reset-password",
    )
