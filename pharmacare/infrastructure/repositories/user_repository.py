"""Repository for User persistence."""

import logging
import sqlite3
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from pharmacare.domain.exceptions import ConflictError, StoreError
from pharmacare.domain.models.user import User
from pharmacare.services.password_hasher import PasswordHasher

logger = logging.getLogger(__name__)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class UserRepository:
    """Repository for managing User entities in SQLite."""

    def __init__(self, db_path: Union[str, Path], hasher: PasswordHasher):
        self.db_path = str(db_path)
        self._hasher = hasher
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._initialize_table()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_table(self) -> None:
        """Create users table if it doesn't exist and migrate schema if needed."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'User',
                    email_confirmed INTEGER NOT NULL DEFAULT 0,
                    email_otp TEXT,
                    email_otp_expires_at TEXT,
                    password_reset_token TEXT,
                    password_reset_expires_at TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # Migrate existing table: add reset columns introduced after the first release
            cursor = conn.execute("PRAGMA table_info(users)")
            existing_columns = {row[1] for row in cursor.fetchall()}

            if "password_reset_token" not in existing_columns:
                conn.execute("ALTER TABLE users ADD COLUMN password_reset_token TEXT")

            if "password_reset_expires_at" not in existing_columns:
                conn.execute("ALTER TABLE users ADD COLUMN password_reset_expires_at TEXT")

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_users_password_reset_token "
                "ON users(password_reset_token)"
            )
            conn.commit()

    def create(self, user: User) -> Optional[User]:
        """Insert a new user; a duplicate email raises ConflictError."""
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO users (
                        email, first_name, last_name, password_hash, role,
                        email_confirmed, email_otp, email_otp_expires_at,
                        password_reset_token, password_reset_expires_at,
                        is_active, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user.email,
                        user.first_name,
                        user.last_name,
                        user.password_hash,
                        user.role,
                        int(user.email_confirmed),
                        user.email_otp,
                        _to_iso(user.email_otp_expires_at),
                        user.password_reset_token,
                        _to_iso(user.password_reset_expires_at),
                        int(user.is_active),
                        _to_iso(user.created_at),
                        _to_iso(user.updated_at),
                    ),
                )
                conn.commit()
                user_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            raise ConflictError(f"Email already registered: {user.email}") from exc
        except sqlite3.Error as exc:
            raise StoreError() from exc

        if user_id is None:
            return None
        return replace(user, id=user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)."""
        return self._fetch_one("SELECT * FROM users WHERE email = ?", (email.strip(),))

    def get_by_reset_token(self, token: str) -> Optional[User]:
        """Get user by password reset token."""
        if not token:
            return None
        return self._fetch_one(
            "SELECT * FROM users WHERE password_reset_token = ?", (token,)
        )

    def exists(self, email: str) -> bool:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT 1 FROM users WHERE email = ?", (email.strip(),)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError() from exc
        return row is not None

    def update(self, user: User) -> None:
        """Persist every mutable field of ``user``."""
        if user.id is None:
            raise StoreError("Cannot update a user that has not been created.")
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    UPDATE users
                    SET first_name = ?, last_name = ?, password_hash = ?, role = ?,
                        email_confirmed = ?, email_otp = ?, email_otp_expires_at = ?,
                        password_reset_token = ?, password_reset_expires_at = ?,
                        is_active = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        user.first_name,
                        user.last_name,
                        user.password_hash,
                        user.role,
                        int(user.email_confirmed),
                        user.email_otp,
                        _to_iso(user.email_otp_expires_at),
                        user.password_reset_token,
                        _to_iso(user.password_reset_expires_at),
                        int(user.is_active),
                        _to_iso(user.updated_at),
                        user.id,
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreError() from exc

    def validate_credentials(self, email: str, password: str) -> bool:
        """Check ``password`` against the stored hash, upgrading legacy hashes."""
        user = self.get_by_email(email)
        if user is None:
            self._hasher.dummy_verify()
            return False
        if not self._hasher.verify(password, user.password_hash):
            return False
        if self._hasher.needs_update(user.password_hash):
            logger.info("Upgrading password hash for user %s", user.id)
            user.password_hash = self._hasher.hash(password)
            self.update(user)
        return True

    def _fetch_one(self, query: str, params: tuple) -> Optional[User]:
        try:
            with self._connect() as conn:
                row = conn.execute(query, params).fetchone()
        except sqlite3.Error as exc:
            raise StoreError() from exc

        if not row:
            return None

        return self._row_to_user(row)

    def _row_to_user(self, row: sqlite3.Row) -> User:
        """Convert database row to User entity."""
        return User(
            id=row["id"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            password_hash=row["password_hash"],
            role=row["role"],
            email_confirmed=bool(row["email_confirmed"]),
            email_otp=row["email_otp"],
            email_otp_expires_at=_from_iso(row["email_otp_expires_at"]),
            password_reset_token=row["password_reset_token"],
            password_reset_expires_at=_from_iso(row["password_reset_expires_at"]),
            is_active=bool(row["is_active"]),
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
        )
