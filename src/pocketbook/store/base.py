"""Credential store contract and record types."""

import abc
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


class StoreError(Exception):
    """Raised when the backing store fails unexpectedly."""


class ConstraintViolation(StoreError):
    """Raised when a write would break a uniqueness constraint."""

    def __init__(self, message: str, detail: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


@dataclass
class UserRecord:
    id: uuid.UUID
    email: str
    display_name: str
    password_hash: str
    created_at: datetime
    updated_at: datetime


@dataclass
class RefreshTokenRecord:
    token: str
    user_id: uuid.UUID
    expires_at: datetime
    created_at: datetime


class CredentialStore(abc.ABC):
    """Atomic single-row operations on users and refresh tokens.

    Learn: Every method is one round-trip and one row. Concurrency is
    handled by the store itself — unique email, unique token, and a
    delete that reports whether it removed anything — never by locks
    in the application process.
    """

    # ─── Users ───────────────────────────────────────────

    @abc.abstractmethod
    async def get_user(self, user_id: uuid.UUID) -> Optional[UserRecord]: ...

    @abc.abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserRecord]: ...

    @abc.abstractmethod
    async def create_user(
        self, email: str, display_name: str, password_hash: str
    ) -> UserRecord:
        """Insert a user. Raises ConstraintViolation if the email is taken."""

    @abc.abstractmethod
    async def update_user(
        self, user_id: uuid.UUID, **fields: Any
    ) -> Optional[UserRecord]:
        """Apply a partial update. Returns None if the user does not exist.

        Raises ConstraintViolation if `email` collides with another user.
        """

    @abc.abstractmethod
    async def count_users(self) -> int: ...

    # ─── Refresh tokens ──────────────────────────────────

    @abc.abstractmethod
    async def get_refresh_token(self, token: str) -> Optional[RefreshTokenRecord]: ...

    @abc.abstractmethod
    async def create_refresh_token(
        self, token: str, user_id: uuid.UUID, expires_at: datetime
    ) -> RefreshTokenRecord: ...

    @abc.abstractmethod
    async def delete_refresh_token(self, token: str) -> bool:
        """Delete the row holding `token`. Returns True if a row was removed."""
