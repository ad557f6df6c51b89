"""In-memory credential store used by unit tests."""

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from pocketbook.store.base import (
    ConstraintViolation,
    CredentialStore,
    RefreshTokenRecord,
    UserRecord,
)

_USER_FIELDS = {"email", "display_name", "password_hash"}


class MemoryCredentialStore(CredentialStore):
    """Dict-backed store with the same uniqueness rules as the database."""

    def __init__(self) -> None:
        self.users: dict[uuid.UUID, UserRecord] = {}
        self.refresh_tokens: dict[str, RefreshTokenRecord] = {}

    async def get_user(self, user_id: uuid.UUID) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        return replace(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.email == email:
                return replace(user)
        return None

    async def create_user(
        self, email: str, display_name: str, password_hash: str
    ) -> UserRecord:
        if any(u.email == email for u in self.users.values()):
            raise ConstraintViolation("email already exists", {"field": "email"})
        now = datetime.now(timezone.utc)
        user = UserRecord(
            id=uuid.uuid4(),
            email=email,
            display_name=display_name,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return replace(user)

    async def update_user(
        self, user_id: uuid.UUID, **fields: Any
    ) -> Optional[UserRecord]:
        unknown = set(fields) - _USER_FIELDS
        if unknown:
            raise ValueError(f"unknown user fields: {sorted(unknown)}")
        user = self.users.get(user_id)
        if user is None:
            return None
        email = fields.get("email")
        if email is not None and any(
            u.email == email and u.id != user_id for u in self.users.values()
        ):
            raise ConstraintViolation("email already exists", {"field": "email"})
        updated = replace(user, **fields, updated_at=datetime.now(timezone.utc))
        self.users[user_id] = updated
        return replace(updated)

    async def count_users(self) -> int:
        return len(self.users)

    async def get_refresh_token(self, token: str) -> Optional[RefreshTokenRecord]:
        record = self.refresh_tokens.get(token)
        return replace(record) if record else None

    async def create_refresh_token(
        self, token: str, user_id: uuid.UUID, expires_at: datetime
    ) -> RefreshTokenRecord:
        if token in self.refresh_tokens:
            raise ConstraintViolation("refresh token already exists", {"field": "token"})
        record = RefreshTokenRecord(
            token=token,
            user_id=user_id,
            expires_at=expires_at,
            created_at=datetime.now(timezone.utc),
        )
        self.refresh_tokens[token] = record
        return replace(record)

    async def delete_refresh_token(self, token: str) -> bool:
        return self.refresh_tokens.pop(token, None) is not None
