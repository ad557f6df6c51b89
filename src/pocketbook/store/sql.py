"""SQLAlchemy-backed credential store.

Learn: Each method is a single statement followed by a commit, so every
operation is atomic on its own. IntegrityError from a unique index is
translated into ConstraintViolation; any other database failure becomes
StoreError. Nothing SQLAlchemy-specific leaks past this module.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbook.db.models import RefreshToken, User
from pocketbook.store.base import (
    ConstraintViolation,
    CredentialStore,
    RefreshTokenRecord,
    StoreError,
    UserRecord,
)

_USER_FIELDS = {"email", "display_name", "password_hash"}


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        password_hash=user.password_hash,
        created_at=_as_utc(user.created_at),
        updated_at=_as_utc(user.updated_at),
    )


def _token_record(row: RefreshToken) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        token=row.token,
        user_id=row.user_id,
        expires_at=_as_utc(row.expires_at),
        created_at=_as_utc(row.created_at),
    )


class SqlCredentialStore(CredentialStore):
    """Credential store over one request-scoped AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConstraintViolation("unique constraint violated") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("commit failed") from e

    # ─── Users ───────────────────────────────────────────

    async def get_user(self, user_id: uuid.UUID) -> Optional[UserRecord]:
        try:
            user = await self.db.get(User, user_id)
        except SQLAlchemyError as e:
            raise StoreError("user lookup failed") from e
        return _user_record(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        try:
            result = await self.db.execute(select(User).where(User.email == email))
        except SQLAlchemyError as e:
            raise StoreError("user lookup failed") from e
        user = result.scalars().first()
        return _user_record(user) if user else None

    async def create_user(
        self, email: str, display_name: str, password_hash: str
    ) -> UserRecord:
        user = User(email=email, display_name=display_name, password_hash=password_hash)
        self.db.add(user)
        await self._commit()
        return _user_record(user)

    async def update_user(
        self, user_id: uuid.UUID, **fields: Any
    ) -> Optional[UserRecord]:
        unknown = set(fields) - _USER_FIELDS
        if unknown:
            raise ValueError(f"unknown user fields: {sorted(unknown)}")
        try:
            user = await self.db.get(User, user_id)
        except SQLAlchemyError as e:
            raise StoreError("user lookup failed") from e
        if user is None:
            return None
        for name, value in fields.items():
            setattr(user, name, value)
        user.updated_at = datetime.now(timezone.utc)
        await self._commit()
        return _user_record(user)

    async def count_users(self) -> int:
        try:
            result = await self.db.execute(select(func.count()).select_from(User))
        except SQLAlchemyError as e:
            raise StoreError("user count failed") from e
        return result.scalar_one()

    # ─── Refresh tokens ──────────────────────────────────

    async def get_refresh_token(self, token: str) -> Optional[RefreshTokenRecord]:
        try:
            result = await self.db.execute(
                select(RefreshToken).where(RefreshToken.token == token)
            )
        except SQLAlchemyError as e:
            raise StoreError("refresh token lookup failed") from e
        row = result.scalars().first()
        return _token_record(row) if row else None

    async def create_refresh_token(
        self, token: str, user_id: uuid.UUID, expires_at: datetime
    ) -> RefreshTokenRecord:
        row = RefreshToken(token=token, user_id=user_id, expires_at=expires_at)
        self.db.add(row)
        await self._commit()
        return _token_record(row)

    async def delete_refresh_token(self, token: str) -> bool:
        try:
            result = await self.db.execute(
                delete(RefreshToken).where(RefreshToken.token == token)
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("refresh token delete failed") from e
        await self._commit()
        return result.rowcount > 0
