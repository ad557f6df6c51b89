"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers. The codec and
hasher are process-wide (built once from settings); the SessionManager
and its credential store are per-request, bound to that request's
database session.

get_current_user returns an explicit AuthContext value. Route handlers
receive it as a parameter and hand it to services — nothing is stashed
on the request object.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbook.auth.identity import AuthContext
from pocketbook.auth.jwt import TokenCodec
from pocketbook.auth.password import PasswordHasher
from pocketbook.config import settings
from pocketbook.db.engine import get_db
from pocketbook.errors import MissingToken
from pocketbook.services.auth_service import SessionManager
from pocketbook.store.sql import SqlCredentialStore


@lru_cache
def get_token_codec() -> TokenCodec:
    return TokenCodec.from_settings(settings)


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


def get_session_manager(
    db: AsyncSession = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> SessionManager:
    return SessionManager(
        store=SqlCredentialStore(db),
        codec=codec,
        hasher=hasher,
        password_min_length=settings.password_min_length,
    )


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Pull the token out of an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    authorization: Optional[str] = Header(None),
    manager: SessionManager = Depends(get_session_manager),
) -> AuthContext:
    """Required auth — MissingToken without a bearer token, Unauthorized if it fails."""
    token = bearer_token(authorization)
    if token is None:
        raise MissingToken()
    return manager.authenticate(token)
