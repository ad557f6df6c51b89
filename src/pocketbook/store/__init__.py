"""Credential storage — users and refresh tokens.

Learn: The SessionManager talks to a CredentialStore, never to the
database directly. Two implementations share one contract:
- SqlCredentialStore: SQLAlchemy AsyncSession (production)
- MemoryCredentialStore: plain dicts (unit tests)
"""

from pocketbook.store.base import (
    ConstraintViolation,
    CredentialStore,
    RefreshTokenRecord,
    StoreError,
    UserRecord,
)
from pocketbook.store.memory import MemoryCredentialStore
from pocketbook.store.sql import SqlCredentialStore

__all__ = [
    "ConstraintViolation",
    "CredentialStore",
    "MemoryCredentialStore",
    "RefreshTokenRecord",
    "SqlCredentialStore",
    "StoreError",
    "UserRecord",
]
