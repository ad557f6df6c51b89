"""Owner scoping for every owned entity.

Learn: Row-level tenancy lives here, in one place. Services never build
an unscoped query for categories, purchases, or budgets — they ask the
OwnerScope for one. A row that exists but belongs to someone else is
reported exactly like a row that doesn't exist (NotFound), so one user
can't discover another user's ids.
"""

import uuid
from typing import Any, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbook.auth.identity import AuthContext
from pocketbook.errors import NotFound

T = TypeVar("T")


class OwnerScope:
    """Request-scoped query guard bound to one identity."""

    def __init__(self, db: AsyncSession, identity: AuthContext):
        self.db = db
        self.identity = identity

    @property
    def user_id(self) -> uuid.UUID:
        return self.identity.user_id

    def select(self, model: type[T], *columns: Any) -> Select:
        """SELECT over `model` already filtered to the current owner."""
        stmt = select(*columns) if columns else select(model)
        return stmt.where(model.user_id == self.user_id)

    async def get(self, model: type[T], entity_id: uuid.UUID, label: str = "Resource") -> T:
        """Fetch one owned row, or raise NotFound (missing and foreign alike)."""
        result = await self.db.execute(
            self.select(model).where(model.id == entity_id)
        )
        entity = result.scalars().first()
        if entity is None:
            raise NotFound(f"{label} not found")
        return entity

    def stamp(self, entity: T) -> T:
        """Assign ownership to a new entity."""
        entity.user_id = self.user_id
        return entity
