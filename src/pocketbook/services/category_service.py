"""Category service — owner-scoped CRUD for spending categories.

Learn: Service layer separates business logic from HTTP routing.
Every query goes through OwnerScope, so a category id from another
user behaves exactly like an id that doesn't exist.
"""

import uuid
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbook.auth.guard import OwnerScope
from pocketbook.auth.identity import AuthContext
from pocketbook.db.models import Budget, Category, Purchase
from pocketbook.errors import Conflict

DEFAULT_COLOR = "#1976d2"
# Columns an explicit null in an update leaves untouched
REQUIRED_FIELDS = {"name", "color"}


class CategoryService:
    """Business logic for category management."""

    def __init__(self, db: AsyncSession, identity: AuthContext):
        self.db = db
        self.scope = OwnerScope(db, identity)

    async def _name_taken(self, name: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
        q = self.scope.select(Category).where(Category.name == name)
        if exclude_id is not None:
            q = q.where(Category.id != exclude_id)
        result = await self.db.execute(q)
        return result.scalars().first() is not None

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise Conflict("A category with that name already exists") from e

    async def create_category(
        self,
        name: str,
        description: Optional[str] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
    ) -> Category:
        if await self._name_taken(name):
            raise Conflict("A category with that name already exists")

        category = self.scope.stamp(
            Category(
                name=name,
                description=description,
                color=color or DEFAULT_COLOR,
                icon=icon,
            )
        )
        self.db.add(category)
        await self._commit()
        return category

    async def list_categories(self) -> list[Category]:
        result = await self.db.execute(
            self.scope.select(Category).order_by(Category.name)
        )
        return list(result.scalars().all())

    async def get_category(self, category_id: uuid.UUID) -> Category:
        return await self.scope.get(Category, category_id, "Category")

    async def update_category(self, category_id: uuid.UUID, **changes) -> Category:
        category = await self.get_category(category_id)

        name = changes.get("name")
        if name and name != category.name and await self._name_taken(name, category.id):
            raise Conflict("A category with that name already exists")

        for field, value in changes.items():
            if value is None and field in REQUIRED_FIELDS:
                continue
            setattr(category, field, value)
        await self._commit()
        return category

    async def delete_category(self, category_id: uuid.UUID) -> None:
        """Delete a category that nothing references yet."""
        category = await self.get_category(category_id)

        for model, what in ((Purchase, "purchases"), (Budget, "budgets")):
            result = await self.db.execute(
                self.scope.select(model, func.count()).where(
                    model.category_id == category.id
                )
            )
            if result.scalar_one():
                raise Conflict(f"Category has {what} and cannot be deleted")

        await self.db.delete(category)
        await self.db.commit()
