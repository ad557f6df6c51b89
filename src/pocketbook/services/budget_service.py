"""Budget service — monthly spending limits per category."""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pocketbook.auth.guard import OwnerScope
from pocketbook.auth.identity import AuthContext
from pocketbook.db.models import Budget, Category
from pocketbook.errors import Conflict, NotFound

DUPLICATE_MESSAGE = "A budget for this category and month already exists"


class BudgetService:
    """Business logic for monthly budgets."""

    def __init__(self, db: AsyncSession, identity: AuthContext):
        self.db = db
        self.scope = OwnerScope(db, identity)

    async def _exists(
        self, category_id: uuid.UUID, month: date, exclude_id: Optional[uuid.UUID] = None
    ) -> bool:
        q = self.scope.select(Budget).where(
            Budget.category_id == category_id, Budget.month == month
        )
        if exclude_id is not None:
            q = q.where(Budget.id != exclude_id)
        result = await self.db.execute(q)
        return result.scalars().first() is not None

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise Conflict(DUPLICATE_MESSAGE) from e

    async def create_budget(
        self, category_id: uuid.UUID, month: date, limit_amount: Decimal
    ) -> Budget:
        await self.scope.get(Category, category_id, "Category")
        if await self._exists(category_id, month):
            raise Conflict(DUPLICATE_MESSAGE)

        budget = self.scope.stamp(
            Budget(category_id=category_id, month=month, limit_amount=limit_amount)
        )
        self.db.add(budget)
        await self._commit()
        return await self.get_budget(budget.id)

    async def list_budgets(
        self,
        page: int = 1,
        limit: int = 10,
        month: Optional[date] = None,
        category_id: Optional[uuid.UUID] = None,
    ) -> tuple[list[Budget], int]:
        filters = []
        if month:
            filters.append(Budget.month == month)
        if category_id:
            filters.append(Budget.category_id == category_id)

        total = (
            await self.db.execute(self.scope.select(Budget, func.count()).where(*filters))
        ).scalar_one()

        result = await self.db.execute(
            self.scope.select(Budget)
            .where(*filters)
            .options(selectinload(Budget.category))
            .order_by(Budget.month.desc(), Budget.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_budget(self, budget_id: uuid.UUID) -> Budget:
        result = await self.db.execute(
            self.scope.select(Budget)
            .where(Budget.id == budget_id)
            .options(selectinload(Budget.category))
            .execution_options(populate_existing=True)
        )
        budget = result.scalars().first()
        if budget is None:
            raise NotFound("Budget not found")
        return budget

    async def update_budget(self, budget_id: uuid.UUID, **changes) -> Budget:
        budget = await self.get_budget(budget_id)
        # Every budget column is required; an explicit null means "leave as is"
        changes = {k: v for k, v in changes.items() if v is not None}

        category_id = changes.get("category_id", budget.category_id)
        month = changes.get("month", budget.month)
        if "category_id" in changes:
            await self.scope.get(Category, category_id, "Category")
        if (category_id, month) != (budget.category_id, budget.month) and await self._exists(
            category_id, month, exclude_id=budget.id
        ):
            raise Conflict(DUPLICATE_MESSAGE)

        for field, value in changes.items():
            setattr(budget, field, value)
        await self._commit()
        return await self.get_budget(budget_id)

    async def delete_budget(self, budget_id: uuid.UUID) -> None:
        budget = await self.scope.get(Budget, budget_id, "Budget")
        await self.db.delete(budget)
        await self.db.commit()
