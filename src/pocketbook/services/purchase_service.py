"""Purchase service — owner-scoped purchases with filtered pagination."""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pocketbook.auth.guard import OwnerScope
from pocketbook.auth.identity import AuthContext
from pocketbook.db.models import Category, Purchase
from pocketbook.errors import NotFound

# Columns an explicit null in an update leaves untouched
REQUIRED_FIELDS = {
    "category_id",
    "purchased_on",
    "amount",
    "merchant",
    "payment_method",
}


class PurchaseService:
    """Business logic for recording and querying purchases."""

    def __init__(self, db: AsyncSession, identity: AuthContext):
        self.db = db
        self.scope = OwnerScope(db, identity)

    async def create_purchase(
        self,
        category_id: uuid.UUID,
        purchased_on: date,
        amount: Decimal,
        merchant: str,
        payment_method: str,
        description: Optional[str] = None,
        items: Optional[list] = None,
    ) -> Purchase:
        """Record a purchase under one of the caller's own categories."""
        await self.scope.get(Category, category_id, "Category")

        purchase = self.scope.stamp(
            Purchase(
                category_id=category_id,
                purchased_on=purchased_on,
                amount=amount,
                merchant=merchant,
                payment_method=payment_method,
                description=description,
                items=items,
            )
        )
        self.db.add(purchase)
        await self.db.commit()
        return await self.get_purchase(purchase.id)

    async def list_purchases(
        self,
        page: int = 1,
        limit: int = 10,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        category_id: Optional[uuid.UUID] = None,
        merchant: Optional[str] = None,
    ) -> tuple[list[Purchase], int]:
        """One page of purchases (newest first) plus the total match count."""
        filters = []
        if date_from:
            filters.append(Purchase.purchased_on >= date_from)
        if date_to:
            filters.append(Purchase.purchased_on <= date_to)
        if category_id:
            filters.append(Purchase.category_id == category_id)
        if merchant:
            # autoescape: "%" and "_" in the search text match literally
            filters.append(Purchase.merchant.icontains(merchant, autoescape=True))

        total_q = self.scope.select(Purchase, func.count()).where(*filters)
        total = (await self.db.execute(total_q)).scalar_one()

        q = (
            self.scope.select(Purchase)
            .where(*filters)
            .options(selectinload(Purchase.category))
            .order_by(Purchase.purchased_on.desc(), Purchase.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(q)
        return list(result.scalars().all()), total

    async def get_purchase(self, purchase_id: uuid.UUID) -> Purchase:
        result = await self.db.execute(
            self.scope.select(Purchase)
            .where(Purchase.id == purchase_id)
            .options(selectinload(Purchase.category))
            .execution_options(populate_existing=True)
        )
        purchase = result.scalars().first()
        if purchase is None:
            raise NotFound("Purchase not found")
        return purchase

    async def update_purchase(self, purchase_id: uuid.UUID, **changes) -> Purchase:
        purchase = await self.get_purchase(purchase_id)

        new_category = changes.get("category_id")
        if new_category is not None:
            await self.scope.get(Category, new_category, "Category")

        for field, value in changes.items():
            if value is None and field in REQUIRED_FIELDS:
                continue
            setattr(purchase, field, value)
        await self.db.commit()
        return await self.get_purchase(purchase_id)

    async def delete_purchase(self, purchase_id: uuid.UUID) -> None:
        purchase = await self.scope.get(Purchase, purchase_id, "Purchase")
        await self.db.delete(purchase)
        await self.db.commit()
