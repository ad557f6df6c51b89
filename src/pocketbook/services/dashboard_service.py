"""Dashboard service — one month of spending at a glance.

Learn: Pure aggregation over the caller's own rows. Everything is
computed for a half-open month window [first day, first day of next month).
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbook.auth.guard import OwnerScope
from pocketbook.auth.identity import AuthContext
from pocketbook.db.models import Budget, Category, Purchase

TOP_MERCHANTS = 5
CENTS = Decimal("0.01")


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS)


def month_start(value: date) -> date:
    return value.replace(day=1)


def next_month(value: date) -> date:
    if value.month == 12:
        return date(value.year + 1, 1, 1)
    return date(value.year, value.month + 1, 1)


class DashboardService:
    """Monthly spending summary for the current user."""

    def __init__(self, db: AsyncSession, identity: AuthContext):
        self.db = db
        self.scope = OwnerScope(db, identity)

    async def monthly_stats(self, month: Optional[date] = None) -> dict[str, Any]:
        start = month_start(month or datetime.now(timezone.utc).date())
        end = next_month(start)
        in_month = (Purchase.purchased_on >= start, Purchase.purchased_on < end)

        totals = (
            await self.db.execute(
                self.scope.select(
                    Purchase,
                    func.coalesce(func.sum(Purchase.amount), 0),
                    func.count(Purchase.id),
                ).where(*in_month)
            )
        ).one()
        monthly_total, purchase_count = _money(totals[0]), totals[1]

        by_category_rows = (
            await self.db.execute(
                self.scope.select(
                    Purchase,
                    Purchase.category_id,
                    Category.name,
                    func.sum(Purchase.amount),
                    func.count(Purchase.id),
                )
                .join(Category, Category.id == Purchase.category_id)
                .where(*in_month)
                .group_by(Purchase.category_id, Category.name)
                .order_by(func.sum(Purchase.amount).desc())
            )
        ).all()
        spent_by_category = {row[0]: _money(row[2]) for row in by_category_rows}

        merchant_rows = (
            await self.db.execute(
                self.scope.select(Purchase, Purchase.merchant, func.count(Purchase.id))
                .where(*in_month)
                .group_by(Purchase.merchant)
                .order_by(func.count(Purchase.id).desc(), Purchase.merchant)
                .limit(TOP_MERCHANTS)
            )
        ).all()

        budget_rows = (
            await self.db.execute(
                self.scope.select(
                    Budget, Budget.id, Budget.category_id, Category.name, Budget.limit_amount
                )
                .join(Category, Category.id == Budget.category_id)
                .where(Budget.month == start)
                .order_by(Category.name)
            )
        ).all()

        budgets = []
        for budget_id, category_id, category_name, limit_amount in budget_rows:
            spent = spent_by_category.get(category_id, _money(0))
            budgets.append(
                {
                    "budget_id": budget_id,
                    "category_id": category_id,
                    "category_name": category_name,
                    "limit_amount": _money(limit_amount),
                    "spent": spent,
                    "remaining": _money(limit_amount) - spent,
                }
            )

        return {
            "month": start,
            "monthly_total": monthly_total,
            "purchase_count": purchase_count,
            "expenses_by_category": [
                {
                    "category_id": category_id,
                    "category_name": name,
                    "total": _money(total),
                    "count": count,
                }
                for category_id, name, total, count in by_category_rows
            ],
            "top_merchants": [
                {"name": name, "count": count} for name, count in merchant_rows
            ],
            "budgets": budgets,
        }
