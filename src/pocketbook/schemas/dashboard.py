"""Pydantic schemas for the dashboard summary."""

import uuid
from decimal import Decimal

from pydantic import BaseModel

from pocketbook.schemas.budget import Month


class CategorySpend(BaseModel):
    category_id: uuid.UUID
    category_name: str
    total: Decimal
    count: int


class MerchantCount(BaseModel):
    name: str
    count: int


class BudgetStatus(BaseModel):
    budget_id: uuid.UUID
    category_id: uuid.UUID
    category_name: str
    limit_amount: Decimal
    spent: Decimal
    remaining: Decimal


class DashboardStats(BaseModel):
    month: Month
    monthly_total: Decimal
    purchase_count: int
    expenses_by_category: list[CategorySpend]
    top_merchants: list[MerchantCount]
    budgets: list[BudgetStatus]
