"""Pydantic schemas for purchases."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from pocketbook.schemas.category import CategoryRead

PaymentMethod = Literal["cash", "card", "transfer"]


class PurchaseCreate(BaseModel):
    category_id: uuid.UUID
    purchased_on: date
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    merchant: str = Field(..., min_length=1, max_length=200)
    payment_method: PaymentMethod
    description: Optional[str] = None
    items: Optional[list[str]] = None


class PurchaseUpdate(BaseModel):
    category_id: Optional[uuid.UUID] = None
    purchased_on: Optional[date] = None
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    merchant: Optional[str] = Field(None, min_length=1, max_length=200)
    payment_method: Optional[PaymentMethod] = None
    description: Optional[str] = None
    items: Optional[list[str]] = None


class PurchaseRead(BaseModel):
    id: uuid.UUID
    category_id: uuid.UUID
    purchased_on: date
    amount: Decimal
    merchant: str
    payment_method: str
    description: Optional[str] = None
    items: Optional[list[str]] = None
    category: CategoryRead
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
