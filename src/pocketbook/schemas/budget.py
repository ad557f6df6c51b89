"""Pydantic schemas for monthly budgets.

Learn: Clients send months as "YYYY-MM". We store the first day of
that month, and send it back in the same "YYYY-MM" form.
"""

import re
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer

from pocketbook.schemas.category import CategoryRead

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def parse_month(value):
    """Accept "YYYY-MM" (or a full date) and return the first day of that month."""
    if isinstance(value, date):
        return value.replace(day=1)
    match = _MONTH_RE.match(str(value))
    if not match:
        try:
            return date.fromisoformat(str(value)).replace(day=1)
        except ValueError:
            raise ValueError("month must use the YYYY-MM format") from None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError("month must be between 01 and 12")
    return date(year, month, 1)


Month = Annotated[
    date,
    BeforeValidator(parse_month),
    PlainSerializer(lambda d: d.strftime("%Y-%m"), return_type=str),
]


class BudgetCreate(BaseModel):
    category_id: uuid.UUID
    month: Month
    limit_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class BudgetUpdate(BaseModel):
    category_id: Optional[uuid.UUID] = None
    month: Optional[Month] = None
    limit_amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)


class BudgetRead(BaseModel):
    id: uuid.UUID
    category_id: uuid.UUID
    month: Month
    limit_amount: Decimal
    category: CategoryRead
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
