"""Budget API routes."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbook.auth.dependencies import get_current_user
from pocketbook.auth.identity import AuthContext
from pocketbook.db.engine import get_db
from pocketbook.errors import ValidationError
from pocketbook.schemas.auth import AckResponse
from pocketbook.schemas.budget import BudgetCreate, BudgetRead, BudgetUpdate, parse_month
from pocketbook.schemas.common import Page, Pagination
from pocketbook.services.budget_service import BudgetService

router = APIRouter(prefix="/budgets")


def _svc(
    db: AsyncSession = Depends(get_db),
    identity: AuthContext = Depends(get_current_user),
) -> BudgetService:
    return BudgetService(db, identity)


def month_query(value: Optional[str]):
    """Parse an optional ?month=YYYY-MM query parameter."""
    if value is None:
        return None
    try:
        return parse_month(value)
    except ValueError as e:
        raise ValidationError.for_fields({"month": str(e)}) from e


@router.post("", response_model=BudgetRead, status_code=201)
async def create_budget(body: BudgetCreate, svc: BudgetService = Depends(_svc)):
    return await svc.create_budget(
        category_id=body.category_id, month=body.month, limit_amount=body.limit_amount
    )


@router.get("", response_model=Page[BudgetRead])
async def list_budgets(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    month: Optional[str] = Query(None, description="YYYY-MM"),
    category_id: Optional[uuid.UUID] = Query(None),
    svc: BudgetService = Depends(_svc),
):
    items, total = await svc.list_budgets(
        page=page, limit=limit, month=month_query(month), category_id=category_id
    )
    return {"items": items, "pagination": Pagination.build(page, limit, total)}


@router.get("/{budget_id}", response_model=BudgetRead)
async def get_budget(budget_id: uuid.UUID, svc: BudgetService = Depends(_svc)):
    return await svc.get_budget(budget_id)


@router.put("/{budget_id}", response_model=BudgetRead)
async def update_budget(
    budget_id: uuid.UUID,
    body: BudgetUpdate,
    svc: BudgetService = Depends(_svc),
):
    return await svc.update_budget(budget_id, **body.model_dump(exclude_unset=True))


@router.delete("/{budget_id}", response_model=AckResponse)
async def delete_budget(budget_id: uuid.UUID, svc: BudgetService = Depends(_svc)):
    await svc.delete_budget(budget_id)
    return AckResponse()
