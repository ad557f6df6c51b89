"""Purchase API routes — CRUD plus filtered, paginated listing."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbook.auth.dependencies import get_current_user
from pocketbook.auth.identity import AuthContext
from pocketbook.db.engine import get_db
from pocketbook.schemas.auth import AckResponse
from pocketbook.schemas.common import Page, Pagination
from pocketbook.schemas.purchase import PurchaseCreate, PurchaseRead, PurchaseUpdate
from pocketbook.services.purchase_service import PurchaseService

router = APIRouter(prefix="/purchases")


def _svc(
    db: AsyncSession = Depends(get_db),
    identity: AuthContext = Depends(get_current_user),
) -> PurchaseService:
    return PurchaseService(db, identity)


@router.post("", response_model=PurchaseRead, status_code=201)
async def create_purchase(body: PurchaseCreate, svc: PurchaseService = Depends(_svc)):
    return await svc.create_purchase(**body.model_dump())


@router.get("", response_model=Page[PurchaseRead])
async def list_purchases(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    category_id: Optional[uuid.UUID] = Query(None),
    merchant: Optional[str] = Query(None),
    svc: PurchaseService = Depends(_svc),
):
    """List purchases newest first, with optional date/category/merchant filters."""
    items, total = await svc.list_purchases(
        page=page,
        limit=limit,
        date_from=date_from,
        date_to=date_to,
        category_id=category_id,
        merchant=merchant,
    )
    return {"items": items, "pagination": Pagination.build(page, limit, total)}


@router.get("/{purchase_id}", response_model=PurchaseRead)
async def get_purchase(purchase_id: uuid.UUID, svc: PurchaseService = Depends(_svc)):
    return await svc.get_purchase(purchase_id)


@router.put("/{purchase_id}", response_model=PurchaseRead)
async def update_purchase(
    purchase_id: uuid.UUID,
    body: PurchaseUpdate,
    svc: PurchaseService = Depends(_svc),
):
    return await svc.update_purchase(purchase_id, **body.model_dump(exclude_unset=True))


@router.delete("/{purchase_id}", response_model=AckResponse)
async def delete_purchase(purchase_id: uuid.UUID, svc: PurchaseService = Depends(_svc)):
    await svc.delete_purchase(purchase_id)
    return AckResponse()
