"""Category API routes.

Learn: FastAPI routers define HTTP endpoints. Each route function
receives the service via Depends(); the service is already bound to
the caller's identity, so routes never deal with ownership themselves.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbook.auth.dependencies import get_current_user
from pocketbook.auth.identity import AuthContext
from pocketbook.db.engine import get_db
from pocketbook.schemas.auth import AckResponse
from pocketbook.schemas.category import CategoryCreate, CategoryRead, CategoryUpdate
from pocketbook.services.category_service import CategoryService

router = APIRouter(prefix="/categories")


def _svc(
    db: AsyncSession = Depends(get_db),
    identity: AuthContext = Depends(get_current_user),
) -> CategoryService:
    return CategoryService(db, identity)


@router.post("", response_model=CategoryRead, status_code=201)
async def create_category(body: CategoryCreate, svc: CategoryService = Depends(_svc)):
    return await svc.create_category(
        name=body.name, description=body.description, color=body.color, icon=body.icon
    )


@router.get("", response_model=list[CategoryRead])
async def list_categories(svc: CategoryService = Depends(_svc)):
    return await svc.list_categories()


@router.get("/{category_id}", response_model=CategoryRead)
async def get_category(category_id: uuid.UUID, svc: CategoryService = Depends(_svc)):
    return await svc.get_category(category_id)


@router.put("/{category_id}", response_model=CategoryRead)
async def update_category(
    category_id: uuid.UUID,
    body: CategoryUpdate,
    svc: CategoryService = Depends(_svc),
):
    return await svc.update_category(category_id, **body.model_dump(exclude_unset=True))


@router.delete("/{category_id}", response_model=AckResponse)
async def delete_category(category_id: uuid.UUID, svc: CategoryService = Depends(_svc)):
    """Delete a category. Refused while purchases or budgets still use it."""
    await svc.delete_category(category_id)
    return AckResponse()
