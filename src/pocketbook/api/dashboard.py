"""Dashboard API — monthly spending summary."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbook.api.budgets import month_query
from pocketbook.auth.dependencies import get_current_user
from pocketbook.auth.identity import AuthContext
from pocketbook.db.engine import get_db
from pocketbook.schemas.dashboard import DashboardStats
from pocketbook.services.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboard")


@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    month: Optional[str] = Query(None, description="YYYY-MM, defaults to the current month"),
    db: AsyncSession = Depends(get_db),
    identity: AuthContext = Depends(get_current_user),
):
    return await DashboardService(db, identity).monthly_stats(month_query(month))
