"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter, and again inside each protected router's
service factory (FastAPI caches the dependency, so it runs once per
request). Health and auth routers are open; /auth/me and friends
declare the dependency on their own.
"""

from fastapi import APIRouter, Depends

from pocketbook.api.auth import router as auth_router
from pocketbook.api.budgets import router as budgets_router
from pocketbook.api.categories import router as categories_router
from pocketbook.api.dashboard import router as dashboard_router
from pocketbook.api.health import router as health_router
from pocketbook.api.purchases import router as purchases_router
from pocketbook.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid access token
api_router.include_router(categories_router, tags=["categories"], dependencies=_auth)
api_router.include_router(purchases_router, tags=["purchases"], dependencies=_auth)
api_router.include_router(budgets_router, tags=["budgets"], dependencies=_auth)
api_router.include_router(dashboard_router, tags=["dashboard"], dependencies=_auth)
