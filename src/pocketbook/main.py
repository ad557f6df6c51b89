"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis, database engine).
Middleware, CORS, exception handlers, and routers all registered here.

Each concern lives in its own module; this file only wires them.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pocketbook import __version__
from pocketbook.api import api_router
from pocketbook.api.errors import register_exception_handlers
from pocketbook.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: FastAPI lifespan replaces on_event("startup") / on_event("shutdown").
    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "pocketbook.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from pocketbook.redis_client import close_redis, init_redis
    try:
        await init_redis()
        logger.info("pocketbook.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("pocketbook.redis_unavailable", error=str(e))
        # Redis is optional — only rate limiting depends on it

    yield

    logger.info("pocketbook.shutdown")

    await close_redis()

    from pocketbook.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Pocketbook",
        description="Personal finance API — purchases, categories, budgets",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → RequestLog → handler

    from pocketbook.middleware.rate_limit import RateLimitMiddleware
    from pocketbook.middleware.request_id import RequestIdMiddleware
    from pocketbook.middleware.request_log import RequestLogMiddleware
    from pocketbook.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: pocketbook.main:app)
app = create_app()
