"""
Shop Admin — Application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import select

from shopadmin.api.v1.api import api_router
from shopadmin.core.config import settings
from shopadmin.core.exceptions import register_exception_handlers
from shopadmin.core.rate_limit import limiter
from shopadmin.core.token_blacklist import token_blacklist
from shopadmin.db.base import Base
from shopadmin.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from shopadmin.models.permission import Permission, UserPermission  # noqa: F401
from shopadmin.models.security_log import SecurityLog  # noqa: F401
from shopadmin.models.user import User, UserRole
from shopadmin.models.user_session import UserSession  # noqa: F401
from shopadmin.services.auth import create_admin
from shopadmin.services.permissions import seed_permissions

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_defaults() -> None:
    """Seed the permission catalogue and bootstrap the first super admin."""
    async with async_session_factory() as session:
        await seed_permissions(session)

        result = await session.execute(
            select(User.id).where(User.role == UserRole.SUPER_ADMIN.value).limit(1)
        )
        if result.scalar_one_or_none() is not None:
            return

        _admin, temporary_password = await create_admin(session, settings.FIRST_ADMIN_EMAIL)
        # Printed once; the account must change it before the first sign-in.
        logger.warning(
            "Super admin created: %s (temporary password: %s)",
            settings.FIRST_ADMIN_EMAIL,
            temporary_password,
        )


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    if settings.SEED_ON_STARTUP:
        await seed_defaults()

    sweeper = asyncio.create_task(
        token_blacklist.run_periodic_sweep(settings.BLACKLIST_SWEEP_SECONDS)
    )

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="E-commerce administration backend: authentication, sessions and permissions",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Rate limiting (login / password endpoints)
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
