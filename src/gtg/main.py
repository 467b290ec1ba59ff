"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from gtg.activities.router import router as activities_router
from gtg.community.router import router as community_router
from gtg.config import get_settings
from gtg.database import close_db, get_session_factory, init_db
from gtg.events.router import router as events_router
from gtg.gamification.router import router as gamification_router
from gtg.gamification.seed import seed_reference_data
from gtg.health.router import router as health_router
from gtg.middleware import setup_middleware
from gtg.redis_client import close_redis, init_redis
from gtg.social.router import router as social_router
from gtg.users.router import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed activity types, milestones, badges and category mappings (idempotent)
    if settings.seed_on_startup:
        try:
            async with get_session_factory()() as db:
                await seed_reference_data(db)
        except Exception:
            logger.warning("Reference data seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Go Touch Grass API",
        description="Backend API for Go Touch Grass: outdoor activity logging, badges, follows and local events",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(users_router)
    app.include_router(activities_router)
    app.include_router(social_router)
    app.include_router(gamification_router)
    app.include_router(events_router)
    app.include_router(community_router)

    return app


app = create_app()
