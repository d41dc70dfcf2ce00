"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mastery.config import get_settings
from mastery.database import close_db, get_session_factory, init_db
from mastery.gamification.catalog import AchievementCatalog, load_default_catalog
from mastery.gamification.router import router as progress_router
from mastery.gamification.seed import sync_catalog, validate_catalog
from mastery.health.router import router as health_router
from mastery.middleware import setup_middleware
from mastery.redis_client import close_redis, init_redis
from mastery.scheduler.router import router as cards_router

logger = logging.getLogger(__name__)


async def prepare_catalog(catalog: AchievementCatalog, mode: str) -> None:
    """Mirror the catalog into storage ("sync") or refuse to start on drift ("validate")."""
    async with get_session_factory()() as db:
        if mode == "validate":
            await validate_catalog(db, catalog)
        elif mode == "sync":
            await sync_catalog(db, catalog)
        else:
            msg = f"Unknown catalog_sync_mode: {mode!r}"
            raise ValueError(msg)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_enabled:
        await init_redis(settings.redis_url)

    await prepare_catalog(app.state.catalog, settings.catalog_sync_mode)
    logger.info("Mastery engine started (catalog %s)", app.state.catalog.version)

    yield

    await close_db()
    await close_redis()


def create_app(catalog: AchievementCatalog | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Mastery Engine API",
        description="Spaced repetition scheduling, progress tracking and achievements",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.catalog = catalog if catalog is not None else load_default_catalog()

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(progress_router)
    app.include_router(cards_router)

    return app


app = create_app()
