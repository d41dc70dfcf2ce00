"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.config import get_settings
from mastery.database import get_session
from mastery.db.models import AchievementDefinitionRow
from mastery.redis_client import get_redis_or_none

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe — returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    request: Request,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe — database, catalog mirror and (if enabled) Redis."""
    checks: dict[str, object] = {}

    try:
        await db.execute(text("SELECT 1"))
        stored = (await db.execute(select(func.count()).select_from(AchievementDefinitionRow))).scalar_one()
        checks["database"] = "ok"
        expected = len(request.app.state.catalog)
        checks["catalog"] = "ok" if stored == expected else f"stale: {stored}/{expected} definitions stored"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    redis = get_redis_or_none()
    if redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    all_ok = all(v in ("ok", "disabled") for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version(request: Request) -> dict[str, str]:
    """Return service version, environment and achievement catalog version."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
        "catalog_version": request.app.state.catalog.version,
    }
