"""Shared FastAPI dependencies."""

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.database import get_session as _get_session
from mastery.gamification.achievement_service import AchievementEngine
from mastery.gamification.catalog import AchievementCatalog
from mastery.redis_client import get_redis_or_none

get_db = _get_session

MAX_USER_ID_LENGTH = 64


def get_redis_dep() -> object:
    """Redis client for best-effort publishing, or None when disabled."""
    return get_redis_or_none()


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """User id asserted by the upstream auth gateway in ``X-User-Id``."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    if len(x_user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(status_code=400, detail="X-User-Id too long")
    return x_user_id.strip()


def get_catalog(request: Request) -> AchievementCatalog:
    """The achievement catalog loaded at startup."""
    return request.app.state.catalog


def get_achievement_engine(
    db: AsyncSession = Depends(get_db),  # noqa: B008
    catalog: AchievementCatalog = Depends(get_catalog),  # noqa: B008
    redis: object = Depends(get_redis_dep),  # noqa: B008
) -> AchievementEngine:
    return AchievementEngine(db, catalog, redis)
