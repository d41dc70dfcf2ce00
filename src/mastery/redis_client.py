"""Optional Redis client used for progress notifications.

Nothing here is required for correctness: when Redis is disabled or down,
events are dropped and the write that produced them still commits.
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

ACHIEVEMENT_UNLOCKED_CHANNEL = "pubsub:achievement_unlocked"
LEVEL_UP_CHANNEL = "pubsub:level_up"

_client: redis.Redis | None = None


async def init_redis(url: str) -> None:
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    logger.info("Redis notifications enabled")


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis_or_none() -> redis.Redis | None:
    """Current client, or None when notifications are disabled."""
    return _client


async def publish_event(client: Any, channel: str, payload: dict[str, Any]) -> bool:
    """Publish ``payload`` as JSON on ``channel``. Returns False when nothing was sent."""
    if client is None:
        return False
    try:
        await client.publish(channel, json.dumps(payload))
    except Exception:
        logger.warning("Failed to publish %s", channel, exc_info=True)
        return False
    return True
