"""
Webhook delivery de-duplication.

Stripe retries deliveries; each event id is recorded in Redis for 24h so an
exact re-delivery is acknowledged without being processed again. When
processing fails the record is dropped again, so the provider's retry goes
through. The transitions themselves are idempotent, so when Redis is
unreachable the event is simply processed.
"""

import logging

import redis.asyncio as aioredis

from config import settings

logger = logging.getLogger(__name__)

_redis: aioredis.Redis | None = None

KEY_PREFIX = "webhook:stripe:"


async def get_redis() -> aioredis.Redis:
    """Singleton Redis connection."""
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis


async def first_delivery(event_id: str | None) -> bool:
    """True the first time an event id is seen (or when it cannot be checked)."""
    if not event_id:
        return True
    try:
        r = await get_redis()
        created = await r.set(
            f"{KEY_PREFIX}{event_id}", "1",
            nx=True, ex=settings.WEBHOOK_DEDUPE_TTL_SEC,
        )
    except aioredis.RedisError as e:
        logger.warning("Webhook dedupe unavailable, processing %s anyway: %s", event_id, e)
        return True
    return bool(created)


async def forget_delivery(event_id: str | None) -> None:
    """Drop the record for an event whose processing failed, so the provider's retry is handled."""
    if not event_id:
        return
    try:
        r = await get_redis()
        await r.delete(f"{KEY_PREFIX}{event_id}")
    except aioredis.RedisError as e:
        logger.error("Could not release webhook event %s for retry: %s", event_id, e)
