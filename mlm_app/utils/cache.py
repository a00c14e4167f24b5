"""
Redis cache service.

TTL-bounded read cache for downline and transaction listings, with explicit
invalidation hooks fired by the write paths. Every read is also mirrored to
a long-lived "last known" key that degraded reads may fall back to.

Cache failures never fail the caller: they are logged and treated as a miss.
"""

import json
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError

from mlm_app.config.constants import (
    CACHE_KEY_ALL_DOWNLINE,
    CACHE_KEY_DIRECT_DOWNLINE,
    CACHE_KEY_LAST_KNOWN_PREFIX,
    CACHE_KEY_TRANSACTIONS,
    DOWNLINE_CACHE_TTL_SECONDS,
    LAST_KNOWN_CACHE_TTL_SECONDS,
    TRANSACTION_CACHE_TTL_SECONDS,
)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def get_redis_client() -> redis.Redis:
    """
    Create a Redis client with settings from config.

    Returns:
        redis.Redis: Configured client with decode_responses=True
    """
    from mlm_app.config.settings import settings

    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
        decode_responses=True,
    )


class CacheService:
    """Service for caching operations using Redis."""

    def __init__(
        self,
        redis_client: redis.Redis | None,
        downline_ttl: int = DOWNLINE_CACHE_TTL_SECONDS,
        transaction_ttl: int = TRANSACTION_CACHE_TTL_SECONDS,
        last_known_ttl: int = LAST_KNOWN_CACHE_TTL_SECONDS,
    ) -> None:
        """
        Initialize cache service.

        Args:
            redis_client: Redis client, or None to disable caching
            downline_ttl: Freshness window for downline entries (seconds)
            transaction_ttl: Freshness window for transaction listings (seconds)
            last_known_ttl: Lifetime of degraded-read copies (seconds)
        """
        self.redis = redis_client
        self.downline_ttl = downline_ttl
        self.transaction_ttl = transaction_ttl
        self.last_known_ttl = last_known_ttl

    @classmethod
    def from_settings(cls) -> "CacheService":
        """Build a cache service wired to the configured Redis."""
        from mlm_app.config.settings import settings

        return cls(
            get_redis_client(),
            downline_ttl=settings.downline_cache_ttl,
            last_known_ttl=settings.last_known_cache_ttl,
        )

    # ----- Generic operations -----

    async def get(self, key: str) -> Any | None:
        """Get value from cache (None on miss or cache failure)."""
        if self.redis is None:
            return None
        try:
            data = await self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if data is None:
            return None
        return json.loads(data)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Set value in cache with TTL, plus its last-known copy."""
        if self.redis is None:
            return
        payload = json.dumps(value, default=_json_default, ensure_ascii=False)
        try:
            await self.redis.set(key, payload, ex=ttl)
            await self.redis.set(
                CACHE_KEY_LAST_KNOWN_PREFIX + key, payload, ex=self.last_known_ttl
            )
        except RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    async def get_last_known(self, key: str) -> Any | None:
        """Get the long-lived copy of a key for degraded reads."""
        return await self.get(CACHE_KEY_LAST_KNOWN_PREFIX + key)

    async def delete(self, *keys: str) -> None:
        """Delete keys (fresh copies only; last-known copies stay)."""
        if self.redis is None or not keys:
            return
        try:
            deleted = await self.redis.delete(*keys)
            if deleted:
                logger.debug(
                    f"Cache invalidated: {deleted} key(s)",
                    extra={"keys": list(keys)},
                )
        except RedisError as e:
            logger.warning(
                f"Failed to invalidate cache: {e}", extra={"keys": list(keys)}
            )

    # ----- Downline -----

    @staticmethod
    def direct_downline_key(user_id: str) -> str:
        return CACHE_KEY_DIRECT_DOWNLINE.format(user_id=user_id)

    @staticmethod
    def all_downline_key(user_id: str) -> str:
        return CACHE_KEY_ALL_DOWNLINE.format(user_id=user_id)

    async def invalidate_downline(self, user_ids: Iterable[str]) -> None:
        """Invalidate direct and transitive downline entries of the given users."""
        keys: list[str] = []
        for user_id in user_ids:
            keys.append(self.direct_downline_key(user_id))
            keys.append(self.all_downline_key(user_id))
        await self.delete(*keys)

    # ----- Transactions -----

    @staticmethod
    def transactions_key(user_id: str) -> str:
        return CACHE_KEY_TRANSACTIONS.format(user_id=user_id)

    async def invalidate_transactions(self, user_ids: Iterable[str]) -> None:
        """Invalidate cached transaction listings of the given users."""
        await self.delete(*(self.transactions_key(uid) for uid in set(user_ids)))

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis is not None:
            await self.redis.aclose()
