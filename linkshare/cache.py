"""
Redis store for dashboard feeds.

A feed is the grouped ``category -> [posts]`` mapping for one search text
and category filter, cached as JSON for ``CACHE_TTL_FEED`` seconds.  Any
committed post, vote or comment drops every feed at once; feeds are cheap
to rebuild and a vote can touch any of them.

Without a Redis connection every read misses and every write is dropped,
so the dashboard is served from the database alone.
"""
import hashlib
import json
import logging

import redis.asyncio as redis

from linkshare.config import settings

logger = logging.getLogger(__name__)

FEED_PREFIX = "posts:feed:"


class FeedCache:
    def __init__(self) -> None:
        self._redis: redis.Redis | None = None

    @property
    def available(self) -> bool:
        return self._redis is not None

    async def connect(self) -> None:
        """Open the pool at startup; an unreachable Redis disables caching."""
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, feed cache disabled: %s", exc)
            await client.aclose()
            return
        logger.info("Redis connected: %s", settings.REDIS_URL)
        self._redis = client

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @staticmethod
    def feed_key(search: str | None, category: str | None) -> str:
        """Key for one dashboard query; the free text is hashed."""
        raw = f"{search or ''}\x00{category or ''}"
        return FEED_PREFIX + hashlib.sha1(raw.encode("utf-8")).hexdigest()

    async def get(self, key: str) -> dict | None:
        if not self._redis:
            return None
        try:
            data = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Feed cache read failed for %r: %s", key, exc)
            return None
        return json.loads(data) if data is not None else None

    async def set(self, key: str, feed: dict, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(feed, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Feed cache write failed for %r: %s", key, exc)

    async def invalidate_posts(self) -> None:
        """Drop every cached feed.  Call only after the write has committed."""
        if not self._redis:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=FEED_PREFIX + "*")]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Dropped %d cached feed(s)", len(keys))
        except Exception as exc:
            logger.warning("Feed cache invalidation failed: %s", exc)


cache = FeedCache()
