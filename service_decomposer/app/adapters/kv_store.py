"""
Key-value store adapter backed by Redis.

Exposes the small get/put-with-TTL contract the quota and cache layers are
written against. Values are JSON documents. There is no transactional
read-modify-write; callers that read then write accept lost updates.
"""

import json
from typing import Any, Optional

import redis.asyncio as redis

from shared.logging import get_logger


class RedisKVStore:
    """JSON documents with per-key expiry in Redis."""

    def __init__(self, redis_url: str, *, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.logger = get_logger("decomposer.kv_store")
        self._redis: Optional[redis.Redis] = client

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        return self._redis

    async def get_json(self, key: str) -> Optional[Any]:
        """Return the decoded document stored under ``key``, or ``None``."""
        redis_client = await self._get_redis()
        raw = await redis_client.get(key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    async def put_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value`` under ``key``, expiring after ``ttl_seconds``."""
        redis_client = await self._get_redis()
        await redis_client.set(key, json.dumps(value, separators=(",", ":")), ex=ttl_seconds)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis connection closed")
