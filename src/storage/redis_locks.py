"""Redis-based locks guarding payment initiation."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import UUID

import redis.asyncio as redis


class RedisLockHelper:
    """Helper for Redis-based distributed locking."""

    def __init__(self, redis_url: str, ttl_seconds: int = 30):
        """Initialize Redis lock helper."""
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Establish Redis connection."""
        self._client = redis.from_url(self.redis_url, encoding="utf-8")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def ping(self) -> bool:
        """Round-trip check used by the health endpoint."""
        if not self._client:
            return False
        return bool(await self._client.ping())

    @staticmethod
    def payment_lock_key(business_id: UUID, period: str) -> str:
        return f"licensing:lock:payment:{business_id}:{period}"

    @asynccontextmanager
    async def acquire_payment_lock(
        self, business_id: UUID, period: str
    ) -> AsyncGenerator[bool, None]:
        """Hold an initiation lock for one (business, fee period).

        Yields False when another initiation holds it. The lock expires on
        its own after the TTL if the holder dies.
        """
        if not self._client:
            raise RuntimeError("Redis client not connected")

        lock_key = self.payment_lock_key(business_id, period)
        acquired = False

        try:
            acquired = await self._client.set(
                lock_key, "1", ex=self.ttl_seconds, nx=True
            )
            yield bool(acquired)
        finally:
            if acquired:
                await self._client.delete(lock_key)
