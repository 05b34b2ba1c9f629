# shrnq/db/kv.py
"""
Key-value store holding the slug -> destination URL mapping.

The store is a flat string map. Every operation is a live round trip to Redis;
driver errors surface as StoreUnavailableError so routes can answer with a
generic 500 instead of a default value.
"""

import logging
from abc import ABC, abstractmethod

from fastapi import Request
from redis.asyncio import Redis
from redis.exceptions import RedisError

from shrnq.core.log_utils import sanitize_for_log
from shrnq.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)


class KVStore(ABC):
    """Async get/put/delete over opaque string keys and values."""

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def put(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def put_if_absent(self, key: str, value: str) -> bool:
        """Atomically write ``value`` unless ``key`` exists. Returns True if written."""

    @abstractmethod
    async def delete(self, key: str) -> None: ...


class RedisKVStore(KVStore):
    def __init__(self, redis: Redis, namespace: str = "") -> None:
        self._redis = redis
        self._prefix = f"{namespace}:" if namespace else ""

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        try:
            value = await self._redis.get(self._key(key))
        except RedisError as e:
            logger.exception("KV get failed for key %s", sanitize_for_log(key))
            raise StoreUnavailableError() from e
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else str(value)

    async def put(self, key: str, value: str) -> None:
        try:
            await self._redis.set(self._key(key), value)
        except RedisError as e:
            logger.exception("KV put failed for key %s", sanitize_for_log(key))
            raise StoreUnavailableError() from e

    async def put_if_absent(self, key: str, value: str) -> bool:
        try:
            written = await self._redis.set(self._key(key), value, nx=True)
        except RedisError as e:
            logger.exception("KV conditional put failed for key %s", sanitize_for_log(key))
            raise StoreUnavailableError() from e
        return bool(written)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
        except RedisError as e:
            logger.exception("KV delete failed for key %s", sanitize_for_log(key))
            raise StoreUnavailableError() from e


def create_redis(url: str) -> Redis:
    return Redis.from_url(url, decode_responses=True)


async def get_kv_store(request: Request) -> KVStore:
    """Dependency returning the slug store bound to the app's Redis client."""
    redis: Redis | None = getattr(request.app.state, "redis", None)
    if redis is None:
        raise RuntimeError("Redis client is not initialized. Ensure the lifespan hook ran.")
    return RedisKVStore(redis, namespace=request.app.state.settings.KV_NAMESPACE)
