"""
Permission Cache

Optional Redis read-through cache for the two permission sources:

- ``perm:job:<job_id>``   JSON list of permission ids granted to the job
- ``perm:user:<user_id>`` JSON object of the user's exceptions {id: allowed}

Entries are invalidated right after every committed write to the matching
job or user.  Each entry has a companion ``<key>:version`` counter that
invalidation bumps; a reader fills the cache only if the counter is unchanged
since before it queried the store, so a fill can never resurrect rows that a
concurrent write removed.

When no Redis URL is configured, or Redis cannot be reached, every lookup is
a miss and every write is a no-op.
"""

import json
import logging
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from portal_authz.config import settings

logger = logging.getLogger(__name__)


class PermissionCache:
    PREFIX_JOB = "perm:job:"
    PREFIX_USER = "perm:user:"

    def __init__(
        self,
        redis_url: str | None = None,
        ttl: int | None = None,
        client: redis.Redis | None = None,
    ):
        self._redis_url = redis_url
        self._redis: redis.Redis | None = client
        self._enabled = bool(redis_url) or client is not None
        self.ttl = ttl if ttl is not None else settings.permission_cache_ttl

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def connect(self) -> None:
        """Connect to Redis; disables the cache if the server is unreachable."""
        if not self._enabled or self._redis is not None:
            return
        try:
            self._redis = redis.from_url(self._redis_url, decode_responses=True)
            await self._redis.ping()
            logger.info("Permission cache: connected to Redis")
        except RedisError as e:
            logger.warning(f"Permission cache: failed to connect to Redis: {e}. Caching disabled.")
            self._redis = None
            self._enabled = False

    async def disconnect(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    # ── Low-level helpers ────────────────────────────────────────────────────

    @staticmethod
    def _version_key(key: str) -> str:
        return f"{key}:version"

    async def _get(self, key: str) -> Any | None:
        if not self._enabled or self._redis is None:
            return None
        try:
            raw = await self._redis.get(key)
        except RedisError as e:
            logger.warning(f"Permission cache: get failed for {key}: {e}")
            return None
        if raw is None:
            logger.debug(f"Permission cache miss: {key}")
            return None
        logger.debug(f"Permission cache hit: {key}")
        return json.loads(raw)

    async def _version(self, key: str) -> str | None:
        if not self._enabled or self._redis is None:
            return None
        try:
            return await self._redis.get(self._version_key(key))
        except RedisError as e:
            logger.warning(f"Permission cache: version read failed for {key}: {e}")
            return None

    async def _set(self, key: str, value: Any, version: str | None) -> None:
        """
        Fill *key* only if it has not been invalidated since *version* was read.

        The version key is WATCHed, so an invalidation that lands between the
        check and the SET aborts the transaction instead of caching stale data.
        """
        if not self._enabled or self._redis is None:
            return
        version_key = self._version_key(key)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(version_key)
                if await pipe.get(version_key) != version:
                    logger.debug(f"Permission cache: dropped stale fill for {key}")
                    return
                pipe.multi()
                pipe.set(key, json.dumps(value), ex=self.ttl)
                await pipe.execute()
        except WatchError:
            logger.debug(f"Permission cache: {key} invalidated during fill")
        except RedisError as e:
            logger.warning(f"Permission cache: set failed for {key}: {e}")

    async def _invalidate(self, key: str) -> None:
        if not self._enabled or self._redis is None:
            return
        try:
            # Bump first so a fill already in flight is rejected
            await self._redis.incr(self._version_key(key))
            await self._redis.delete(key)
        except RedisError as e:
            logger.warning(f"Permission cache: invalidate failed for {key}: {e}")

    # ── Job grants ───────────────────────────────────────────────────────────

    async def job_version(self, job_id: int) -> str | None:
        """Token to pass to set_job_grants; read it before querying the store."""
        return await self._version(f"{self.PREFIX_JOB}{job_id}")

    async def get_job_grants(self, job_id: int) -> list[str] | None:
        return await self._get(f"{self.PREFIX_JOB}{job_id}")

    async def set_job_grants(self, job_id: int, permission_ids: list[str], version: str | None = None) -> None:
        await self._set(f"{self.PREFIX_JOB}{job_id}", permission_ids, version)

    async def invalidate_job(self, job_id: int) -> None:
        await self._invalidate(f"{self.PREFIX_JOB}{job_id}")

    # ── User exceptions ──────────────────────────────────────────────────────

    async def user_version(self, user_id: str) -> str | None:
        return await self._version(f"{self.PREFIX_USER}{user_id}")

    async def get_user_exceptions(self, user_id: str) -> dict[str, bool] | None:
        return await self._get(f"{self.PREFIX_USER}{user_id}")

    async def set_user_exceptions(
        self, user_id: str, exceptions: dict[str, bool], version: str | None = None
    ) -> None:
        await self._set(f"{self.PREFIX_USER}{user_id}", exceptions, version)

    async def invalidate_user(self, user_id: str) -> None:
        await self._invalidate(f"{self.PREFIX_USER}{user_id}")


permission_cache = PermissionCache(settings.redis_url)


async def get_permission_cache() -> PermissionCache:
    """FastAPI dependency returning the process-wide cache."""
    await permission_cache.connect()
    return permission_cache
