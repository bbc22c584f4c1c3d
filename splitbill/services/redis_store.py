"""Redis-backed state shared by every API worker.

One client serves both the idempotency cache for bill creation and the
change feed (see ``change_feed``). Redis is never the source of truth:
every operation here degrades to a logged warning when Redis is down.
"""
import logging
from typing import Optional

import redis.asyncio as redis

from splitbill.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

IDEMPOTENCY_PREFIX = "idempotency"
IDEMPOTENCY_TTL = 86400  # 24 hours
# Holds a key while the first request with it is still running
PENDING_MARKER = "__pending__"
IDEMPOTENCY_PENDING_TTL = 60


def idempotency_key(scope: str, key: str) -> str:
    """Namespaced Redis key, e.g. ``idempotency:bill:<client key>``"""
    return f"{IDEMPOTENCY_PREFIX}:{scope}:{key}"


class RedisStore:
    """Shared Redis client plus the idempotent-response cache"""

    _client: Optional[redis.Redis] = None

    @classmethod
    async def get_client(cls) -> redis.Redis:
        """
        Get or create the Redis client singleton.

        Returns:
            Redis client decoding replies to str
        """
        if cls._client is None:
            cls._client = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=settings.redis_connect_timeout,
            )
        return cls._client

    @classmethod
    async def close(cls) -> None:
        if cls._client:
            await cls._client.aclose()
            cls._client = None

    @classmethod
    async def ping(cls) -> bool:
        """True if Redis answers a PING"""
        try:
            client = await cls.get_client()
            return bool(await client.ping())
        except Exception as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    @classmethod
    async def recall_response(cls, scope: str, key: str) -> Optional[str]:
        """
        Look up the response stored for an idempotency key.

        Args:
            scope: Operation the key belongs to, e.g. "bill"
            key: Client-supplied Idempotency-Key

        Returns:
            The stored JSON response, or None on a miss or when Redis is down
        """
        try:
            client = await cls.get_client()
            return await client.get(idempotency_key(scope, key))
        except Exception as e:
            logger.warning("Idempotency lookup failed for %s key '%s': %s", scope, key, e)
            return None

    @classmethod
    async def reserve(cls, scope: str, key: str, ttl: int = IDEMPOTENCY_PENDING_TTL) -> bool:
        """
        Mark an idempotency key as in progress unless it is already taken.

        Only the request that wins the reservation goes on to do the work;
        the marker expires on its own if that request dies midway. When
        Redis is down the request proceeds unprotected.

        Returns:
            True if this call holds the key
        """
        try:
            client = await cls.get_client()
            return bool(await client.set(idempotency_key(scope, key), PENDING_MARKER, ex=ttl, nx=True))
        except Exception as e:
            logger.warning("Idempotency reserve failed for %s key '%s': %s", scope, key, e)
            return True

    @classmethod
    async def release(cls, scope: str, key: str) -> None:
        """Drop a reservation so a failed request can be retried with the same key"""
        try:
            client = await cls.get_client()
            await client.delete(idempotency_key(scope, key))
        except Exception as e:
            logger.warning("Idempotency release failed for %s key '%s': %s", scope, key, e)

    @classmethod
    async def remember_response(
        cls, scope: str, key: str, payload: str, ttl: int = IDEMPOTENCY_TTL
    ) -> bool:
        """
        Store the response for a reserved idempotency key.

        Replaces the in-progress marker; repeats of the request replay it.

        Returns:
            True if the payload was stored
        """
        try:
            client = await cls.get_client()
            await client.set(idempotency_key(scope, key), payload, ex=ttl)
            return True
        except Exception as e:
            logger.warning("Idempotency store failed for %s key '%s': %s", scope, key, e)
            return False
