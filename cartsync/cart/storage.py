"""
Persistence adapters for the remembered checkout id.

Storage may be missing or disabled; that is a normal steady state, not an
error. Callers check ``is_available()`` before every ``get``/``set``.
"""
import os
from typing import Dict, Optional, Protocol

from cartsync.config import DEFAULT_CHECKOUT_ID_TTL, ENV_CHECKOUT_ID_TTL
from cartsync.db import RedisKeys, get_redis
from cartsync.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)


class PersistenceAdapter(Protocol):
    """Durable string storage keyed by a well-known name."""

    async def is_available(self) -> bool: ...

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...


class NullPersistence:
    """Storage that is never available."""

    async def is_available(self) -> bool:
        return False

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str) -> None:
        return None


class MemoryPersistence:
    """Process-local storage, for development and tests."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})

    async def is_available(self) -> bool:
        return True

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value


class RedisPersistence:
    """
    Upstash Redis storage scoped to one browser session.

    Features:
    - Availability checked once with PING and cached
    - Values expire after CHECKOUT_ID_TTL seconds
    - Read/write failures degrade to "absent" instead of failing the caller
    """

    def __init__(self, session_id: str, redis_client=None, ttl: Optional[int] = None):
        self.session_id = session_id
        self._redis = redis_client
        self._available: Optional[bool] = None
        if ttl is None:
            ttl = int(os.environ.get(ENV_CHECKOUT_ID_TTL, DEFAULT_CHECKOUT_ID_TTL))
        self.ttl = ttl

    @property
    def redis(self):
        """Get Redis client (lazy initialization); None when not configured."""
        if self._redis is None:
            try:
                self._redis = get_redis()
            except ValueError as e:
                logger.info(f"Checkout id storage disabled: {e}")
                return None
        return self._redis

    def _key(self, key: str) -> str:
        return RedisKeys.checkout_key(self.session_id, key)

    async def is_available(self) -> bool:
        if self._available is None:
            redis = self.redis
            if redis is None:
                self._available = False
            else:
                try:
                    await redis.ping()
                    self._available = True
                except Exception as e:
                    logger.warning(f"Redis ping failed, checkout id storage disabled: {e}")
                    self._available = False
        return self._available

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self.redis.get(self._key(key))
        except Exception as e:
            logger.warning(
                f"Failed to read {key} for session {sanitize_id_for_logging(self.session_id)}: {e}"
            )
            return None
        return value or None

    async def set(self, key: str, value: str) -> None:
        try:
            await self.redis.set(self._key(key), value, ex=self.ttl)
        except Exception as e:
            logger.warning(
                f"Failed to store {key} for session {sanitize_id_for_logging(self.session_id)}: {e}"
            )
