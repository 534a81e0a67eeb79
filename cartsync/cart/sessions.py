"""Per-session synchronizers for the HTTP surface."""
import asyncio
import os
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional

from cartsync.config import (
    DEFAULT_SESSION_IDLE_TTL,
    DEFAULT_SESSION_MAX_ENTRIES,
    ENV_SESSION_IDLE_TTL,
    ENV_SESSION_MAX_ENTRIES,
)
from cartsync.logging import get_logger, sanitize_id_for_logging
from .service import CheckoutClient, CheckoutSynchronizer, InitState
from .storage import PersistenceAdapter, RedisPersistence

logger = get_logger(__name__)

_READY = (InitState.FETCHED, InitState.CREATED)


@dataclass
class _Session:
    sync: CheckoutSynchronizer
    last_access: float
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class SessionRegistry:
    """
    Holds one initialized ``CheckoutSynchronizer`` per browser session.

    All sessions share one checkout client. The remembered checkout id is
    stored per session, so a reload with the same session resumes its cart.

    Features:
    - Initialization is serialized per session only
    - Sessions idle longer than CART_SESSION_IDLE_TTL are dropped
    - At most CART_SESSION_MAX_ENTRIES sessions are held (least recently used go first)

    A dropped session resumes its checkout from storage on its next request.
    """

    def __init__(
        self,
        client: CheckoutClient,
        persistence_factory: Callable[[str], PersistenceAdapter] = RedisPersistence,
        max_sessions: Optional[int] = None,
        idle_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.persistence_factory = persistence_factory
        if max_sessions is None:
            max_sessions = int(os.environ.get(ENV_SESSION_MAX_ENTRIES, DEFAULT_SESSION_MAX_ENTRIES))
        if idle_ttl is None:
            idle_ttl = float(os.environ.get(ENV_SESSION_IDLE_TTL, DEFAULT_SESSION_IDLE_TTL))
        self.max_sessions = max_sessions
        self.idle_ttl = idle_ttl
        self._clock = clock
        self._sessions: "OrderedDict[str, _Session]" = OrderedDict()

    async def get(self, session_id: str) -> CheckoutSynchronizer:
        """
        Return the session's synchronizer, initializing it on first use.

        Concurrent requests for a session that is still initializing wait
        for that initialization. A session whose initialization failed is
        initialized again on the next request.
        """
        session = self._checkout_session(session_id)
        if session.sync.init_state in _READY:
            return session.sync

        async with session.lock:
            if session.sync.init_state not in _READY:
                await session.sync.initialize()
        return session.sync

    def _checkout_session(self, session_id: str) -> _Session:
        now = self._clock()
        self._evict_idle(now)

        session = self._sessions.get(session_id)
        if session is None:
            self._evict_overflow(reserve=1)
            sync = CheckoutSynchronizer(self.client, self.persistence_factory(session_id))
            session = _Session(sync=sync, last_access=now)
            self._sessions[session_id] = session
            logger.info(f"Cart session {sanitize_id_for_logging(session_id)} started")
        else:
            session.last_access = now
            self._sessions.move_to_end(session_id)
        return session

    def _evict_idle(self, now: float) -> None:
        # Entries are kept in access order, so idle ones sit at the front
        for session_id, session in list(self._sessions.items()):
            if now - session.last_access < self.idle_ttl:
                break
            if not session.lock.locked():
                self._drop(session_id, "idle")

    def _evict_overflow(self, reserve: int) -> None:
        """Drop least recently used sessions until ``reserve`` new ones fit."""
        overflow = len(self._sessions) + reserve - self.max_sessions
        for session_id, session in list(self._sessions.items()):
            if overflow <= 0:
                break
            if not session.lock.locked():
                self._drop(session_id, "capacity")
                overflow -= 1

    def _drop(self, session_id: str, reason: str) -> None:
        del self._sessions[session_id]
        logger.debug(f"Cart session {sanitize_id_for_logging(session_id)} evicted ({reason})")
