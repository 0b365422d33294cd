"""
Session Store

Ephemeral storage for lesson sessions.

- SessionStore: the interface the engine depends on
- InMemorySessionStore: dict-backed store with idle-TTL eviction and one
  asyncio.Lock per session key
- SessionSweeper: background task that periodically purges idle sessions
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, Optional, Protocol, Set

from adaptive_lesson_engine.session_state import LessonSessionState

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    async def get(self, key: str) -> Optional[LessonSessionState]: ...

    async def put(self, key: str, state: LessonSessionState) -> None: ...

    async def delete(self, key: str) -> bool: ...

    def lock(self, key: str) -> asyncio.Lock:
        """Lock serializing all operations on one session key."""
        ...


class InMemorySessionStore:
    """
    Keeps sessions in process memory.

    A session untouched for longer than ttl_seconds is treated as gone and
    removed on the next access or purge.
    """

    def __init__(self, ttl_seconds: float = 7200):
        """
        Args:
            ttl_seconds: Idle time after which a session is evicted (<= 0 disables eviction)
        """
        self.ttl_seconds = ttl_seconds
        self._sessions: Dict[str, LessonSessionState] = {}
        self._last_access: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _is_expired(self, key: str, now: float) -> bool:
        if self.ttl_seconds <= 0:
            return False
        return now - self._last_access.get(key, now) > self.ttl_seconds

    def _evict(self, key: str):
        self._sessions.pop(key, None)
        self._last_access.pop(key, None)
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    async def get(self, key: str) -> Optional[LessonSessionState]:
        now = time.monotonic()
        if key in self._sessions and self._is_expired(key, now):
            logger.info(f"⌛ [SessionStore] Session {key} expired")
            self._evict(key)
            return None
        state = self._sessions.get(key)
        if state is not None:
            self._last_access[key] = now
        return state

    async def put(self, key: str, state: LessonSessionState) -> None:
        self._sessions[key] = state
        self._last_access[key] = time.monotonic()

    async def delete(self, key: str) -> bool:
        existed = key in self._sessions
        self._evict(key)
        return existed

    def purge_expired(self) -> int:
        """
        Remove all idle sessions.

        Returns:
            Number of sessions evicted
        """
        now = time.monotonic()
        expired = [key for key in self._sessions if self._is_expired(key, now)]
        for key in expired:
            self._evict(key)
        # Locks of ended sessions that were held at deletion time
        for key in [k for k, lock in self._locks.items() if k not in self._sessions and not lock.locked()]:
            del self._locks[key]
        if expired:
            logger.info(f"🧹 [SessionStore] Evicted {len(expired)} idle session(s)")
        return len(expired)

    def active_user_ids(self) -> Set[str]:
        return {state.user_id for state in self._sessions.values()}

    def __len__(self) -> int:
        return len(self._sessions)


class LearnerScopedCache(Protocol):
    def forget_inactive(self, active_user_ids: Iterable[str]) -> int: ...


class SessionSweeper:
    """
    Background task that periodically purges idle sessions, then drops
    per-learner data (memory, context snapshots) of learners left without a
    live session.
    """

    def __init__(self, store: InMemorySessionStore, interval_seconds: float = 300,
                 learner_caches: Iterable[LearnerScopedCache] = ()):
        """
        Args:
            store: Store to sweep
            interval_seconds: Seconds between sweeps
            learner_caches: Per-learner caches pruned after each sweep
        """
        self.store = store
        self.interval_seconds = interval_seconds
        self.learner_caches = list(learner_caches)
        self.sweep_task: Optional[asyncio.Task] = None
        self.running = False
        self.last_sweep: Optional[float] = None
        self.total_evicted = 0

    async def start(self):
        """Start the sweep task."""
        if self.running:
            logger.warning("⚠️ [SessionSweeper] Sweeper already running")
            return

        self.running = True
        logger.info(f"🔄 [SessionSweeper] Starting session sweeper (interval: {self.interval_seconds}s)")
        self.sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self):
        """Stop the sweep task."""
        self.running = False
        if self.sweep_task:
            self.sweep_task.cancel()
            try:
                await self.sweep_task
            except asyncio.CancelledError:
                pass
            self.sweep_task = None
        logger.info("🛑 [SessionSweeper] Session sweeper stopped")

    def sweep_now(self) -> int:
        evicted = self.store.purge_expired()
        self.total_evicted += evicted
        if self.learner_caches:
            active = self.store.active_user_ids()
            forgotten = sum(cache.forget_inactive(active) for cache in self.learner_caches)
            if forgotten:
                logger.info(f"🧹 [SessionSweeper] Dropped {forgotten} inactive learner record(s)")
        self.last_sweep = time.time()
        return evicted

    async def _sweep_loop(self):
        while self.running:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.sweep_now()
            except Exception as e:
                logger.error(f"❌ [SessionSweeper] Error in sweep loop: {e}", exc_info=True)

    def get_status(self) -> dict:
        """Get sweeper status."""
        return {
            "running": self.running,
            "interval_seconds": self.interval_seconds,
            "last_sweep": self.last_sweep,
            "total_evicted": self.total_evicted,
            "active_sessions": len(self.store),
        }
