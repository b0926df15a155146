from typing import Dict, Any, Optional, Tuple
import asyncio
import weakref
from datetime import timedelta
import structlog

from dualmode.config.settings import get_settings
from dualmode.domain.models.conversation import CacheEntry, Clock, utcnow

logger = structlog.get_logger(__name__)

CacheKey = Tuple[str, str]


class CacheMemoryStore:
    """In-memory summary cache keyed by (fingerprint, user_id) with lazy TTL checks"""

    def __init__(self, ttl_seconds: Optional[int] = None, clock: Optional[Clock] = None):
        if ttl_seconds is None:
            ttl_seconds = get_settings().cache_ttl_seconds
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or utcnow
        self.cache: Dict[CacheKey, Any] = {}
        self._lock = asyncio.Lock()
        # Dropped automatically once no coroutine holds or waits on them
        self._key_locks: "weakref.WeakValueDictionary[CacheKey, asyncio.Lock]" = weakref.WeakValueDictionary()

    def is_valid(self, entry: Any) -> bool:
        """An entry is valid while it is younger than the TTL"""

        if not isinstance(entry, CacheEntry):
            return False

        return (self.clock() - entry.created_at) < self.ttl

    def key_lock(self, fingerprint: str, user_id: str) -> asyncio.Lock:
        """Lock guarding read-modify-write of one (fingerprint, user_id) entry"""

        key = (fingerprint, user_id)
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock

    async def get(self, fingerprint: str, user_id: str) -> Optional[CacheEntry]:
        """Get entry for this user if present, well formed and not expired"""

        key = (fingerprint, user_id)

        async with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                return None

            if not self._is_well_formed(entry, fingerprint, user_id):
                logger.warning("Discarding corrupted cache entry", fingerprint=fingerprint, user_id=user_id)
                del self.cache[key]
                return None

            if not self.is_valid(entry):
                logger.info("Cache entry expired", fingerprint=fingerprint, user_id=user_id)
                del self.cache[key]
                return None

            return entry

    async def put(self, entry: CacheEntry) -> None:
        """Store an entry under its own fingerprint and owner"""

        async with self._lock:
            self.cache[(entry.fingerprint, entry.owner_user_id)] = entry

    async def delete(self, fingerprint: str, user_id: str) -> bool:
        """Delete one user's entry"""

        async with self._lock:
            key = (fingerprint, user_id)
            if key in self.cache:
                del self.cache[key]
                return True
            return False

    async def clear_expired(self) -> int:
        """Clear expired or corrupted entries and return count"""

        async with self._lock:
            expired_keys = [
                key for key, entry in self.cache.items()
                if not self._is_well_formed(entry, *key) or not self.is_valid(entry)
            ]

            for key in expired_keys:
                del self.cache[key]

            return len(expired_keys)

    async def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""

        async with self._lock:
            active_count = sum(1 for entry in self.cache.values() if self.is_valid(entry))

            return {
                "total_keys": len(self.cache),
                "active_keys": active_count,
                "expired_keys": len(self.cache) - active_count
            }

    @staticmethod
    def _is_well_formed(entry: Any, fingerprint: str, user_id: str) -> bool:
        return (
            isinstance(entry, CacheEntry)
            and entry.fingerprint == fingerprint
            and entry.owner_user_id == user_id
            and (entry.summary is None or isinstance(entry.summary, str))
        )
