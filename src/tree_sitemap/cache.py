"""Keyed, TTL-based caching of built sitemap documents."""

import asyncio
import logging
import os
import time
from typing import Callable, Dict, Optional, Protocol, Tuple
import aiosqlite
from .errors import ProviderError
from .types import SitemapConfig

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    """Storage for serialized sitemap documents."""

    async def get(self, key: str, ttl: int) -> Optional[bytes]: ...

    async def set(self, key: str, body: bytes, ttl: Optional[int] = None) -> None: ...

    async def invalidate(self, key: str) -> None: ...

    async def clear(self) -> None: ...


def _expired(age: float, read_ttl: int, stored_ttl: Optional[int]) -> bool:
    if age >= read_ttl:
        return True
    return stored_ttl is not None and age >= stored_ttl


class MemoryCacheStore:
    """Process-local cache store. Expiry is checked when an entry is read."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._entries: Dict[str, Tuple[bytes, float, Optional[int]]] = {}

    async def get(self, key: str, ttl: int) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        body, created_at, stored_ttl = entry
        if _expired(self.clock() - created_at, ttl, stored_ttl):
            self._entries.pop(key, None)
            return None
        return body

    async def set(self, key: str, body: bytes, ttl: Optional[int] = None) -> None:
        self._entries[key] = (body, self.clock(), ttl)

    async def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries


class SQLiteCacheStore:
    """Cache store persisted in a SQLite database."""

    def __init__(self, database_path: str, clock: Callable[[], float] = time.time):
        self.database_path = database_path
        self.clock = clock
        self._initialized = False
        self._ensure_database_directory()

    def _ensure_database_directory(self) -> None:
        """Ensure the database directory exists."""
        db_dir = os.path.dirname(self.database_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    async def initialize(self) -> None:
        """Initialize the cache table."""
        async with aiosqlite.connect(self.database_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS sitemap_cache (
                    key TEXT PRIMARY KEY,
                    body BLOB NOT NULL,
                    created_at REAL NOT NULL,
                    ttl INTEGER
                )
            """)
            await db.commit()
        self._initialized = True
        logger.debug(f"Sitemap cache initialized at {self.database_path}")

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    async def get(self, key: str, ttl: int) -> Optional[bytes]:
        await self._ensure_initialized()
        async with aiosqlite.connect(self.database_path) as db:
            cursor = await db.execute(
                "SELECT body, created_at, ttl FROM sitemap_cache WHERE key = ?", (key,)
            )
            row = await cursor.fetchone()

            if row is None:
                return None

            body, created_at, stored_ttl = row
            if _expired(self.clock() - created_at, ttl, stored_ttl):
                await db.execute("DELETE FROM sitemap_cache WHERE key = ?", (key,))
                await db.commit()
                return None

            return bytes(body)

    async def set(self, key: str, body: bytes, ttl: Optional[int] = None) -> None:
        await self._ensure_initialized()
        async with aiosqlite.connect(self.database_path) as db:
            await db.execute("""
                INSERT OR REPLACE INTO sitemap_cache (key, body, created_at, ttl)
                VALUES (?, ?, ?, ?)
            """, (key, body, self.clock(), ttl))
            await db.commit()

    async def invalidate(self, key: str) -> None:
        await self._ensure_initialized()
        async with aiosqlite.connect(self.database_path) as db:
            await db.execute("DELETE FROM sitemap_cache WHERE key = ?", (key,))
            await db.commit()
        logger.info(f"Invalidated cached sitemap '{key}'")

    async def clear(self) -> None:
        await self._ensure_initialized()
        async with aiosqlite.connect(self.database_path) as db:
            await db.execute("DELETE FROM sitemap_cache")
            await db.commit()
        logger.info("Cleared sitemap cache")


def create_cache_store(config: SitemapConfig) -> Optional[CacheStore]:
    """Factory function to create the configured cache store."""
    if config.cache_method == "sqlite":
        return SQLiteCacheStore(config.cache_path)
    if config.cache_method == "memory":
        return MemoryCacheStore()
    return None


class CacheManager:
    """
    Serves sitemap documents from a cache store, building them on a miss.

    Two requests missing the same key at the same time both build and both
    write (last write wins) unless single_flight is enabled, in which case a
    per-key lock serializes the miss path.
    """

    def __init__(
        self,
        store: Optional[CacheStore],
        ttl: int = 3600,
        debug: bool = False,
        single_flight: bool = False
    ):
        self.store = store
        self.ttl = ttl
        self.debug = debug
        self.single_flight = single_flight
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @classmethod
    def from_config(cls, config: SitemapConfig) -> "CacheManager":
        return cls(
            store=create_cache_store(config),
            ttl=config.cache_ttl,
            debug=config.debug,
            single_flight=config.single_flight,
        )

    async def get_or_build(
        self,
        key: str,
        build: Callable[[], bytes],
        ttl: Optional[int] = None,
        debug_bypass: Optional[bool] = None
    ) -> Tuple[bytes, bool]:
        """
        Return the cached document for key, or build and store it.

        Args:
            key: Cache key
            build: Produces the complete document
            ttl: Seconds a cached document stays valid (manager default if None)
            debug_bypass: Always build and never touch the store

        Returns:
            Tuple of (document, served_from_cache)
        """
        ttl = self.ttl if ttl is None else ttl
        bypass = self.debug if debug_bypass is None else debug_bypass

        if bypass or self.store is None:
            logger.debug(f"Cache bypassed for '{key}'")
            return build(), False

        cached = await self._read(key, ttl)
        if cached is not None:
            logger.debug(f"Cache hit for '{key}'")
            return cached, True

        if not self.single_flight:
            return await self._build_and_store(key, build, ttl), False

        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                cached = await self._read(key, ttl)
                if cached is not None:
                    logger.debug(f"Cache hit for '{key}' after waiting for a concurrent build")
                    return cached, True
                return await self._build_and_store(key, build, ttl), False
        finally:
            # Drop the lock once no request holds or waits on it
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def _read(self, key: str, ttl: int) -> Optional[bytes]:
        try:
            return await self.store.get(key, ttl)
        except Exception as e:
            logger.warning(f"Cache read failed for '{key}', rebuilding: {e}")
            return None

    async def _build_and_store(self, key: str, build: Callable[[], bytes], ttl: int) -> bytes:
        logger.info(f"Cache miss for '{key}', building sitemap")
        output = build()

        try:
            await self.store.set(key, output, ttl)
        except Exception as e:
            logger.error(f"Cache write failed for '{key}': {e}")
            raise ProviderError(f"Could not store sitemap '{key}': {e}") from e

        return output

    async def invalidate(self, key: str) -> None:
        """Evict the cached document for key. A missing entry is a no-op."""
        if self.store is None:
            return
        try:
            await self.store.invalidate(key)
        except Exception as e:
            logger.error(f"Cache invalidation failed for '{key}': {e}")
            raise ProviderError(f"Could not invalidate sitemap '{key}': {e}") from e
