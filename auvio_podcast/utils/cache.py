import json
import os
import sqlite3
import time
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Dict, Optional, TypeVar

from auvio_podcast.config.settings import Settings
from auvio_podcast.errors import DeadlineExceededError
from auvio_podcast.utils.deadline import Deadline

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheStore(ABC):
    """
    Key/value store shared by concurrent pipeline runs.
    Values must be JSON-serializable. A ttl of None means no expiry.
    """

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryCache(CacheStore):
    """
    Thread-safe in-memory cache with TTL (Time To Live) and LRU (Least Recently Used) eviction policy.
    """

    def __init__(self, max_size: int = 1000):
        self._cache = OrderedDict()
        self._max_size = max_size
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        """
        Get a value from cache if it exists and hasn't expired.
        Updates LRU position on hit.
        """
        with self._lock:
            if key in self._cache:
                value, expiry = self._cache[key]
                if expiry is None or time.time() < expiry:
                    self._cache.move_to_end(key)
                    return value
                del self._cache[key]
        return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Set a value in cache with TTL in seconds.
        Evicts least recently used item if cache is full.
        """
        with self._lock:
            expiry = None if ttl is None else time.time() + ttl
            if key in self._cache:
                self._cache.move_to_end(key)
            self._cache[key] = (value, expiry)
            if len(self._cache) > self._max_size:
                self._cache.popitem(last=False)

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class SqliteCache(CacheStore):
    """Durable cache in a single SQLite file; values are stored as JSON text"""

    def __init__(self, path: str):
        self.path = path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = Lock()

    def open(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        if not os.path.isdir(directory):
            logger.info(f"Creating directory {directory}")
            os.makedirs(directory, exist_ok=True)
        with self._lock:
            if self._conn is not None:
                return
            conn = sqlite3.connect(self.path, check_same_thread=False, timeout=30)
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv ("
                " key TEXT PRIMARY KEY,"
                " value TEXT NOT NULL,"
                " expires_at REAL"
                ")"
            )
            conn.commit()
            self._conn = conn
        logger.info(f"Opened cache store {self.path}")

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info(f"Closed cache store {self.path}")

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError(f"Cache store {self.path} is not open")
        return self._conn

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            conn = self._connection()
            row = conn.execute("SELECT value, expires_at FROM kv WHERE key = ?", (key,)).fetchone()
            if row is None:
                return None
            value, expires_at = row
            if expires_at is not None and time.time() >= expires_at:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                conn.commit()
                return None
        return json.loads(value)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        payload = json.dumps(value)
        expires_at = None if ttl is None else time.time() + ttl
        with self._lock:
            conn = self._connection()
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, expires_at) VALUES (?, ?, ?)",
                (key, payload, expires_at),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            conn = self._connection()
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()

    def clear(self) -> None:
        with self._lock:
            conn = self._connection()
            conn.execute("DELETE FROM kv")
            conn.commit()


class SingleFlightMemoizer:
    """
    Read-through memoization over a CacheStore.

    For a given key at most one producer runs at a time, across all
    threads sharing this memoizer. Callers queued behind a successful
    producer read the stored value instead of recomputing it. A waiter
    with a deadline gives up with DeadlineExceededError once it passes.
    """

    def __init__(self, store: CacheStore):
        self.store = store
        self._locks: Dict[str, Lock] = {}
        self._waiters: Dict[str, int] = {}
        self._registry_lock = Lock()

    def _acquire_key_lock(self, key: str, deadline: Optional[Deadline] = None) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = Lock()
                self._waiters[key] = 0
            self._waiters[key] += 1

        remaining = deadline.remaining() if deadline else None
        if not lock.acquire(timeout=-1 if remaining is None else remaining):
            self._forget_waiter(key)
            raise DeadlineExceededError(f"Timed out waiting for {key} to be computed")
        return lock

    def _release_key_lock(self, key: str, lock: Lock):
        lock.release()
        self._forget_waiter(key)

    def _forget_waiter(self, key: str):
        with self._registry_lock:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def get_or_compute(
        self,
        prefix: str,
        key: str,
        producer: Callable[[], T],
        ttl: Optional[int] = None,
        dump: Callable[[T], Any] = lambda value: value,
        load: Callable[[Any], T] = lambda value: value,
        deadline: Optional[Deadline] = None,
    ) -> T:
        cache_key = f"{prefix}:{key}"
        cached = self.store.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit {cache_key}")
            return load(cached)

        lock = self._acquire_key_lock(cache_key, deadline)
        try:
            cached = self.store.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit {cache_key} after waiting")
                return load(cached)

            logger.debug(f"Cache miss {cache_key}")
            value = producer()
            stored = dump(value)
            self.store.set(cache_key, stored, ttl)
            # hand back what a cache hit would return
            return load(stored)
        finally:
            self._release_key_lock(cache_key, lock)


def create_cache_store(settings: Settings) -> CacheStore:
    if settings.cache_backend == "memory":
        return InMemoryCache(max_size=1000)
    return SqliteCache(settings.kv_store)
