"""
Time-based Cache Implementation for API Lookups.

This module implements a thread-safe memory cache for lookups that are
expensive and rarely change within a session (team identity, repository
listings). Concurrent requests for the same missing key share a single
computation instead of each calling the remote service.
"""

import threading
import time
import logging
from dataclasses import dataclass
from typing import Dict, Any, Callable, Generic, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')  # Type variable for cached values


@dataclass
class CacheEntry:
    """A cached value. None is a valid value meaning 'looked up, found nothing'."""
    
    key: str
    value: Any
    created_at: float
    ttl: float
    
    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


class _Computation:
    """Result slot shared by every caller waiting on the same key."""
    
    def __init__(self):
        self.done = threading.Event()
        self.value: Any = None
        self.error: Optional[BaseException] = None
    
    def result(self) -> Any:
        self.done.wait()
        if self.error is not None:
            raise self.error
        return self.value


class TTLCache(Generic[T]):
    """
    In-memory cache with per-entry time-to-live and size limitation.
    
    Entries expire ``ttl`` seconds after they were stored. When the maximum
    size is reached the least recently used entry is removed. At most one
    computation per key runs at a time; the lock is never held while a
    computation runs.
    """
    
    def __init__(self, name: str, ttl: float, max_size: int = 1000,
                 enabled: bool = True, clock: Callable[[], float] = time.monotonic):
        """
        Initialize cache.
        
        Args:
            name: Name of the cache (for logging)
            ttl: Lifetime of entries in seconds
            max_size: Maximum number of entries to store
            enabled: When False every lookup calls compute directly
            clock: Monotonic time source, replaceable in tests
        """
        self.name = name
        self.ttl = ttl
        self.max_size = max_size
        self.enabled = enabled
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._access_times: Dict[str, float] = {}
        self._in_flight: Dict[str, _Computation] = {}
        self._lock = threading.Lock()
        logger.info(f"Cache '{name}' initialized (ttl={ttl}s, max_size={max_size}, enabled={enabled})")
    
    def get(self, key: str, compute: Callable[[], T]) -> T:
        """
        Get value from cache, computing it when missing or expired.
        
        Args:
            key: Cache key
            compute: Zero-argument callable producing the value
            
        Returns:
            Cached or freshly computed value
            
        Raises:
            Exception: Whatever compute raised; failures are not cached
        """
        if not self.enabled:
            return compute()
        
        with self._lock:
            hit, value = self._lookup(key)
            if hit:
                return value
            computation = self._in_flight.get(key)
            owner = computation is None
            if owner:
                computation = _Computation()
                self._in_flight[key] = computation
        
        if not owner:
            logger.debug(f"Waiting for in-flight computation of '{key}' in '{self.name}'")
            return computation.result()
        
        try:
            value = compute()
        except BaseException as e:
            with self._lock:
                del self._in_flight[key]
            computation.error = e
            computation.done.set()
            logger.debug(f"Computation of '{key}' in '{self.name}' failed: {e}")
            raise
        
        with self._lock:
            self._store(key, value)
            del self._in_flight[key]
        computation.value = value
        computation.done.set()
        return value
    
    def peek(self, key: str) -> Tuple[bool, Optional[T]]:
        """
        Look up a key without computing it.
        
        Returns:
            Tuple of (hit, value)
        """
        with self._lock:
            return self._lookup(key)
    
    def set(self, key: str, value: T) -> None:
        """
        Store value in cache.
        
        Args:
            key: Cache key
            value: Value to store
        """
        with self._lock:
            self._store(key, value)
    
    def remove(self, key: str) -> None:
        """
        Remove entry from cache.
        
        Args:
            key: Cache key to remove
        """
        with self._lock:
            self._remove(key)
    
    def clear(self) -> None:
        """Clear the entire cache."""
        with self._lock:
            self._entries.clear()
            self._access_times.clear()
        logger.info(f"Cache '{self.name}' cleared")
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
    
    def _lookup(self, key: str) -> Tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Cache miss for '{key}' in '{self.name}'")
            return False, None
        
        now = self._clock()
        if entry.expired(now):
            logger.debug(f"Cache entry '{key}' in '{self.name}' has expired")
            self._remove(key)
            return False, None
        
        self._access_times[key] = now
        logger.debug(f"Cache hit for '{key}' in '{self.name}'")
        return True, entry.value
    
    def _store(self, key: str, value: Any) -> None:
        now = self._clock()
        
        # Check cache size and remove oldest entry if necessary
        if len(self._entries) >= self.max_size and key not in self._entries:
            self._remove_oldest_entry()
        
        self._entries[key] = CacheEntry(key=key, value=value, created_at=now, ttl=self.ttl)
        self._access_times[key] = now
        logger.debug(f"Value for '{key}' cached in '{self.name}'")
    
    def _remove(self, key: str) -> None:
        if key in self._entries:
            del self._entries[key]
            self._access_times.pop(key, None)
            logger.debug(f"Entry '{key}' removed from '{self.name}'")
    
    def _remove_oldest_entry(self) -> None:
        """Remove the least recently used entry."""
        if not self._access_times:
            return
        
        oldest_key = min(self._access_times.items(), key=lambda x: x[1])[0]
        self._remove(oldest_key)
        logger.debug(f"Oldest entry '{oldest_key}' removed from '{self.name}'")
