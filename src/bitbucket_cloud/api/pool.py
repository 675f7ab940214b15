"""
Shared connection pool for the Bitbucket Cloud API host.

This module implements a thread-safe pool of persistent connections that is
shared by every client instance talking to the same host. Connections are
leased for a single HTTP exchange and returned immediately afterwards.
The pool enforces:

1. A ceiling on connections across all routes
2. A ceiling on connections per route (scheme, host, port)
3. Opportunistic closing of sockets that stayed idle too long
"""

import threading
import time
import logging
from contextlib import contextmanager
from typing import Dict, Any, Iterator, List, Tuple
from urllib.parse import urlsplit

from requests.adapters import HTTPAdapter
from urllib3 import PoolManager

from ..config import PoolConfig
from .errors import PoolTimeoutError

logger = logging.getLogger(__name__)

Route = Tuple[str, str, int]


class SharedHTTPAdapter(HTTPAdapter):
    """
    HTTP adapter that survives the sessions it is mounted on.
    
    ``requests.Session.close()`` closes every mounted adapter; a shared
    adapter must only be closed by the pool that owns it.
    """
    
    def close(self) -> None:
        pass
    
    def shutdown(self) -> None:
        super().close()


def route_of(url: str) -> Route:
    """Return the (scheme, host, port) route a URL connects to."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower() or 'https'
    port = parts.port or (443 if scheme == 'https' else 80)
    return scheme, (parts.hostname or '').lower(), port


class ConnectionPool:
    """
    Bounded pool of connections shared by all clients of one host.
    
    Attributes:
        config: Pool limits
        adapter: Transport adapter mounted on every client session
        leased: Number of connections currently checked out
    """
    
    def __init__(self, config: PoolConfig):
        """
        Initialize connection pool.
        
        Args:
            config: Pool limits
        """
        self.config = config
        self.adapter = SharedHTTPAdapter(
            pool_connections=max(1, -(-config.max_total // config.max_per_route)),
            pool_maxsize=config.max_per_route,
            max_retries=0
        )
        self._total = threading.BoundedSemaphore(config.max_total)
        self._routes: Dict[Route, threading.BoundedSemaphore] = {}
        self._lock = threading.Lock()
        self._leased = 0
        self._checkouts = 0
        self._last_activity = time.monotonic()
        self._closed = False
        
        logger.info(f"Connection pool initialized (max_total={config.max_total}, "
                    f"max_per_route={config.max_per_route}, idle_timeout={config.idle_timeout}s)")
    
    @property
    def leased(self) -> int:
        with self._lock:
            return self._leased
    
    @property
    def closed(self) -> bool:
        return self._closed
    
    def _route_semaphore(self, route: Route) -> threading.BoundedSemaphore:
        with self._lock:
            semaphore = self._routes.get(route)
            if semaphore is None:
                semaphore = threading.BoundedSemaphore(self.config.max_per_route)
                self._routes[route] = semaphore
            return semaphore
    
    @contextmanager
    def lease(self, url: str, timeout: float) -> Iterator[None]:
        """
        Check out a connection slot for one exchange with url.
        
        The slot is returned when the block exits, whatever the outcome.
        
        Args:
            url: URL the exchange targets
            timeout: Maximum seconds to wait for a free slot
            
        Raises:
            PoolTimeoutError: When no slot frees up in time
            RuntimeError: When the pool has been closed
        """
        if self._closed:
            raise RuntimeError("Connection pool is closed")
        
        deadline = time.monotonic() + timeout
        if not self._total.acquire(timeout=timeout):
            logger.error(f"Pool exhausted: no connection within {timeout}s for {url}")
            raise PoolTimeoutError(url, timeout)
        
        route_semaphore = self._route_semaphore(route_of(url))
        if not route_semaphore.acquire(timeout=max(0.0, deadline - time.monotonic())):
            self._total.release()
            logger.error(f"Route exhausted: no connection within {timeout}s for {url}")
            raise PoolTimeoutError(url, timeout)
        
        with self._lock:
            self._leased += 1
            self._checkouts += 1
        try:
            yield
        finally:
            with self._lock:
                self._leased -= 1
                self._last_activity = time.monotonic()
            route_semaphore.release()
            self._total.release()
    
    def close_expired_connections(self) -> bool:
        """
        Close pooled sockets when the pool has been idle past the timeout.
        
        Returns:
            True when idle connections were closed
        """
        with self._lock:
            idle_for = time.monotonic() - self._last_activity
            if self._leased or idle_for < self.config.idle_timeout:
                return False
            self._last_activity = time.monotonic()
        
        for manager in self._pool_managers():
            manager.clear()
        logger.debug(f"Closed connections idle for {idle_for:.1f}s")
        return True
    
    def _pool_managers(self) -> List[PoolManager]:
        """Direct pool manager first, then one manager per proxy in use."""
        return [self.adapter.poolmanager, *self.adapter.proxy_manager.values()]
    
    def get_stats(self) -> Dict[str, Any]:
        """
        Get pool statistics.
        
        Returns:
            Dictionary with lease counters and limits
        """
        with self._lock:
            return {
                "leased": self._leased,
                "checkouts": self._checkouts,
                "routes": len(self._routes),
                "max_total": self.config.max_total,
                "max_per_route": self.config.max_per_route,
                "idle_seconds": time.monotonic() - self._last_activity,
                "status": "closed" if self._closed else "open"
            }
    
    def close(self) -> None:
        """Close every pooled connection. The pool cannot be used afterwards."""
        if self._closed:
            return
        self._closed = True
        self.adapter.shutdown()
        logger.info("Connection pool closed")
