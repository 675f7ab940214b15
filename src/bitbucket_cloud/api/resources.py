"""
Process-wide resources shared by Bitbucket Cloud clients.

One ``SharedResources`` object owns the connection pool and the two lookup
caches. It is created explicitly at process start (or by ``shared_resources``
for a given host) and handed to every client; clients borrow it and never
close it.
"""

import threading
import logging
from typing import Dict, List, Optional

from ..config import ClientConfig, PoolConfig, CacheConfig
from .cache import TTLCache
from .models import Team, Repository
from .pool import ConnectionPool

logger = logging.getLogger(__name__)


class SharedResources:
    """
    Connection pool and caches shared by all clients of one host.
    
    Attributes:
        pool: Shared connection pool
        team_cache: Team lookups keyed by owner
        repository_cache: Repository listings keyed by owner, login and role
    """
    
    def __init__(self, pool_config: Optional[PoolConfig] = None,
                 cache_config: Optional[CacheConfig] = None):
        pool_config = pool_config or PoolConfig()
        cache_config = cache_config or CacheConfig()
        
        self.pool = ConnectionPool(pool_config)
        self.team_cache: TTLCache[Optional[Team]] = TTLCache(
            'teams', ttl=cache_config.team_ttl,
            max_size=cache_config.max_size, enabled=cache_config.enabled)
        self.repository_cache: TTLCache[List[Repository]] = TTLCache(
            'repositories', ttl=cache_config.repositories_ttl,
            max_size=cache_config.max_size, enabled=cache_config.enabled)
    
    @classmethod
    def from_config(cls, config: ClientConfig) -> 'SharedResources':
        return cls(config.pool, config.cache)
    
    def close(self) -> None:
        """Close the pool and drop cached lookups."""
        self.pool.close()
        self.team_cache.clear()
        self.repository_cache.clear()
    
    def __enter__(self) -> 'SharedResources':
        return self
    
    def __exit__(self, *exc_info) -> None:
        self.close()


_REGISTRY: Dict[str, SharedResources] = {}
_LOCK = threading.Lock()


def shared_resources(host: str, config: Optional[ClientConfig] = None) -> SharedResources:
    """
    Get the shared resources for a host, creating them on first use.
    
    Meant for application entry points; library code receives resources
    as a constructor argument.
    """
    with _LOCK:
        resources = _REGISTRY.get(host)
        if resources is None or resources.pool.closed:
            config = config or ClientConfig()
            resources = SharedResources.from_config(config)
            _REGISTRY[host] = resources
            logger.info(f"Shared resources created for host {host}")
        return resources


def close_shared_resources() -> None:
    """Close every registered resource set, typically at process shutdown."""
    with _LOCK:
        for host, resources in _REGISTRY.items():
            resources.close()
            logger.info(f"Shared resources for host {host} closed")
        _REGISTRY.clear()
