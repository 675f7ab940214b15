"""
Central configuration for the Bitbucket Cloud API client.

This module provides unified configuration classes for all components of the
client, including:
- Bitbucket Cloud API access and credentials
- The shared connection pool
- Lookup caches for teams and repository listings
- Upstream proxy resolution
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional, List
from urllib.parse import quote, unquote, urlsplit

logger = logging.getLogger(__name__)


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == '':
        return None
    return int(value)


@dataclass
class BitbucketConfig:
    """
    Bitbucket Cloud API configuration.
    
    Contains all settings for accessing the API, including credentials,
    timeouts and rate limit handling.
    """
    
    username: Optional[str] = None
    password: Optional[str] = None
    api_url: str = "https://api.bitbucket.org"
    page_length: int = 100  # Maximum number of results per page
    connect_timeout: float = 10.0  # Seconds to establish a connection
    socket_timeout: float = 60.0  # Seconds to wait for data on an open socket
    acquire_timeout: float = 60.0  # Seconds to wait for a free pool slot
    rate_limit_delay: float = 5.0  # Pause after a 429 response
    max_rate_limit_retries: Optional[int] = None  # None retries forever
    
    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.password and not self.username:
            raise ValueError("A password was configured without a username")
        if self.page_length <= 0:
            raise ValueError("page_length must be positive")
        for name in ('connect_timeout', 'socket_timeout', 'acquire_timeout'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.rate_limit_delay < 0:
            raise ValueError("rate_limit_delay cannot be negative")
        if self.max_rate_limit_retries is not None and self.max_rate_limit_retries < 0:
            raise ValueError("max_rate_limit_retries cannot be negative")
        self.api_url = self.api_url.rstrip('/')
    
    @property
    def has_credentials(self) -> bool:
        """True when requests should be authenticated."""
        return bool(self.username)
    
    @property
    def host(self) -> str:
        """Host name of the API endpoint."""
        return urlsplit(self.api_url).hostname or ''
    
    @classmethod
    def from_env(cls) -> 'BitbucketConfig':
        """Create configuration from environment variables."""
        password = os.getenv('BITBUCKET_PASSWORD')
        if not password:
            password = os.getenv('BITBUCKET_APP_PASSWORD')  # Fallback
        
        return cls(
            username=os.getenv('BITBUCKET_USERNAME') or None,
            password=password or None,
            api_url=os.getenv('BITBUCKET_API_URL', 'https://api.bitbucket.org'),
            page_length=int(os.getenv('BITBUCKET_PAGE_LENGTH', '100')),
            connect_timeout=float(os.getenv('BITBUCKET_CONNECT_TIMEOUT', '10')),
            socket_timeout=float(os.getenv('BITBUCKET_SOCKET_TIMEOUT', '60')),
            acquire_timeout=float(os.getenv('BITBUCKET_ACQUIRE_TIMEOUT', '60')),
            rate_limit_delay=float(os.getenv('BITBUCKET_RATE_LIMIT_DELAY', '5.0')),
            max_rate_limit_retries=_optional_int(os.getenv('BITBUCKET_MAX_RATE_LIMIT_RETRIES'))
        )


@dataclass
class PoolConfig:
    """
    Connection pool limits.
    
    The pool is shared by every client talking to the API host, so these
    values bound the whole process rather than a single client.
    """
    
    max_total: int = 22  # Connections across all routes
    max_per_route: int = 20  # Connections to a single host
    idle_timeout: float = 60.0  # Idle seconds before pooled sockets are closed
    
    def __post_init__(self):
        """Validate pool limits."""
        if self.max_total <= 0 or self.max_per_route <= 0:
            raise ValueError("Pool limits must be positive")
        if self.max_per_route > self.max_total:
            raise ValueError("max_per_route cannot exceed max_total")
    
    @classmethod
    def from_env(cls) -> 'PoolConfig':
        """Create pool configuration from environment variables."""
        return cls(
            max_total=int(os.getenv('BITBUCKET_POOL_MAX_TOTAL', '22')),
            max_per_route=int(os.getenv('BITBUCKET_POOL_MAX_PER_ROUTE', '20')),
            idle_timeout=float(os.getenv('BITBUCKET_POOL_IDLE_TIMEOUT', '60'))
        )


@dataclass
class CacheConfig:
    """
    Cache configuration for expensive lookups.
    
    Team identity rarely changes within a session, repository visibility
    and membership change more often, hence the different lifetimes.
    """
    
    enabled: bool = True
    team_ttl: int = 6 * 3600  # Lifetime of team lookups in seconds
    repositories_ttl: int = 3 * 3600  # Lifetime of repository listings in seconds
    max_size: int = 1000  # Number of entries per cache
    
    def __post_init__(self):
        """Validate cache settings."""
        if self.team_ttl < 0 or self.repositories_ttl < 0:
            raise ValueError("Cache TTLs cannot be negative")
        if self.max_size <= 0:
            raise ValueError("max_size must be positive")
    
    @classmethod
    def from_env(cls) -> 'CacheConfig':
        """Create cache configuration from environment variables."""
        return cls(
            enabled=os.getenv('CACHE_ENABLED', 'true').lower() in ('true', '1', 'yes'),
            team_ttl=int(os.getenv('CACHE_TEAM_TTL', str(6 * 3600))),
            repositories_ttl=int(os.getenv('CACHE_REPOSITORIES_TTL', str(3 * 3600))),
            max_size=int(os.getenv('CACHE_MAX_SIZE', '1000'))
        )


@dataclass
class ProxyConfig:
    """
    Upstream HTTP proxy settings.
    
    Resolved once when a client is constructed; individual requests never
    consult the environment.
    """
    
    host: Optional[str] = None
    port: int = 8080
    username: Optional[str] = None
    password: Optional[str] = None
    no_proxy: List[str] = field(default_factory=list)
    
    @property
    def enabled(self) -> bool:
        return bool(self.host)
    
    def for_host(self, target_host: str) -> Optional[str]:
        """
        Resolve the proxy URL to use for a target host.
        
        Args:
            target_host: Host name the client will connect to
            
        Returns:
            Proxy URL (with embedded credentials when configured) or None
            for a direct connection
        """
        if not self.enabled:
            return None
        
        target_host = target_host.lower()
        for pattern in self.no_proxy:
            pattern = pattern.strip().lower()
            domain = pattern.lstrip('*').lstrip('.')
            if pattern == '*' or target_host == domain or target_host.endswith(f".{domain}"):
                logger.debug(f"Host {target_host} excluded from proxy by '{pattern}'")
                return None
        
        userinfo = ''
        if self.username and self.username.strip():
            userinfo = quote(self.username, safe='')
            if self.password:
                userinfo += ':' + quote(self.password, safe='')
            userinfo += '@'
        return f"http://{userinfo}{self.host}:{self.port}"
    
    @classmethod
    def from_url(cls, url: str, no_proxy: Optional[List[str]] = None) -> 'ProxyConfig':
        """Create proxy configuration from a proxy URL like http://user:pw@host:port."""
        if '://' not in url:
            url = f"http://{url}"
        parts = urlsplit(url)
        return cls(
            host=parts.hostname,
            port=parts.port or 8080,
            username=unquote(parts.username) if parts.username else None,
            password=unquote(parts.password) if parts.password else None,
            no_proxy=list(no_proxy or [])
        )
    
    @classmethod
    def from_env(cls) -> 'ProxyConfig':
        """Create proxy configuration from the conventional proxy variables."""
        url = (os.getenv('HTTPS_PROXY') or os.getenv('https_proxy')
               or os.getenv('HTTP_PROXY') or os.getenv('http_proxy'))
        no_proxy_str = os.getenv('NO_PROXY') or os.getenv('no_proxy') or ''
        no_proxy = [h.strip() for h in no_proxy_str.split(',') if h.strip()]
        
        if not url:
            return cls(no_proxy=no_proxy)
        return cls.from_url(url, no_proxy=no_proxy)


@dataclass
class ClientConfig:
    """
    Complete client configuration.
    
    Integrates all configuration components used to build shared resources
    and client instances.
    """
    
    bitbucket: BitbucketConfig = field(default_factory=BitbucketConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    
    @classmethod
    def from_env(cls) -> 'ClientConfig':
        """Create configuration from environment variables."""
        return cls(
            bitbucket=BitbucketConfig.from_env(),
            pool=PoolConfig.from_env(),
            cache=CacheConfig.from_env(),
            proxy=ProxyConfig.from_env()
        )


def load_config() -> ClientConfig:
    """
    Central function for loading the configuration.
    
    Loads the configuration from environment variables and returns it.
    This is the recommended method for creating a configuration.
    
    Returns:
        ClientConfig: Fully initialized client configuration
    """
    try:
        config = ClientConfig.from_env()
        logger.info("Configuration successfully loaded from environment variables")
        return config
    except Exception as e:
        logger.error(f"Error loading configuration: {e}")
        raise
