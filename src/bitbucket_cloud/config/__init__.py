"""
Configuration package for the Bitbucket Cloud API client.

This package provides a unified configuration interface for all components of the
client.
"""

from .config import (
    BitbucketConfig,
    PoolConfig,
    CacheConfig,
    ProxyConfig,
    ClientConfig,
    load_config
)

__all__ = [
    'BitbucketConfig',
    'PoolConfig',
    'CacheConfig',
    'ProxyConfig',
    'ClientConfig',
    'load_config'
]
