"""Test configuration and fixtures."""

import os
import pytest

from bitbucket_cloud.api import BitbucketCloudClient, SharedResources
from bitbucket_cloud.config import BitbucketConfig, CacheConfig, PoolConfig

API_URL = "https://api.bitbucket.org"
REPO_URL = f"{API_URL}/2.0/repositories/acme/widgets"


@pytest.fixture(autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    # Save original environment
    original_env = dict(os.environ)
    
    for name in ('HTTPS_PROXY', 'https_proxy', 'HTTP_PROXY', 'http_proxy', 'NO_PROXY', 'no_proxy'):
        os.environ.pop(name, None)
    
    # Set test environment variables
    os.environ.update({
        'BITBUCKET_USERNAME': 'ci-bot',
        'BITBUCKET_PASSWORD': 'app-password',
        'BITBUCKET_API_URL': API_URL,
        'BITBUCKET_RATE_LIMIT_DELAY': '5.0',
        'CACHE_ENABLED': 'true'
    })
    
    yield
    
    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def bitbucket_config():
    """Configuration with credentials and a short rate limit delay."""
    return BitbucketConfig(username="ci-bot", password="app-password",
                           api_url=API_URL, rate_limit_delay=0.01)


@pytest.fixture
def resources():
    """Shared pool and caches, closed after the test."""
    shared = SharedResources(PoolConfig(max_total=4, max_per_route=2, idle_timeout=60),
                             CacheConfig())
    yield shared
    shared.close()


@pytest.fixture
def client(resources, bitbucket_config):
    """Client for the acme/widgets repository."""
    with BitbucketCloudClient("acme", "widgets", resources, bitbucket_config) as bitbucket:
        yield bitbucket
