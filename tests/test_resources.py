"""Tests for shared resources, lookup results and cancellation tokens."""

import pytest

from bitbucket_cloud.api import Absent, Found, close_shared_resources, shared_resources
from bitbucket_cloud.api.cancellation import NEVER_CANCELLED, CancellationToken
from bitbucket_cloud.api.errors import OperationCancelledError
from bitbucket_cloud.api.resources import SharedResources
from bitbucket_cloud.config import CacheConfig, ClientConfig


@pytest.fixture(autouse=True)
def clean_registry():
    yield
    close_shared_resources()


def test_shared_resources_reused_per_host():
    first = shared_resources('api.bitbucket.org')
    
    assert shared_resources('api.bitbucket.org') is first
    assert shared_resources('bitbucket.example.com') is not first


def test_closed_resources_are_replaced():
    first = shared_resources('api.bitbucket.org')
    first.close()
    
    assert shared_resources('api.bitbucket.org') is not first


def test_close_shared_resources_closes_pools():
    resources = shared_resources('api.bitbucket.org')
    
    close_shared_resources()
    
    assert resources.pool.closed


def test_cache_lifetimes_from_config():
    config = ClientConfig(cache=CacheConfig(team_ttl=60, repositories_ttl=30))
    
    with SharedResources.from_config(config) as resources:
        assert resources.team_cache.ttl == 60
        assert resources.repository_cache.ttl == 30
        resources.team_cache.set('acme::', None)
    
    assert len(resources.team_cache) == 0
    assert resources.pool.closed


def test_lookup_results():
    assert Found(3).map(lambda v: v + 1) == Found(4)
    assert Found(None).is_present
    assert Absent('gone').map(lambda v: v + 1) == Absent('gone')
    assert Absent('gone').or_none() is None


def test_cancellation_token():
    token = CancellationToken()
    token.raise_if_cancelled()
    
    token.cancel()
    
    assert token.cancelled
    with pytest.raises(OperationCancelledError):
        token.raise_if_cancelled('https://api.bitbucket.org/2.0/teams/acme')
    with pytest.raises(OperationCancelledError):
        token.sleep(10)


def test_default_token_cannot_be_cancelled():
    with pytest.raises(RuntimeError):
        NEVER_CANCELLED.cancel()
    assert not NEVER_CANCELLED.cancelled
