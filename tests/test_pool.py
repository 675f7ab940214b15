"""Tests for the shared connection pool."""

import threading

import pytest

from bitbucket_cloud.api.errors import PoolTimeoutError
from bitbucket_cloud.api.pool import ConnectionPool, route_of
from bitbucket_cloud.config import PoolConfig


@pytest.fixture
def pool():
    connection_pool = ConnectionPool(PoolConfig(max_total=2, max_per_route=1, idle_timeout=60))
    yield connection_pool
    connection_pool.close()


def test_route_of():
    assert route_of("https://api.bitbucket.org/2.0") == ('https', 'api.bitbucket.org', 443)
    assert route_of("http://localhost:8080/x") == ('http', 'localhost', 8080)


def test_lease_is_returned(pool):
    with pool.lease("https://api.bitbucket.org/a", timeout=1):
        assert pool.leased == 1
    
    assert pool.leased == 0
    assert pool.get_stats()['checkouts'] == 1


def test_lease_is_returned_on_error(pool):
    with pytest.raises(RuntimeError):
        with pool.lease("https://api.bitbucket.org/a", timeout=1):
            raise RuntimeError("boom")
    
    assert pool.leased == 0


def test_per_route_ceiling(pool):
    with pool.lease("https://api.bitbucket.org/a", timeout=1):
        with pytest.raises(PoolTimeoutError):
            with pool.lease("https://api.bitbucket.org/b", timeout=0.05):
                pass
        # Another route still has room
        with pool.lease("https://other.example/b", timeout=0.05):
            assert pool.leased == 2
    
    assert pool.leased == 0


def test_total_ceiling(pool):
    with pool.lease("https://one.example/", timeout=1):
        with pool.lease("https://two.example/", timeout=1):
            with pytest.raises(PoolTimeoutError):
                with pool.lease("https://three.example/", timeout=0.05):
                    pass
    
    assert pool.leased == 0


def test_waiting_lease_gets_released_slot(pool):
    acquired = threading.Event()
    release = threading.Event()
    
    def holder():
        with pool.lease("https://api.bitbucket.org/a", timeout=1):
            acquired.set()
            release.wait(5)
    
    thread = threading.Thread(target=holder)
    thread.start()
    assert acquired.wait(5)
    threading.Timer(0.05, release.set).start()
    
    with pool.lease("https://api.bitbucket.org/b", timeout=5):
        assert pool.leased == 1
    thread.join(5)


def test_close_expired_connections():
    pool = ConnectionPool(PoolConfig(max_total=2, max_per_route=1, idle_timeout=0))
    try:
        with pool.lease("https://api.bitbucket.org/a", timeout=1):
            assert not pool.close_expired_connections()
        assert pool.close_expired_connections()
    finally:
        pool.close()


def test_idle_connections_kept_before_timeout(pool):
    with pool.lease("https://api.bitbucket.org/a", timeout=1):
        pass
    
    assert not pool.close_expired_connections()


def test_closed_pool_rejects_leases(pool):
    pool.close()
    
    assert pool.closed
    with pytest.raises(RuntimeError):
        with pool.lease("https://api.bitbucket.org/a", timeout=1):
            pass


def test_adapter_survives_session_close(pool):
    """Test that closing a session does not close the shared adapter."""
    import requests
    
    session = requests.Session()
    session.mount('https://', pool.adapter)
    session.close()
    
    assert pool.adapter.poolmanager is not None
    assert not pool.closed


def test_close_expired_connections_clears_proxy_pools():
    pool = ConnectionPool(PoolConfig(max_total=2, max_per_route=1, idle_timeout=0))
    try:
        direct = pool.adapter.poolmanager
        proxied = pool.adapter.proxy_manager_for("http://proxy.internal:3128")
        direct.connection_from_url("https://api.bitbucket.org/")
        proxied.connection_from_url("https://api.bitbucket.org/")
        assert (len(direct.pools), len(proxied.pools)) == (1, 1)
        
        assert pool.close_expired_connections()
        
        assert (len(direct.pools), len(proxied.pools)) == (0, 0)
    finally:
        pool.close()
