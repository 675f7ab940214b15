"""
Request execution against the Bitbucket Cloud API host.

The executor sends an ``EndpointRequest`` through the shared connection
pool using a client's authenticated session, reads the response fully and
returns the connection before handing the result back. Rate limit
responses (HTTP 429) are retried after a fixed delay; the service does not
advertise how long to wait.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import requests
from requests.structures import CaseInsensitiveDict

from ..config import BitbucketConfig
from .cancellation import CancellationToken, NEVER_CANCELLED
from .classifier import HttpResponse, ResponseClassifier, RATE_LIMIT_CODE
from .errors import RateLimitExhaustedError
from .pool import ConnectionPool
from .request import EndpointRequest

logger = logging.getLogger(__name__)


class RequestExecutor:
    """
    Executes endpoint requests with rate limit handling.
    
    Every exchange holds a pool lease only while the request is sent and
    its body read; the lease is returned on success, error and
    cancellation alike.
    """
    
    def __init__(self, session: requests.Session, pool: ConnectionPool,
                 config: BitbucketConfig):
        """
        Initialize request executor.
        
        Args:
            session: Session carrying the client's credentials and proxy
            pool: Shared connection pool
            config: Timeouts and rate limit policy
        """
        self.session = session
        self.pool = pool
        self.config = config
        self.attempts = 0  # Exchanges sent, including rate limited ones
    
    @property
    def timeout(self):
        return (self.config.connect_timeout, self.config.socket_timeout)
    
    def execute(self, request: EndpointRequest,
                cancel: CancellationToken = NEVER_CANCELLED) -> HttpResponse:
        """
        Execute a request, retrying while the service reports a rate limit.
        
        Args:
            request: Request to execute
            cancel: Token checked before every rate limit pause
            
        Returns:
            The first response that is not rate limited
            
        Raises:
            TransportError: On network or I/O failure
            OperationCancelledError: When cancelled while rate limited
            RateLimitExhaustedError: When a retry cap is configured and used up
        """
        logger.debug(f"Preparing {request.method} request to URL: {request.url}")
        rate_limited = 0
        while True:
            response = self._exchange(request)
            if response.status_code != RATE_LIMIT_CODE:
                return response
            rate_limited += 1
            self._pause(request, rate_limited, cancel)
    
    @contextmanager
    def stream(self, request: EndpointRequest,
               cancel: CancellationToken = NEVER_CANCELLED) -> Iterator[requests.Response]:
        """
        Execute a request and keep its body unread for the caller.
        
        The connection stays leased until the block exits.
        
        Yields:
            The ``requests`` response with an unread body
        """
        logger.debug(f"Preparing streaming {request.method} request to URL: {request.url}")
        rate_limited = 0
        while True:
            self.pool.close_expired_connections()
            with self.pool.lease(request.url, self.config.acquire_timeout):
                response = self._send(request)
                try:
                    if response.status_code != RATE_LIMIT_CODE:
                        yield response
                        return
                finally:
                    response.close()
            rate_limited += 1
            self._pause(request, rate_limited, cancel)
    
    def _pause(self, request: EndpointRequest, rate_limited: int,
               cancel: CancellationToken) -> None:
        limit: Optional[int] = self.config.max_rate_limit_retries
        if limit is not None and rate_limited > limit:
            logger.error(f"Rate limit retries exhausted after {rate_limited} attempts for {request.url}")
            raise RateLimitExhaustedError(request.url, rate_limited)
        
        cancel.raise_if_cancelled(request.url)
        logger.warning(f"Bitbucket Cloud API rate limit reached, sleeping for "
                       f"{self.config.rate_limit_delay}s then retry...")
        cancel.sleep(self.config.rate_limit_delay, request.url)
    
    def _exchange(self, request: EndpointRequest) -> HttpResponse:
        self.pool.close_expired_connections()
        with self.pool.lease(request.url, self.config.acquire_timeout):
            response = self._send(request)
            try:
                return self._read(request, response)
            finally:
                response.close()
    
    def _send(self, request: EndpointRequest) -> requests.Response:
        self.attempts += 1
        try:
            prepared = self.session.prepare_request(request.to_requests())
            return self.session.send(
                prepared,
                stream=True,
                timeout=self.timeout,
                proxies=self.session.proxies,
                allow_redirects=True
            )
        except requests.exceptions.RequestException as e:
            raise ResponseClassifier.transport_failure(request.url, e) from e
    
    def _read(self, request: EndpointRequest, response: requests.Response) -> HttpResponse:
        """Read the whole body into memory so the connection can be returned."""
        body = b''
        if request.method != 'HEAD' and response.status_code != 204 \
                and response.headers.get('Content-Length') != '0':
            try:
                body = response.content
            except (requests.exceptions.RequestException, OSError) as e:
                raise ResponseClassifier.transport_failure(request.url, e) from e
        
        return HttpResponse(
            url=request.url,
            status_code=response.status_code,
            reason=response.reason or '',
            headers=CaseInsensitiveDict(response.headers),
            body=body
        )
