"""
API package for the Bitbucket Cloud client.

This package provides the transport and pagination engine and the client
built on top of it. It implements:

1. A connection pool shared by all clients of the API host
2. Request execution with rate limit retries and cooperative cancellation
3. Cursor pagination and time-based caching of expensive lookups
4. The Bitbucket Cloud client with its domain operations
"""

from .cache import TTLCache
from .cancellation import CancellationToken
from .classifier import HttpResponse, Outcome, ResponseClassifier
from .client import BitbucketCloudClient
from .errors import (
    APIError,
    BitbucketAPIError,
    RequestError,
    NotFoundError,
    RateLimitExhaustedError,
    TransportError,
    PoolTimeoutError,
    ParseError,
    OperationCancelledError
)
from .executor import RequestExecutor
from .paginator import Page, Paginator
from .pool import ConnectionPool
from .request import EndpointRequest, expand_template
from .resources import SharedResources, shared_resources, close_shared_resources
from .result import Found, Absent, Lookup

__all__ = [
    'TTLCache',
    'CancellationToken',
    'HttpResponse',
    'Outcome',
    'ResponseClassifier',
    'BitbucketCloudClient',
    'APIError',
    'BitbucketAPIError',
    'RequestError',
    'NotFoundError',
    'RateLimitExhaustedError',
    'TransportError',
    'PoolTimeoutError',
    'ParseError',
    'OperationCancelledError',
    'RequestExecutor',
    'Page',
    'Paginator',
    'ConnectionPool',
    'EndpointRequest',
    'expand_template',
    'SharedResources',
    'shared_resources',
    'close_shared_resources',
    'Found',
    'Absent',
    'Lookup'
]
