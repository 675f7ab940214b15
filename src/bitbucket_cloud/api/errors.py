"""
Error classes for API access.

This module defines the error taxonomy surfaced by the Bitbucket Cloud
client. Rate limit responses never appear here unless a retry cap has been
configured; by default they are absorbed by the request executor.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

class APIError(Exception):
    """Base class for all API-related errors."""
    
    def __init__(self, message: str, status_code: Optional[int] = None):
        """Initialize API error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class BitbucketAPIError(APIError):
    """Error in Bitbucket Cloud API usage."""
    
    def __init__(self, message: str, status_code: Optional[int] = None,
                 url: Optional[str] = None):
        """
        Initialize Bitbucket API error.
        
        Args:
            message: Error message
            status_code: HTTP status code, if any
            url: URL of the failed request, if any
        """
        super().__init__(message, status_code)
        self.url = url


class RequestError(BitbucketAPIError):
    """The service answered with an unexpected HTTP status."""
    
    def __init__(self, status_code: int, reason: str = '', body: str = '',
                 url: Optional[str] = None):
        """
        Initialize request error.
        
        Args:
            status_code: HTTP status code
            reason: Reason phrase sent by the server
            body: Response body text for diagnostics
            url: URL of the failed request
        """
        message = f"HTTP request error. Status: {status_code}: {reason}."
        if body:
            message += f"\n{body}"
        super().__init__(message, status_code, url)
        self.reason = reason
        self.body = body


class NotFoundError(RequestError):
    """Resource was not found (HTTP 404)."""
    
    def __init__(self, url: str, reason: str = 'Not Found', body: str = ''):
        super().__init__(404, reason, body, url)
        self.message = f"URL: {url}"
        self.args = (self.message,)


class RateLimitExhaustedError(RequestError):
    """The configured number of rate limit retries was used up."""
    
    def __init__(self, url: str, attempts: int, status_code: int = 429):
        super().__init__(status_code, 'Too Many Requests', url=url)
        self.attempts = attempts
        self.message = f"Rate limit still reported after {attempts} attempts for url: {url}"
        self.args = (self.message,)


class TransportError(BitbucketAPIError):
    """Network or I/O failure while talking to the service."""
    
    def __init__(self, url: str, message: Optional[str] = None):
        super().__init__(message or f"Communication error for url: {url}", url=url)


class PoolTimeoutError(TransportError):
    """No connection became available within the acquisition timeout."""
    
    def __init__(self, url: str, timeout: float):
        super().__init__(url, f"Timed out after {timeout}s waiting for a pooled connection for url: {url}")
        self.timeout = timeout


class ParseError(BitbucketAPIError):
    """Response body could not be decoded into the expected shape."""
    
    def __init__(self, url: str, detail: str = ''):
        message = f"I/O error when parsing response from URL: {url}"
        if detail:
            message += f" ({detail})"
        super().__init__(message, url=url)


class OperationCancelledError(BitbucketAPIError):
    """The caller cancelled the operation between retries or pages."""
    
    def __init__(self, url: Optional[str] = None):
        message = "Operation cancelled"
        if url:
            message += f" while requesting {url}"
        super().__init__(message, url=url)
