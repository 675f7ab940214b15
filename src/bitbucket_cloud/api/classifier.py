"""
Response classification.

Maps HTTP responses and transport failures onto the client's error
taxonomy. Responses reach the classifier fully read, so no connection is
held while a response is inspected.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, MutableMapping

from requests.structures import CaseInsensitiveDict

from .errors import NotFoundError, RequestError, TransportError, ParseError

logger = logging.getLogger(__name__)

RATE_LIMIT_CODE = 429


@dataclass(frozen=True)
class HttpResponse:
    """A completed HTTP exchange whose body has been read into memory."""
    
    url: str
    status_code: int
    reason: str = ''
    headers: MutableMapping[str, str] = field(default_factory=CaseInsensitiveDict)
    body: bytes = b''
    
    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            object.__setattr__(self, 'headers', CaseInsensitiveDict(self.headers))
    
    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')


class Outcome(Enum):
    """Classification of a response."""
    
    SUCCESS = 'success'
    NO_CONTENT = 'no_content'
    NOT_FOUND = 'not_found'
    RATE_LIMITED = 'rate_limited'
    REQUEST_ERROR = 'request_error'


class ResponseClassifier:
    """Classifies responses and turns failures into exceptions."""
    
    SUCCESS_CODES = (200, 201)
    
    @staticmethod
    def classify(response: HttpResponse) -> Outcome:
        status = response.status_code
        if status in ResponseClassifier.SUCCESS_CODES:
            return Outcome.SUCCESS
        if status == 204:
            return Outcome.NO_CONTENT
        if status == 404:
            return Outcome.NOT_FOUND
        if status == RATE_LIMIT_CODE:
            return Outcome.RATE_LIMITED
        return Outcome.REQUEST_ERROR
    
    @classmethod
    def check(cls, response: HttpResponse) -> Outcome:
        """
        Raise for failed responses.
        
        Args:
            response: Completed response
            
        Returns:
            Outcome.SUCCESS or Outcome.NO_CONTENT
            
        Raises:
            NotFoundError: For 404 responses
            RequestError: For any other unexpected status
        """
        outcome = cls.classify(response)
        if outcome in (Outcome.SUCCESS, Outcome.NO_CONTENT):
            return outcome
        if outcome is Outcome.NOT_FOUND:
            raise NotFoundError(response.url, response.reason, response.text)
        
        logger.error(f"Request to {response.url} failed with status {response.status_code}")
        raise RequestError(response.status_code, response.reason, response.text, response.url)
    
    @classmethod
    def text_of(cls, response: HttpResponse) -> str:
        """Return the body of a successful response, '' for 204."""
        if cls.check(response) is Outcome.NO_CONTENT:
            return ''
        return response.text
    
    @classmethod
    def json_of(cls, response: HttpResponse) -> Any:
        """
        Decode the JSON body of a successful response.
        
        Raises:
            ParseError: When the body is not valid JSON
        """
        text = cls.text_of(response)
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise ParseError(response.url, str(e)) from e
    
    @staticmethod
    def transport_failure(url: str, error: BaseException) -> TransportError:
        """Wrap an I/O failure with the URL that was attempted."""
        logger.error(f"Communication error for url {url}: {error}")
        return TransportError(url)
