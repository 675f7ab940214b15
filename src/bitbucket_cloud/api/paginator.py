"""
Cursor pagination over the Bitbucket Cloud page envelope.

Every listing endpoint answers with ``{"values": [...], "next": "<url>"}``.
The ``next`` URL is fetched exactly as the service sent it, since it may
carry cursor parameters the client must not rebuild.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, TypeVar
from urllib.parse import urlsplit

from .cancellation import CancellationToken, NEVER_CANCELLED
from .classifier import ResponseClassifier
from .errors import ParseError
from .executor import RequestExecutor
from .request import EndpointRequest

logger = logging.getLogger(__name__)

T = TypeVar('T')

Decoder = Callable[[Dict[str, Any]], T]


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a listing."""
    
    values: List[T] = field(default_factory=list)
    next: Optional[str] = None
    page: Optional[int] = None
    size: Optional[int] = None
    
    @property
    def is_last_page(self) -> bool:
        return not self.next
    
    @classmethod
    def from_api(cls, data: Any, decoder: Decoder, url: str) -> 'Page[T]':
        """
        Decode a page envelope.
        
        Args:
            data: Parsed JSON body
            decoder: Converts one raw item into the element type
            url: URL the page came from, for error reporting
            
        Raises:
            ParseError: When the envelope or an item is malformed
        """
        if not isinstance(data, dict):
            raise ParseError(url, "page envelope is not an object")
        
        raw_values = data.get('values') or []
        if not isinstance(raw_values, list):
            raise ParseError(url, "'values' is not a list")
        next_url = data.get('next')
        if next_url is not None and not isinstance(next_url, str):
            raise ParseError(url, "'next' is not a string")
        if next_url:
            parts = urlsplit(next_url)
            if not (parts.scheme and parts.netloc):
                raise ParseError(url, f"'next' is not an absolute URL: {next_url}")
        
        try:
            values = [decoder(item) for item in raw_values]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ParseError(url, f"malformed item: {e}") from e
        
        return cls(values=values, next=next_url or None,
                   page=data.get('page'), size=data.get('size'))


class Paginator:
    """
    Walks listing pages until the service stops sending a next link.
    
    Cancellation is checked between pages. A failure on any page aborts the
    listing; nothing collected so far is returned.
    """
    
    def __init__(self, executor: RequestExecutor):
        self.executor = executor
    
    def fetch_page(self, url: str, decoder: Decoder,
                   cancel: CancellationToken = NEVER_CANCELLED) -> Page:
        """Fetch and decode a single page."""
        response = self.executor.execute(EndpointRequest.get(url), cancel)
        return Page.from_api(ResponseClassifier.json_of(response), decoder, url)
    
    def iter_pages(self, first_url: str, decoder: Decoder,
                   cancel: CancellationToken = NEVER_CANCELLED) -> Iterator[Page]:
        """
        Yield pages in order, starting at first_url.
        
        Raises:
            OperationCancelledError: When cancelled between two pages
            ParseError: When a page repeats the URL it was fetched from
        """
        url: Optional[str] = first_url
        seen = set()
        count = 0
        while url:
            if count:
                cancel.raise_if_cancelled(url)
            if url in seen:
                raise ParseError(url, "pagination loops back to an earlier page")
            seen.add(url)
            
            page = self.fetch_page(url, decoder, cancel)
            count += 1
            logger.debug(f"Retrieved page {count} with {len(page.values)} items from {url}")
            yield page
            url = page.next
    
    def collect(self, first_url: str, decoder: Decoder[T],
                cancel: CancellationToken = NEVER_CANCELLED,
                keep: Optional[Callable[[T], bool]] = None) -> List[T]:
        """
        Collect every item of a listing.
        
        Args:
            first_url: URL of the first page
            decoder: Converts one raw item into the element type
            cancel: Token checked between pages
            keep: Optional filter applied once all pages are collected
            
        Returns:
            Items in page order, item order preserved within a page
        """
        items: List[T] = []
        pages = 0
        for page in self.iter_pages(first_url, decoder, cancel):
            items.extend(page.values)
            pages += 1
        logger.debug(f"Collected {len(items)} items from {pages} pages starting at {first_url}")
        
        if keep is not None:
            items = [item for item in items if keep(item)]
        return items
