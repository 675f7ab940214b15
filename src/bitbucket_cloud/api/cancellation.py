"""Cooperative cancellation for long running API operations."""

import threading
import logging
from typing import Optional

from .errors import OperationCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Flag shared between a caller and the operations it started.
    
    Cancellation is observed only at well defined points: between rate
    limit retries and between pages. An HTTP exchange that is already in
    flight always runs to completion.
    """
    
    def __init__(self):
        self._event = threading.Event()
    
    def cancel(self) -> None:
        """Request cancellation of every operation observing this token."""
        logger.debug("Cancellation requested")
        self._event.set()
    
    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
    
    def raise_if_cancelled(self, url: Optional[str] = None) -> None:
        """
        Raise if cancellation was requested.
        
        Raises:
            OperationCancelledError: When the token is cancelled
        """
        if self._event.is_set():
            raise OperationCancelledError(url)
    
    def sleep(self, seconds: float, url: Optional[str] = None) -> None:
        """
        Sleep for the given time unless cancelled first.
        
        Raises:
            OperationCancelledError: When cancellation arrives before or during the sleep
        """
        if self._event.wait(seconds):
            raise OperationCancelledError(url)


class _NeverCancelled(CancellationToken):
    def cancel(self) -> None:
        raise RuntimeError("The default cancellation token cannot be cancelled")


NEVER_CANCELLED = _NeverCancelled()
