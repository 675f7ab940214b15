"""
Lookup results that distinguish absence from failure.

Operations that look up a single resource return either ``Found`` or
``Absent`` instead of raising for a missing resource. Genuine failures
are still raised as exceptions from ``errors``.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union, Optional, Callable

T = TypeVar('T')
U = TypeVar('U')


@dataclass(frozen=True)
class Found(Generic[T]):
    """The resource exists."""
    
    value: T
    
    @property
    def is_present(self) -> bool:
        return True
    
    def or_none(self) -> Optional[T]:
        return self.value
    
    def map(self, func: Callable[[T], U]) -> 'Found[U]':
        return Found(func(self.value))


@dataclass(frozen=True)
class Absent:
    """The resource does not exist, with a short explanation."""
    
    reason: str = ''
    
    @property
    def is_present(self) -> bool:
        return False
    
    def or_none(self) -> None:
        return None
    
    def map(self, func: Callable) -> 'Absent':
        return self


Lookup = Union[Found[T], Absent]
