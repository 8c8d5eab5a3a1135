"""Tagged result type for remote lookups and version checks.

Lookups whose failure is an expected outcome (a missing parent page, a stale
version) return one of these variants instead of raising, so callers branch
on the variant with isinstance.

Example:
    >>> result = client.find_page("123")
    >>> if isinstance(result, NotFound):
    ...     print(f"{result.resource_id} is gone")
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar('T')


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""
    value: T


@dataclass(frozen=True)
class NotFound:
    """The requested remote resource does not exist."""
    resource_id: str


@dataclass(frozen=True)
class Conflict:
    """Local and remote versions disagree."""
    local_version: int
    remote_version: int


@dataclass(frozen=True)
class TransportError:
    """Authentication, network or generic API failure."""
    error: Exception


Result = Union[Ok[Any], NotFound, Conflict, TransportError]
