"""Tagged success-or-failure values for page-level operations.

Fetching, caching and reading a page can fail for reasons that should stay
inside the worker that hit them.  Those operations return an :class:`Ok` or
an :class:`Err` instead of raising::

    result = store.read(page)
    if isinstance(result, Err):
        log(result.error)
    else:
        use(result.value)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]
