"""
Tagged result type returned at every external-call boundary.

Callers inspect ``is_ok`` and decide for themselves whether to substitute
fixture data, so the degrade-on-failure policy stays visible at the call site.
"""
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

from .exceptions import NotFoundError, ServiceError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    @property
    def is_not_found(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def unwrap_or_else(self, fn: Callable[[ServiceError], T]) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: ServiceError

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def is_not_found(self) -> bool:
        return isinstance(self.error, NotFoundError)

    def unwrap(self):
        raise self.error

    def unwrap_or(self, default):
        return default

    def unwrap_or_else(self, fn):
        return fn(self.error)


Result = Union[Ok[T], Err]
