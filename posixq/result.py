"""Result values for callers that prefer not to handle exceptions."""

import dataclasses
from collections.abc import Callable
from typing import Any, Generic, NoReturn, TypeVar, Union

from .errors import ErrorKind, QueueError

T = TypeVar('T')


@dataclasses.dataclass(frozen=True)
class Ok(Generic[T]):
    """A successful outcome."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclasses.dataclass(frozen=True)
class Err:
    """A failed outcome carrying exactly one ErrorKind."""

    error: QueueError

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    def unwrap(self) -> NoReturn:
        raise self.error


Result = Union[Ok[T], Err]


def attempt(func: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
    """
    Calls ``func`` and captures its outcome.

    Only :class:`QueueError` is captured; anything else propagates.

    :return: Ok with the return value, or Err with the raised error.
    """
    try:
        return Ok(func(*args, **kwargs))
    except QueueError as exc:
        return Err(exc)
