import errno

import pytest
from hypothesis import given
from hypothesis import strategies as st

from posixq import (
    AccessDenied,
    Direction,
    ErrorKind,
    InvalidArgument,
    QueueEmpty,
    QueueError,
    QueueFull,
    TimedOut,
    UnknownError,
    translate,
)
from posixq.errors import ERROR_TYPES, error_for, from_os_error


@pytest.mark.parametrize(
    ('code', 'kind'),
    [
        (errno.EACCES, ErrorKind.PERMISSION),
        (errno.EPERM, ErrorKind.PERMISSION),
        (errno.EINVAL, ErrorKind.INVALID_ARGUMENT),
        (errno.EMFILE, ErrorKind.DESCRIPTOR_LIMIT_REACHED),
        (errno.ENFILE, ErrorKind.DESCRIPTOR_LIMIT_REACHED),
        (errno.ENAMETOOLONG, ErrorKind.NAME_TOO_LONG),
        (errno.ENOENT, ErrorKind.NOT_FOUND),
        (errno.EEXIST, ErrorKind.ALREADY_EXISTS),
        (errno.ENOMEM, ErrorKind.INSUFFICIENT_MEMORY),
        (errno.ENOSPC, ErrorKind.INSUFFICIENT_SPACE),
        (errno.EBADF, ErrorKind.BAD_DESCRIPTOR),
        (errno.EINTR, ErrorKind.INTERRUPTED),
        (errno.EMSGSIZE, ErrorKind.MESSAGE_TOO_LARGE),
        (errno.ETIMEDOUT, ErrorKind.TIMED_OUT),
    ],
)
def test_translate_known_codes(code: int, kind: ErrorKind) -> None:
    """Tests the canonical errno to ErrorKind table."""
    assert translate(code) is kind
    assert translate(code, Direction.SEND) is kind
    assert translate(code, Direction.RECEIVE) is kind


def test_translate_would_block_depends_on_direction() -> None:
    """Tests that EAGAIN means full when sending and empty when receiving."""
    assert translate(errno.EAGAIN, Direction.SEND) is ErrorKind.QUEUE_FULL
    assert translate(errno.EAGAIN, Direction.RECEIVE) is ErrorKind.QUEUE_EMPTY
    assert translate(errno.EAGAIN) is ErrorKind.UNKNOWN


@pytest.mark.parametrize('code', [errno.EIO, errno.ENOSYS, 0, -1, None])
def test_translate_unmapped_codes(code: int | None) -> None:
    """Tests that unexpected codes become UNKNOWN instead of being dropped."""
    assert translate(code) is ErrorKind.UNKNOWN


@given(
    code=st.integers(min_value=-(2**31), max_value=2**31 - 1),
    direction=st.sampled_from([None, Direction.SEND, Direction.RECEIVE]),
)
def test_translate_is_total(code: int, direction: Direction | None) -> None:
    """Tests that every code maps to exactly one kind with its own error type."""
    kind = translate(code, direction)

    assert kind in ErrorKind
    assert translate(code, direction) is kind
    assert ERROR_TYPES[kind].kind is kind


def test_every_kind_has_an_error_type() -> None:
    """Tests that the exception taxonomy covers the whole enumeration."""
    assert set(ERROR_TYPES) == set(ErrorKind)
    assert len(set(ERROR_TYPES.values())) == len(ErrorKind)
    for error_type in ERROR_TYPES.values():
        assert issubclass(error_type, QueueError)


def test_error_for_builds_matching_exception() -> None:
    """Tests that error_for keeps the message and errno."""
    error = error_for(ErrorKind.TIMED_OUT, 'too slow', errno.ETIMEDOUT)

    assert isinstance(error, TimedOut)
    assert error.kind is ErrorKind.TIMED_OUT
    assert error.message == 'too slow'
    assert error.errno == errno.ETIMEDOUT
    assert str(error) == 'too slow'


def test_from_os_error_uses_strerror() -> None:
    """Tests that the kernel's message travels with the typed error."""
    error = from_os_error(OSError(errno.EACCES, 'Permission denied', '/q'))

    assert isinstance(error, AccessDenied)
    assert error.message == 'Permission denied'
    assert error.errno == errno.EACCES


@pytest.mark.parametrize(
    ('direction', 'error_type'),
    [
        (Direction.SEND, QueueFull),
        (Direction.RECEIVE, QueueEmpty),
        (None, UnknownError),
    ],
)
def test_from_os_error_would_block(
    direction: Direction | None, error_type: type[QueueError]
) -> None:
    """Tests that EAGAIN is resolved using the direction."""
    exc = OSError(errno.EAGAIN, 'Resource temporarily unavailable')

    error = from_os_error(exc, direction)

    assert type(error) is error_type


def test_invalid_argument_is_value_error() -> None:
    """Tests that argument errors can also be caught as ValueError."""
    with pytest.raises(ValueError):
        raise InvalidArgument('bad')
