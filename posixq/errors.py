"""Error taxonomy and the errno translator shared by every queue operation."""

import enum
import errno as errnos


class ErrorKind(enum.Enum):
    """Closed set of failure kinds a queue operation can report."""

    PERMISSION = 'permission'
    INVALID_ARGUMENT = 'invalid_argument'
    DESCRIPTOR_LIMIT_REACHED = 'descriptor_limit_reached'
    NAME_TOO_LONG = 'name_too_long'
    NOT_FOUND = 'not_found'
    ALREADY_EXISTS = 'already_exists'
    INSUFFICIENT_MEMORY = 'insufficient_memory'
    INSUFFICIENT_SPACE = 'insufficient_space'
    BAD_DESCRIPTOR = 'bad_descriptor'
    QUEUE_EMPTY = 'queue_empty'
    QUEUE_FULL = 'queue_full'
    INTERRUPTED = 'interrupted'
    MESSAGE_TOO_LARGE = 'message_too_large'
    TIMED_OUT = 'timed_out'
    UNKNOWN = 'unknown'


class Direction(enum.Enum):
    """Which way data was flowing when the kernel refused to block."""

    SEND = 'send'
    RECEIVE = 'receive'


class QueueError(Exception):
    """Base class for every failure raised by posixq."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, errno: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errno = errno

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.message!r}, errno={self.errno})'


class AccessDenied(QueueError):
    """Raised when the caller lacks permission for the queue."""

    kind = ErrorKind.PERMISSION


class InvalidArgument(QueueError, ValueError):
    """Raised for malformed names, flags, attributes or deadlines."""

    kind = ErrorKind.INVALID_ARGUMENT


class DescriptorLimitReached(QueueError):
    """Raised when the process or system descriptor table is full."""

    kind = ErrorKind.DESCRIPTOR_LIMIT_REACHED


class NameTooLong(QueueError):
    """Raised when the queue name exceeds the platform maximum."""

    kind = ErrorKind.NAME_TOO_LONG


class QueueNotFound(QueueError):
    """Raised when the queue does not exist."""

    kind = ErrorKind.NOT_FOUND


class QueueExists(QueueError):
    """Raised when an exclusive create finds the queue already present."""

    kind = ErrorKind.ALREADY_EXISTS


class InsufficientMemory(QueueError):
    """Raised when the kernel is out of memory."""

    kind = ErrorKind.INSUFFICIENT_MEMORY


class InsufficientSpace(QueueError):
    """Raised when there is no room left for a new queue."""

    kind = ErrorKind.INSUFFICIENT_SPACE


class BadDescriptor(QueueError):
    """Raised when the descriptor is closed, stale or invalidated."""

    kind = ErrorKind.BAD_DESCRIPTOR


class QueueEmpty(QueueError):
    """Raised when a non-blocking receive finds the queue empty."""

    kind = ErrorKind.QUEUE_EMPTY


class QueueFull(QueueError):
    """Raised when a non-blocking send finds the queue full."""

    kind = ErrorKind.QUEUE_FULL


class Interrupted(QueueError):
    """Raised when a signal interrupts a blocking call."""

    kind = ErrorKind.INTERRUPTED


class MessageTooLarge(QueueError):
    """Raised when a message or receive buffer does not fit the queue."""

    kind = ErrorKind.MESSAGE_TOO_LARGE


class TimedOut(QueueError):
    """Raised when a deadline passes before the operation completes."""

    kind = ErrorKind.TIMED_OUT


class UnknownError(QueueError):
    """Raised for kernel failures outside the known taxonomy."""

    kind = ErrorKind.UNKNOWN


ERROR_TYPES: dict[ErrorKind, type[QueueError]] = {
    cls.kind: cls
    for cls in (
        AccessDenied,
        InvalidArgument,
        DescriptorLimitReached,
        NameTooLong,
        QueueNotFound,
        QueueExists,
        InsufficientMemory,
        InsufficientSpace,
        BadDescriptor,
        QueueEmpty,
        QueueFull,
        Interrupted,
        MessageTooLarge,
        TimedOut,
        UnknownError,
    )
}

_ERRNO_KINDS: dict[int, ErrorKind] = {
    errnos.EACCES: ErrorKind.PERMISSION,
    errnos.EPERM: ErrorKind.PERMISSION,
    errnos.EINVAL: ErrorKind.INVALID_ARGUMENT,
    errnos.EMFILE: ErrorKind.DESCRIPTOR_LIMIT_REACHED,
    errnos.ENFILE: ErrorKind.DESCRIPTOR_LIMIT_REACHED,
    errnos.ENAMETOOLONG: ErrorKind.NAME_TOO_LONG,
    errnos.ENOENT: ErrorKind.NOT_FOUND,
    errnos.EEXIST: ErrorKind.ALREADY_EXISTS,
    errnos.ENOMEM: ErrorKind.INSUFFICIENT_MEMORY,
    errnos.ENOSPC: ErrorKind.INSUFFICIENT_SPACE,
    errnos.EBADF: ErrorKind.BAD_DESCRIPTOR,
    errnos.EINTR: ErrorKind.INTERRUPTED,
    errnos.EMSGSIZE: ErrorKind.MESSAGE_TOO_LARGE,
    errnos.ETIMEDOUT: ErrorKind.TIMED_OUT,
}

_WOULD_BLOCK_KINDS: dict[Direction, ErrorKind] = {
    Direction.SEND: ErrorKind.QUEUE_FULL,
    Direction.RECEIVE: ErrorKind.QUEUE_EMPTY,
}


def translate(code: int | None, direction: Direction | None = None) -> ErrorKind:
    """
    Maps a kernel errno to exactly one ErrorKind.

    :param code: The errno reported by the failed native call.
    :param direction: Data direction, needed to tell QueueFull from
        QueueEmpty when the kernel reports EAGAIN.
    :return: The matching kind; UNKNOWN for anything unmapped.
    """
    if code == errnos.EAGAIN:
        if direction is None:
            return ErrorKind.UNKNOWN
        return _WOULD_BLOCK_KINDS[direction]
    if code is None:
        return ErrorKind.UNKNOWN
    return _ERRNO_KINDS.get(code, ErrorKind.UNKNOWN)


def error_for(
    kind: ErrorKind, message: str, errno: int | None = None
) -> QueueError:
    """Builds the exception that represents ``kind``."""
    return ERROR_TYPES[kind](message, errno)


def from_os_error(
    exc: OSError, direction: Direction | None = None
) -> QueueError:
    """Converts an OSError raised at the native boundary into a QueueError."""
    kind = translate(exc.errno, direction)
    message = exc.strerror or str(exc) or kind.value
    return error_for(kind, message, exc.errno)
