"""Binding to the kernel's POSIX message queue functions.

Everything platform specific lives here: the ``O_*`` values behind
:class:`~posixq.flags.OpenFlags`, the ``struct mq_attr`` and
``struct timespec`` layouts, and errno retrieval. Failures are raised as
:class:`OSError` with ``errno`` set; turning them into typed errors is the
caller's job.
"""

import ctypes
import ctypes.util
import errno
import logging
import os
from typing import Protocol

from .attributes import BlockingMode, Deadline, QueueAttributes
from .flags import OpenFlags
from .settings import QueueSettings

logger = logging.getLogger(__name__)

_NATIVE_FLAGS = {
    OpenFlags.READ_ONLY: os.O_RDONLY,
    OpenFlags.WRITE_ONLY: os.O_WRONLY,
    OpenFlags.READ_WRITE: os.O_RDWR,
    OpenFlags.CLOSE_ON_EXEC: os.O_CLOEXEC,
    OpenFlags.CREATE: os.O_CREAT,
    OpenFlags.EXCLUSIVE_CREATE: os.O_EXCL,
    OpenFlags.NON_BLOCKING: os.O_NONBLOCK,
}


class NativeQueueService(Protocol):
    """Narrow contract with the facility that actually stores messages."""

    @property
    def priority_max(self) -> int:
        """Highest priority the service accepts."""

    def open(self, name: str, flags: OpenFlags) -> int:
        """Opens an existing queue and returns its descriptor."""

    def open_create(
        self,
        name: str,
        flags: OpenFlags,
        mode: int,
        attributes: QueueAttributes | None,
    ) -> int:
        """Opens or creates a queue and returns its descriptor."""

    def close(self, descriptor: int) -> None:
        """Releases a descriptor."""

    def unlink(self, name: str) -> None:
        """Removes a queue name from the system namespace."""

    def get_attributes(self, descriptor: int) -> QueueAttributes:
        """Returns a snapshot of the queue's attributes."""

    def set_attributes(
        self, descriptor: int, attributes: QueueAttributes
    ) -> QueueAttributes:
        """Applies the blocking mode and returns the previous attributes."""

    def send(self, descriptor: int, data: bytes, priority: int) -> None:
        """Enqueues a message, blocking per the descriptor's mode."""

    def receive(self, descriptor: int, buffer_size: int) -> tuple[bytes, int]:
        """Dequeues the oldest highest-priority message."""

    def timed_send(
        self, descriptor: int, data: bytes, priority: int, deadline: Deadline
    ) -> None:
        """Like send, but gives up at ``deadline``."""

    def timed_receive(
        self, descriptor: int, buffer_size: int, deadline: Deadline
    ) -> tuple[bytes, int]:
        """Like receive, but gives up at ``deadline``."""


class MqAttr(ctypes.Structure):
    """``struct mq_attr``."""

    _fields_ = [
        ('mq_flags', ctypes.c_long),
        ('mq_maxmsg', ctypes.c_long),
        ('mq_msgsize', ctypes.c_long),
        ('mq_curmsgs', ctypes.c_long),
        ('_reserved', ctypes.c_long * 4),
    ]


class Timespec(ctypes.Structure):
    """``struct timespec``."""

    _fields_ = [('tv_sec', ctypes.c_long), ('tv_nsec', ctypes.c_long)]


def to_native_flags(flags: OpenFlags) -> int:
    """Translates canonical flags into the platform's ``O_*`` bits."""
    native = 0
    for flag, value in _NATIVE_FLAGS.items():
        if flag in flags:
            native |= value
    return native


def _library_candidates(library: str | None) -> list[str]:
    if library:
        return [library]
    candidates = [
        ctypes.util.find_library('rt'),
        'librt.so.1',
        ctypes.util.find_library('c'),
        'libc.so.6',
    ]
    return [candidate for candidate in candidates if candidate]


def load_library(library: str | None = None) -> ctypes.CDLL:
    """
    Loads the shared library that exports ``mq_open`` and friends.

    :param library: Explicit path or soname; auto-detected when None.
    :raises OSError: If no candidate library exports the queue functions.
    """
    for candidate in _library_candidates(library):
        try:
            lib = ctypes.CDLL(candidate, use_errno=True)
        except OSError:
            logger.debug('Could not load %s', candidate)
            continue
        if not hasattr(lib, 'mq_open'):
            logger.debug('Library %s does not provide mq_open', candidate)
            continue
        _declare_prototypes(lib)
        logger.debug('Loaded POSIX message queue functions from %s', candidate)
        return lib
    raise OSError(errno.ENOSYS, 'no library exporting mq_open was found')


def _declare_prototypes(lib: ctypes.CDLL) -> None:
    c_int = ctypes.c_int
    c_size_t = ctypes.c_size_t
    c_uint = ctypes.c_uint
    attr_p = ctypes.POINTER(MqAttr)
    timespec_p = ctypes.POINTER(Timespec)
    uint_p = ctypes.POINTER(c_uint)

    # mq_open is variadic; arguments are passed as explicit ctypes values.
    lib.mq_open.restype = c_int
    lib.mq_close.argtypes = [c_int]
    lib.mq_close.restype = c_int
    lib.mq_unlink.argtypes = [ctypes.c_char_p]
    lib.mq_unlink.restype = c_int
    lib.mq_getattr.argtypes = [c_int, attr_p]
    lib.mq_getattr.restype = c_int
    lib.mq_setattr.argtypes = [c_int, attr_p, attr_p]
    lib.mq_setattr.restype = c_int
    lib.mq_send.argtypes = [c_int, ctypes.c_char_p, c_size_t, c_uint]
    lib.mq_send.restype = c_int
    lib.mq_receive.argtypes = [c_int, ctypes.c_char_p, c_size_t, uint_p]
    lib.mq_receive.restype = ctypes.c_ssize_t
    lib.mq_timedsend.argtypes = [
        c_int,
        ctypes.c_char_p,
        c_size_t,
        c_uint,
        timespec_p,
    ]
    lib.mq_timedsend.restype = c_int
    lib.mq_timedreceive.argtypes = [
        c_int,
        ctypes.c_char_p,
        c_size_t,
        uint_p,
        timespec_p,
    ]
    lib.mq_timedreceive.restype = ctypes.c_ssize_t


def _check(result: int, name: str | None = None) -> int:
    if result == -1:
        code = ctypes.get_errno()
        if name is None:
            raise OSError(code, os.strerror(code))
        raise OSError(code, os.strerror(code), name)
    return result


def _attributes_from_native(attr: MqAttr) -> QueueAttributes:
    if attr.mq_flags & os.O_NONBLOCK:
        mode = BlockingMode.NON_BLOCKING
    else:
        mode = BlockingMode.BLOCKING
    return QueueAttributes(
        blocking_mode=mode,
        max_messages=attr.mq_maxmsg,
        message_size=attr.mq_msgsize,
        current_messages=attr.mq_curmsgs,
    )


def _timespec(deadline: Deadline) -> Timespec:
    return Timespec(deadline.seconds, deadline.nanoseconds)


class LibrtQueueService:
    """NativeQueueService backed by the C library through ctypes."""

    def __init__(self, library: ctypes.CDLL, priority_max: int) -> None:
        self._lib = library
        self._priority_max = priority_max

    @classmethod
    def from_settings(cls, settings: QueueSettings) -> 'LibrtQueueService':
        return cls(
            load_library(settings.library), settings.resolve_priority_max()
        )

    @property
    def priority_max(self) -> int:
        return self._priority_max

    def open(self, name: str, flags: OpenFlags) -> int:
        return _check(
            self._lib.mq_open(
                os.fsencode(name), ctypes.c_int(to_native_flags(flags))
            ),
            name,
        )

    def open_create(
        self,
        name: str,
        flags: OpenFlags,
        mode: int,
        attributes: QueueAttributes | None,
    ) -> int:
        attr = None
        if attributes is not None:
            attr = ctypes.byref(
                MqAttr(0, attributes.max_messages, attributes.message_size, 0)
            )
        return _check(
            self._lib.mq_open(
                os.fsencode(name),
                ctypes.c_int(to_native_flags(flags)),
                ctypes.c_uint(mode),
                attr,
            ),
            name,
        )

    def close(self, descriptor: int) -> None:
        _check(self._lib.mq_close(descriptor))

    def unlink(self, name: str) -> None:
        _check(self._lib.mq_unlink(os.fsencode(name)), name)

    def get_attributes(self, descriptor: int) -> QueueAttributes:
        attr = MqAttr()
        _check(self._lib.mq_getattr(descriptor, ctypes.byref(attr)))
        return _attributes_from_native(attr)

    def set_attributes(
        self, descriptor: int, attributes: QueueAttributes
    ) -> QueueAttributes:
        new = MqAttr()
        if attributes.non_blocking:
            new.mq_flags = os.O_NONBLOCK
        old = MqAttr()
        _check(
            self._lib.mq_setattr(
                descriptor, ctypes.byref(new), ctypes.byref(old)
            )
        )
        return _attributes_from_native(old)

    def send(self, descriptor: int, data: bytes, priority: int) -> None:
        _check(self._lib.mq_send(descriptor, data, len(data), priority))

    def receive(self, descriptor: int, buffer_size: int) -> tuple[bytes, int]:
        buffer = ctypes.create_string_buffer(buffer_size)
        priority = ctypes.c_uint()
        size = _check(
            self._lib.mq_receive(
                descriptor, buffer, buffer_size, ctypes.byref(priority)
            )
        )
        return buffer.raw[:size], priority.value

    def timed_send(
        self, descriptor: int, data: bytes, priority: int, deadline: Deadline
    ) -> None:
        timeout = _timespec(deadline)
        _check(
            self._lib.mq_timedsend(
                descriptor, data, len(data), priority, ctypes.byref(timeout)
            )
        )

    def timed_receive(
        self, descriptor: int, buffer_size: int, deadline: Deadline
    ) -> tuple[bytes, int]:
        buffer = ctypes.create_string_buffer(buffer_size)
        priority = ctypes.c_uint()
        timeout = _timespec(deadline)
        size = _check(
            self._lib.mq_timedreceive(
                descriptor,
                buffer,
                buffer_size,
                ctypes.byref(priority),
                ctypes.byref(timeout),
            )
        )
        return buffer.raw[:size], priority.value
