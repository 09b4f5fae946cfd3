"""The queue handle and the typed operations built on it."""

import enum
import errno
import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from . import runtime
from .attributes import BlockingMode, Deadline, Message, QueueAttributes
from .errors import (
    BadDescriptor,
    Direction,
    InvalidArgument,
    MessageTooLarge,
    TimedOut,
    from_os_error,
)
from .flags import OpenFlags, validate_flags
from .names import validate_name
from .native import NativeQueueService

logger = logging.getLogger(__name__)

T = TypeVar('T')

_FIXED_FIELDS = ('max_messages', 'message_size', 'current_messages')


class LifecycleState(enum.Enum):
    """Lifecycle of a queue handle. CLOSED is terminal."""

    OPEN = 'open'
    CLOSED = 'closed'


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_deadline(deadline: Deadline | float) -> Deadline:
    if isinstance(deadline, Deadline):
        return deadline
    if isinstance(deadline, (int, float)) and not isinstance(deadline, bool):
        return Deadline.after(deadline)
    raise InvalidArgument(
        f'expected a Deadline or timeout in seconds, got {deadline!r}'
    )


class MessageQueue:
    """
    An open POSIX message queue.

    Instances are created by :meth:`open` or :meth:`open_or_create` and own
    their descriptor exclusively until :meth:`close` is called. A closed
    handle never reopens; open the queue again to get a new handle.
    """

    def __init__(
        self,
        service: NativeQueueService,
        descriptor: int,
        name: str,
        flags: OpenFlags,
        message_size: int,
    ) -> None:
        self._service = service
        self._descriptor = descriptor
        self._name = name
        self._flags = flags
        self._message_size = message_size
        self._state = LifecycleState.OPEN
        self._lock = threading.Lock()

    @classmethod
    def open(
        cls,
        name: str,
        flags: OpenFlags = OpenFlags.READ_WRITE,
        *,
        service: NativeQueueService | None = None,
    ) -> 'MessageQueue':
        """
        Opens an existing queue.

        :param name: Queue name, e.g. ``'/jobs'``.
        :param flags: Access mode plus optional CLOSE_ON_EXEC / NON_BLOCKING.
        :param service: Native service to use; the process default if None.
        :raises InvalidArgument: If the name or flags are malformed, or
            CREATE is requested (use :meth:`open_or_create`).
        :raises NameTooLong: If the name exceeds the platform maximum.
        :raises QueueNotFound: If no queue has that name.
        :raises AccessDenied: If the caller may not open the queue.
        :raises DescriptorLimitReached: If no descriptor is available.
        :raises InsufficientMemory: If the kernel is out of memory.
        """
        validate_name(name, runtime.current_settings().name_max)
        flags = validate_flags(flags)
        if OpenFlags.CREATE in flags:
            raise InvalidArgument('CREATE is not allowed here, use open_or_create')
        if service is None:
            service = runtime.default_service()

        try:
            descriptor = service.open(name, flags)
        except OSError as exc:
            raise from_os_error(exc) from exc
        return cls._adopt(service, descriptor, name, flags)

    @classmethod
    def open_or_create(
        cls,
        name: str,
        flags: OpenFlags = OpenFlags.READ_WRITE,
        mode: int | None = None,
        attributes: QueueAttributes | None = None,
        *,
        service: NativeQueueService | None = None,
    ) -> 'MessageQueue':
        """
        Opens a queue, creating it first if it does not exist.

        :param name: Queue name, e.g. ``'/jobs'``.
        :param flags: Access mode and options; CREATE is implied. Add
            EXCLUSIVE_CREATE to fail when the queue already exists.
        :param mode: Permission bits for a new queue; the configured default
            if None.
        :param attributes: Capacity and message size for a new queue; the
            kernel defaults if None. NON_BLOCKING mode here is applied as
            an open flag.
        :param service: Native service to use; the process default if None.
        :raises InvalidArgument: If the name, flags, mode or attributes are
            malformed.
        :raises QueueExists: If EXCLUSIVE_CREATE was given and the queue exists.
        :raises InsufficientSpace: If the system cannot hold another queue.
        """
        settings = runtime.current_settings()
        validate_name(name, settings.name_max)
        flags = validate_flags(int(flags) | OpenFlags.CREATE)
        if attributes is not None:
            attributes.validate_for_create()
            if attributes.non_blocking:
                flags |= OpenFlags.NON_BLOCKING
        if mode is None:
            mode = settings.default_mode
        if not _is_int(mode) or not 0 <= mode <= 0o7777:
            raise InvalidArgument(f'invalid permission bits: {mode!r}')
        if service is None:
            service = runtime.default_service()

        try:
            descriptor = service.open_create(name, flags, mode, attributes)
        except OSError as exc:
            raise from_os_error(exc) from exc
        return cls._adopt(service, descriptor, name, flags)

    @classmethod
    def _adopt(
        cls,
        service: NativeQueueService,
        descriptor: int,
        name: str,
        flags: OpenFlags,
    ) -> 'MessageQueue':
        try:
            attributes = service.get_attributes(descriptor)
        except OSError as exc:
            error = from_os_error(exc)
            try:
                service.close(descriptor)
            except OSError:
                logger.warning(
                    'Failed to release descriptor %d of %s', descriptor, name
                )
            raise error from exc

        queue = cls(service, descriptor, name, flags, attributes.message_size)
        runtime.register(descriptor, queue)
        logger.debug('Opened queue %s as descriptor %d', name, descriptor)
        return queue

    @staticmethod
    def unlink(
        name: str, *, service: NativeQueueService | None = None
    ) -> None:
        """
        Removes the queue name from the system.

        Open handles are left as they are; the kernel destroys the queue
        once every descriptor to it has been closed.

        :raises QueueNotFound: If no queue has that name.
        :raises AccessDenied: If the caller may not remove it.
        :raises NameTooLong: If the name exceeds the platform maximum.
        """
        validate_name(name, runtime.current_settings().name_max)
        if service is None:
            service = runtime.default_service()
        try:
            service.unlink(name)
        except OSError as exc:
            raise from_os_error(exc) from exc
        logger.debug('Unlinked queue %s', name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def descriptor(self) -> int:
        return self._descriptor

    @property
    def flags(self) -> OpenFlags:
        return self._flags

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is LifecycleState.CLOSED

    @property
    def message_size(self) -> int:
        """
        Returns the largest message the queue accepts, in bytes.
        """
        return self._message_size

    @property
    def max_messages(self) -> int:
        """
        Returns the maximum number of messages the queue can hold.
        """
        return self.get_attributes().max_messages

    @property
    def blocking_mode(self) -> BlockingMode:
        return self.get_attributes().blocking_mode

    def __len__(self) -> int:
        return self.get_attributes().current_messages

    def empty(self) -> bool:
        """
        Returns True if the queue is empty.
        """
        return len(self) == 0

    def full(self) -> bool:
        """
        Returns True if the queue is full.
        """
        attributes = self.get_attributes()
        return attributes.current_messages >= attributes.max_messages

    def close(self) -> None:
        """
        Releases the descriptor. The handle is closed afterwards even when
        the kernel reports the descriptor was already invalid.

        :raises BadDescriptor: If the handle was already closed or the
            descriptor was invalidated out-of-band.
        """
        with self._lock:
            if self._state is LifecycleState.CLOSED:
                raise BadDescriptor(f'queue {self._name} is already closed')
            self._state = LifecycleState.CLOSED
        runtime.release(self._descriptor, self)

        try:
            self._service.close(self._descriptor)
        except OSError as exc:
            raise from_os_error(exc) from exc
        logger.debug('Closed queue %s (descriptor %d)', self._name, self._descriptor)

    def _invalidate(self) -> None:
        with self._lock:
            self._state = LifecycleState.CLOSED

    def __enter__(self) -> 'MessageQueue':
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self.closed:
            self.close()

    def __repr__(self) -> str:
        return (
            f'<{type(self).__name__} name={self._name!r} '
            f'descriptor={self._descriptor} state={self._state.value}>'
        )

    def _live_descriptor(self) -> int:
        if self._state is LifecycleState.CLOSED:
            raise BadDescriptor(f'queue {self._name} is closed')
        return self._descriptor

    def _payload(self, data: bytes, priority: int) -> bytes:
        try:
            payload = memoryview(data).tobytes()
        except TypeError as exc:
            raise InvalidArgument(
                f'message must be bytes-like, not {type(data).__name__}'
            ) from exc
        if not _is_int(priority):
            raise InvalidArgument(f'priority must be int, got {priority!r}')
        priority_max = self._service.priority_max
        if not 0 <= priority <= priority_max:
            raise InvalidArgument(
                f'priority must be in [0, {priority_max}], got {priority}'
            )
        if len(payload) > self._message_size:
            raise MessageTooLarge(
                f'message of {len(payload)} bytes exceeds the queue message '
                f'size of {self._message_size} bytes'
            )
        return payload

    def _buffer_size(self, buffer_size: int | None) -> int:
        if buffer_size is None:
            return self._message_size
        if not _is_int(buffer_size) or buffer_size <= 0:
            raise InvalidArgument(
                f'buffer size must be a positive int, got {buffer_size!r}'
            )
        if buffer_size < self._message_size:
            raise MessageTooLarge(
                f'receive buffer of {buffer_size} bytes is smaller than the '
                f'queue message size of {self._message_size} bytes'
            )
        return buffer_size

    def send(self, data: bytes, priority: int = 0) -> None:
        """
        Enqueues ``data`` with ``priority``. Blocks while the queue is full
        unless the handle is in non-blocking mode.

        :raises MessageTooLarge: If ``data`` is longer than the message size;
            nothing is enqueued.
        :raises QueueFull: If non-blocking and the queue is full.
        :raises Interrupted: If a signal interrupted the wait.
        :raises InvalidArgument: If the data is not bytes-like or the
            priority is out of range.
        :raises BadDescriptor: If the handle is closed or was invalidated.
        """
        descriptor = self._live_descriptor()
        payload = self._payload(data, priority)
        try:
            self._service.send(descriptor, payload, priority)
        except OSError as exc:
            raise from_os_error(exc, Direction.SEND) from exc

    def receive(self, buffer_size: int | None = None) -> Message:
        """
        Dequeues the oldest message of the highest priority. Blocks while
        the queue is empty unless the handle is in non-blocking mode.

        :param buffer_size: Receive buffer size; the queue message size if
            None.
        :raises MessageTooLarge: If ``buffer_size`` is below the message size.
        :raises QueueEmpty: If non-blocking and the queue is empty.
        :raises Interrupted: If a signal interrupted the wait.
        :raises BadDescriptor: If the handle is closed or was invalidated.
        """
        descriptor = self._live_descriptor()
        size = self._buffer_size(buffer_size)
        try:
            data, priority = self._service.receive(descriptor, size)
        except OSError as exc:
            raise from_os_error(exc, Direction.RECEIVE) from exc
        return Message(data, priority)

    def timed_send(
        self, data: bytes, priority: int, deadline: Deadline | float
    ) -> None:
        """
        Like :meth:`send`, but waits no later than ``deadline``.

        :param priority: Message priority, as for :meth:`send`.
        :param deadline: Absolute Deadline, or a timeout in seconds from now.
        :raises TimedOut: If the deadline passed, including when it had
            already passed before the call.
        """
        descriptor = self._live_descriptor()
        payload = self._payload(data, priority)
        self._until(
            _as_deadline(deadline),
            Direction.SEND,
            lambda due: self._service.timed_send(descriptor, payload, priority, due),
        )

    def timed_receive(
        self, deadline: Deadline | float, buffer_size: int | None = None
    ) -> Message:
        """
        Like :meth:`receive`, but waits no later than ``deadline``.

        :param deadline: Absolute Deadline, or a timeout in seconds from now.
        :raises TimedOut: If the deadline passed, including when it had
            already passed before the call.
        """
        descriptor = self._live_descriptor()
        size = self._buffer_size(buffer_size)
        data, priority = self._until(
            _as_deadline(deadline),
            Direction.RECEIVE,
            lambda due: self._service.timed_receive(descriptor, size, due),
        )
        return Message(data, priority)

    def _until(
        self,
        deadline: Deadline,
        direction: Direction,
        call: Callable[[Deadline], T],
    ) -> T:
        while True:
            if deadline.expired():
                raise TimedOut(
                    f'deadline passed before {direction.value} on {self._name}'
                )
            try:
                return call(deadline)
            except OSError as exc:
                if exc.errno == errno.EINTR:
                    logger.debug(
                        'Timed %s on %s interrupted, retrying',
                        direction.value,
                        self._name,
                    )
                    continue
                raise from_os_error(exc, direction) from exc

    def get_attributes(self) -> QueueAttributes:
        """
        Returns a snapshot of the queue's attributes.

        :raises BadDescriptor: If the handle is closed or was invalidated.
        """
        descriptor = self._live_descriptor()
        try:
            return self._service.get_attributes(descriptor)
        except OSError as exc:
            raise from_os_error(exc) from exc

    def set_attributes(self, attributes: QueueAttributes) -> QueueAttributes:
        """
        Changes the blocking mode of this handle.

        Only ``blocking_mode`` can change. Any other field that is set must
        match the current snapshot.

        :return: The attributes as they were before the change.
        :raises InvalidArgument: If another field differs from the queue's.
        :raises BadDescriptor: If the handle is closed or was invalidated.
        """
        if not isinstance(attributes, QueueAttributes):
            raise InvalidArgument(f'expected QueueAttributes, got {attributes!r}')
        if not isinstance(attributes.blocking_mode, BlockingMode):
            raise InvalidArgument(
                f'invalid blocking mode: {attributes.blocking_mode!r}'
            )

        current = self.get_attributes()
        for field in _FIXED_FIELDS:
            requested = getattr(attributes, field)
            if requested is not None and requested != getattr(current, field):
                raise InvalidArgument(f'{field} cannot be changed on an open queue')

        try:
            return self._service.set_attributes(self._live_descriptor(), attributes)
        except OSError as exc:
            raise from_os_error(exc) from exc

    def set_blocking(self, blocking: bool) -> QueueAttributes:
        """Switches between blocking and non-blocking mode."""
        if blocking:
            mode = BlockingMode.BLOCKING
        else:
            mode = BlockingMode.NON_BLOCKING
        return self.set_attributes(QueueAttributes(blocking_mode=mode))
