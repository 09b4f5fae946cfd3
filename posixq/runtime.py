"""Process-wide state: native library initialization and descriptor ownership.

The runtime starts ``UNINITIALIZED``. :func:`initialize` loads the native
library once and moves it to ``READY``; further calls return the same
service. Queue operations that are not given an explicit service call
:func:`default_service`, which performs that initialization on first use.
"""

import enum
import logging
import threading
import weakref
from typing import TYPE_CHECKING

from .errors import from_os_error
from .native import LibrtQueueService, NativeQueueService
from .settings import QueueSettings, get_settings

if TYPE_CHECKING:
    from .queue import MessageQueue

logger = logging.getLogger(__name__)


class RuntimeState(enum.Enum):
    """Initialization state of the process-wide runtime."""

    UNINITIALIZED = 'uninitialized'
    READY = 'ready'


_lock = threading.Lock()
_state = RuntimeState.UNINITIALIZED
_service: NativeQueueService | None = None
_settings: QueueSettings | None = None
_owners: 'weakref.WeakValueDictionary[int, MessageQueue]' = (
    weakref.WeakValueDictionary()
)


def state() -> RuntimeState:
    return _state


def initialize(settings: QueueSettings | None = None) -> NativeQueueService:
    """
    Loads the native queue library for this process.

    Idempotent: once the runtime is READY, later calls return the existing
    service and ignore ``settings``.

    :param settings: Settings to initialize with; read from the environment
        when None.
    :return: The ready native service.
    :raises QueueError: If the native library cannot be loaded.
    """
    global _state, _service, _settings

    with _lock:
        if _state is RuntimeState.READY:
            return _service
        settings = settings or get_settings()
        try:
            service = LibrtQueueService.from_settings(settings)
        except OSError as exc:
            raise from_os_error(exc) from exc
        _service = service
        _settings = settings
        _state = RuntimeState.READY
        logger.debug(
            'posixq runtime ready (priority_max=%d)', service.priority_max
        )
        return service


def default_service() -> NativeQueueService:
    """Returns the process-wide service, initializing it if needed."""
    if _state is RuntimeState.READY:
        return _service
    return initialize()


def current_settings() -> QueueSettings:
    """Settings the runtime was initialized with, or the environment's."""
    return _settings or get_settings()


def reset() -> None:
    """Returns the runtime to UNINITIALIZED. Live handles are unaffected."""
    global _state, _service, _settings

    with _lock:
        _state = RuntimeState.UNINITIALIZED
        _service = None
        _settings = None


def register(descriptor: int, handle: 'MessageQueue') -> None:
    """
    Records ``handle`` as the sole owner of ``descriptor``.

    If another live handle still claims the same descriptor value, the
    kernel has already reused it, so the older handle lost its descriptor
    out-of-band and is marked closed.
    """
    with _lock:
        previous = _owners.get(descriptor)
        _owners[descriptor] = handle
    if previous is not None and previous is not handle:
        logger.warning(
            'Descriptor %d was reused while %r still held it; '
            'marking the old handle closed',
            descriptor,
            previous,
        )
        previous._invalidate()


def release(descriptor: int, handle: 'MessageQueue') -> None:
    """Forgets ``handle`` as the owner of ``descriptor``."""
    with _lock:
        if _owners.get(descriptor) is handle:
            del _owners[descriptor]
