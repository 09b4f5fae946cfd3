"""Typed access to POSIX named message queues."""

from .attributes import BlockingMode, Deadline, Message, QueueAttributes
from .errors import (
    AccessDenied,
    BadDescriptor,
    DescriptorLimitReached,
    Direction,
    ErrorKind,
    InsufficientMemory,
    InsufficientSpace,
    Interrupted,
    InvalidArgument,
    MessageTooLarge,
    NameTooLong,
    QueueEmpty,
    QueueError,
    QueueExists,
    QueueFull,
    QueueNotFound,
    TimedOut,
    UnknownError,
    translate,
)
from .flags import OpenFlags
from .queue import LifecycleState, MessageQueue
from .result import Err, Ok, attempt
from .runtime import RuntimeState, initialize
from .settings import QueueSettings

__all__ = [
    'AccessDenied',
    'BadDescriptor',
    'BlockingMode',
    'Deadline',
    'DescriptorLimitReached',
    'Direction',
    'Err',
    'ErrorKind',
    'InsufficientMemory',
    'InsufficientSpace',
    'Interrupted',
    'InvalidArgument',
    'LifecycleState',
    'Message',
    'MessageQueue',
    'MessageTooLarge',
    'NameTooLong',
    'Ok',
    'OpenFlags',
    'QueueAttributes',
    'QueueEmpty',
    'QueueError',
    'QueueExists',
    'QueueFull',
    'QueueNotFound',
    'QueueSettings',
    'RuntimeState',
    'TimedOut',
    'UnknownError',
    'attempt',
    'initialize',
    'translate',
]
