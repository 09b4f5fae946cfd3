"""Value objects passed across the queue API."""

import ctypes
import dataclasses
import datetime
import enum
import math
import time
from typing import NamedTuple

from .errors import InvalidArgument

NANOSECONDS = 1_000_000_000
# Largest tv_sec a native struct timespec can carry.
SECONDS_MAX = 2 ** (8 * ctypes.sizeof(ctypes.c_long) - 1) - 1


class BlockingMode(enum.Enum):
    """Whether send and receive wait on a full or empty queue."""

    BLOCKING = 'blocking'
    NON_BLOCKING = 'non_blocking'


@dataclasses.dataclass(frozen=True)
class QueueAttributes:
    """
    Attributes of a queue, as reported by or sent to the kernel.

    Size fields left as None are unspecified. ``current_messages`` is only
    ever filled in by a snapshot and is never sent to the kernel.
    """

    blocking_mode: BlockingMode = BlockingMode.BLOCKING
    max_messages: int | None = None
    message_size: int | None = None
    current_messages: int | None = None

    @property
    def non_blocking(self) -> bool:
        return self.blocking_mode is BlockingMode.NON_BLOCKING

    def validate_for_create(self) -> 'QueueAttributes':
        """
        Checks the attributes are complete enough to create a queue.

        :raises InvalidArgument: If max_messages or message_size is missing
            or not positive.
        """
        if not isinstance(self.blocking_mode, BlockingMode):
            raise InvalidArgument(f'invalid blocking mode: {self.blocking_mode!r}')
        for field in ('max_messages', 'message_size'):
            value = getattr(self, field)
            if value is None:
                raise InvalidArgument(f'{field} is required when creating a queue')
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidArgument(f'{field} must be a positive int, got {value!r}')
        return self


class Message(NamedTuple):
    """A received message and the priority it was sent with."""

    data: bytes
    priority: int


@dataclasses.dataclass(frozen=True, order=True)
class Deadline:
    """An absolute CLOCK_REALTIME point in time used by timed operations."""

    seconds: int
    nanoseconds: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.seconds, bool) or not isinstance(self.seconds, int):
            raise InvalidArgument(f'deadline seconds must be int, got {self.seconds!r}')
        if isinstance(self.nanoseconds, bool) or not isinstance(self.nanoseconds, int):
            raise InvalidArgument(
                f'deadline nanoseconds must be int, got {self.nanoseconds!r}'
            )
        if not 0 <= self.seconds <= SECONDS_MAX:
            raise InvalidArgument(
                f'deadline seconds must be in [0, {SECONDS_MAX}], got {self.seconds}'
            )
        if not 0 <= self.nanoseconds < NANOSECONDS:
            raise InvalidArgument(
                f'deadline nanoseconds must be in [0, 1e9), got {self.nanoseconds}'
            )

    @classmethod
    def from_ns(cls, timestamp_ns: int) -> 'Deadline':
        seconds, nanoseconds = divmod(timestamp_ns, NANOSECONDS)
        return cls(seconds, nanoseconds)

    @classmethod
    def now(cls) -> 'Deadline':
        return cls.from_ns(time.time_ns())

    @classmethod
    def after(cls, timeout: float) -> 'Deadline':
        """
        Returns the deadline ``timeout`` seconds from now.

        :param timeout: Relative timeout in seconds; must not be negative.
        :raises InvalidArgument: If the timeout is not a finite, non-negative
            number of seconds within the deadline range.
        """
        if not math.isfinite(timeout):
            raise InvalidArgument(f'timeout must be finite, got {timeout}')
        if timeout < 0:
            raise InvalidArgument(f'timeout must be >= 0, got {timeout}')
        return cls.from_ns(time.time_ns() + round(timeout * NANOSECONDS))

    @classmethod
    def from_datetime(cls, moment: datetime.datetime) -> 'Deadline':
        """Converts an aware (or local naive) datetime into a deadline."""
        epoch = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
        if moment.tzinfo is None:
            moment = moment.astimezone()
        delta = moment - epoch
        timestamp_ns = (
            (delta.days * 86_400 + delta.seconds) * NANOSECONDS
            + delta.microseconds * 1_000
        )
        return cls.from_ns(timestamp_ns)

    def to_ns(self) -> int:
        return self.seconds * NANOSECONDS + self.nanoseconds

    def remaining(self) -> float:
        """Seconds left until the deadline, never negative."""
        return max(0, self.to_ns() - time.time_ns()) / NANOSECONDS

    def expired(self) -> bool:
        return time.time_ns() >= self.to_ns()
