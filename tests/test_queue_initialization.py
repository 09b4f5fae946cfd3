import os
import stat

import pytest
from helpers import unique_name
from hypothesis import given, settings
from hypothesis import strategies as st

from posixq import (
    BlockingMode,
    InvalidArgument,
    LifecycleState,
    MessageQueue,
    NameTooLong,
    OpenFlags,
    QueueAttributes,
    QueueExists,
    QueueNotFound,
)

# Unprivileged Linux defaults: msg_max=10, msgsize_max=8192.
MAX_MESSAGES = 10
MAX_MESSAGE_SIZE = 8192


@settings(max_examples=25, deadline=None)
@given(
    max_messages=st.integers(min_value=1, max_value=MAX_MESSAGES),
    message_size=st.integers(min_value=1, max_value=MAX_MESSAGE_SIZE),
)
def test_queue_create_valid_parameters(max_messages: int, message_size: int) -> None:
    """Tests queue creation with valid capacity and message size."""
    name = unique_name()
    queue = MessageQueue.open_or_create(
        name,
        attributes=QueueAttributes(
            max_messages=max_messages, message_size=message_size
        ),
    )
    try:
        assert queue.state is LifecycleState.OPEN
        assert queue.message_size == message_size
        assert queue.max_messages == max_messages
        assert queue.blocking_mode is BlockingMode.BLOCKING
        assert queue.empty()
        assert not queue.full()
        assert len(queue) == 0
    finally:
        queue.close()
        MessageQueue.unlink(name)


@pytest.mark.parametrize(
    ('max_messages', 'message_size'),
    [
        (None, None),
        (8, None),
        (None, 8),
    ],
)
def test_queue_create_requires_capacity_and_message_size(
    queue_name: str, max_messages: int | None, message_size: int | None
) -> None:
    """Ensures both sizes are required when attributes are given."""
    attributes = QueueAttributes(max_messages=max_messages, message_size=message_size)
    with pytest.raises(InvalidArgument, match='required when creating'):
        MessageQueue.open_or_create(queue_name, attributes=attributes)

    with pytest.raises(QueueNotFound):
        MessageQueue.open(queue_name)


@pytest.mark.parametrize(
    ('max_messages', 'message_size'), [(-8, 8), (8, -8), (0, 8), (8, 0)]
)
def test_queue_create_non_positive_values(
    queue_name: str, max_messages: int, message_size: int
) -> None:
    """Tests that non-positive sizes are rejected before reaching the kernel."""
    attributes = QueueAttributes(max_messages=max_messages, message_size=message_size)
    with pytest.raises(InvalidArgument, match='must be a positive int'):
        MessageQueue.open_or_create(queue_name, attributes=attributes)


def test_queue_create_kernel_defaults(queue_name: str) -> None:
    """Tests that omitted attributes fall back to the kernel defaults."""
    with MessageQueue.open_or_create(queue_name) as queue:
        attributes = queue.get_attributes()
        assert attributes.max_messages > 0
        assert attributes.message_size > 0
        assert attributes.current_messages == 0


def test_queue_create_exclusive_on_existing(
    queue: MessageQueue, attributes: QueueAttributes
) -> None:
    """Tests that an exclusive create fails if the queue exists."""
    queue.send(b'1')

    with pytest.raises(QueueExists):
        MessageQueue.open_or_create(
            queue.name,
            OpenFlags.READ_WRITE | OpenFlags.EXCLUSIVE_CREATE,
            attributes=attributes,
        )

    assert len(queue) == 1
    assert queue.receive() == (b'1', 0)


def test_queue_create_without_exclusive_opens_existing(queue: MessageQueue) -> None:
    """Tests that a plain create attaches to the existing queue."""
    queue.send(b'shared')

    with MessageQueue.open_or_create(
        queue.name,
        attributes=QueueAttributes(max_messages=1, message_size=1),
    ) as other:
        assert other.message_size == queue.message_size
        assert len(other) == 1
        assert other.receive() == (b'shared', 0)


def test_queue_create_applies_mode(
    queue_name: str, attributes: QueueAttributes
) -> None:
    """Tests that permission bits reach the kernel when /dev/mqueue is mounted."""
    umask = os.umask(0)
    os.umask(umask)
    with MessageQueue.open_or_create(queue_name, mode=0o640, attributes=attributes):
        path = os.path.join('/dev/mqueue', queue_name[1:])
        if not os.path.exists(path):
            pytest.skip('mqueue filesystem is not mounted')
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o640 & ~umask


def test_queue_create_non_blocking_attributes(
    queue_name: str,
) -> None:
    """Tests that NON_BLOCKING in the attributes opens a non-blocking handle."""
    attributes = QueueAttributes(
        blocking_mode=BlockingMode.NON_BLOCKING, max_messages=2, message_size=8
    )
    with MessageQueue.open_or_create(queue_name, attributes=attributes) as queue:
        assert OpenFlags.NON_BLOCKING in queue.flags
        assert queue.blocking_mode is BlockingMode.NON_BLOCKING


def test_queue_open_existing(queue: MessageQueue) -> None:
    """Ensures a queue can be accessed by multiple handles."""
    other = MessageQueue.open(queue.name, OpenFlags.READ_ONLY)
    try:
        assert other.descriptor != queue.descriptor
        assert other.message_size == queue.message_size
        assert other.max_messages == queue.max_messages
        queue.send(b'x', 1)
        assert other.receive() == (b'x', 1)
    finally:
        other.close()


def test_queue_open_missing() -> None:
    """Tests that opening a non-existing queue raises QueueNotFound."""
    with pytest.raises(QueueNotFound):
        MessageQueue.open(unique_name())


def test_queue_open_rejects_create_flag(queue_name: str) -> None:
    """Tests that open refuses CREATE, which needs attributes and a mode."""
    with pytest.raises(InvalidArgument, match='open_or_create'):
        MessageQueue.open(queue_name, OpenFlags.READ_WRITE | OpenFlags.CREATE)


def test_queue_open_name_too_long() -> None:
    """Tests that over-long names fail with NameTooLong."""
    with pytest.raises(NameTooLong):
        MessageQueue.open('/' + 'q' * 256)


def test_unlink_missing() -> None:
    """Tests that unlinking a non-existing queue raises QueueNotFound."""
    with pytest.raises(QueueNotFound):
        MessageQueue.unlink(unique_name())


def test_unlink_keeps_open_handles(queue: MessageQueue) -> None:
    """Tests that unlink removes the name but not the open handle."""
    MessageQueue.unlink(queue.name)

    assert queue.state is LifecycleState.OPEN
    queue.send(b'still here')
    assert queue.receive() == (b'still here', 0)
    with pytest.raises(QueueNotFound):
        MessageQueue.open(queue.name)

    # Recreate so the fixture teardown has something to unlink.
    MessageQueue.open_or_create(queue.name).close()
