from collections.abc import Iterator

import pytest
from helpers import FaultInjectingService, unique_name

from posixq import MessageQueue, QueueAttributes, QueueNotFound, runtime

MAX_MESSAGES = 4
MESSAGE_SIZE = 64


@pytest.fixture
def queue_name() -> Iterator[str]:
    """Yields a fresh queue name and unlinks the queue afterwards."""
    name = unique_name()
    yield name
    try:
        MessageQueue.unlink(name)
    except QueueNotFound:
        pass


@pytest.fixture
def attributes() -> QueueAttributes:
    return QueueAttributes(max_messages=MAX_MESSAGES, message_size=MESSAGE_SIZE)


@pytest.fixture
def queue(queue_name: str, attributes: QueueAttributes) -> Iterator[MessageQueue]:
    """Yields a small blocking queue created for the test."""
    queue = MessageQueue.open_or_create(queue_name, attributes=attributes)
    yield queue
    if not queue.closed:
        queue.close()


@pytest.fixture
def faulty() -> FaultInjectingService:
    """A service wrapping the real kernel binding with scripted failures."""
    return FaultInjectingService(runtime.default_service())


@pytest.fixture
def faulty_queue(
    queue_name: str, attributes: QueueAttributes, faulty: FaultInjectingService
) -> Iterator[MessageQueue]:
    queue = MessageQueue.open_or_create(
        queue_name, attributes=attributes, service=faulty
    )
    yield queue
    if not queue.closed:
        queue.close()
