import collections
import os
import time
import uuid
from typing import Any

from posixq.native import NativeQueueService


def unique_name(prefix: str = 'posixq-test') -> str:
    """Returns a queue name no other test uses."""
    return f'/{prefix}-{uuid.uuid4().hex[:16]}'


class FaultInjectingService:
    """Wraps a real service and raises scripted errnos before delegating."""

    def __init__(self, inner: NativeQueueService) -> None:
        self.inner = inner
        self.faults: dict[str, collections.deque] = collections.defaultdict(
            collections.deque
        )
        self.calls: collections.Counter = collections.Counter()

    def fail(self, method: str, *codes: int, delay: float = 0.0) -> None:
        """Makes the next calls to ``method`` raise ``codes`` in order."""
        for code in codes:
            self.faults[method].append((code, delay))

    def __getattr__(self, method: str) -> Any:
        target = getattr(self.inner, method)
        if not callable(target):
            return target

        def call(*args: Any, **kwargs: Any) -> Any:
            self.calls[method] += 1
            if self.faults[method]:
                code, delay = self.faults[method].popleft()
                if delay:
                    time.sleep(delay)
                raise OSError(code, os.strerror(code))
            return target(*args, **kwargs)

        return call
