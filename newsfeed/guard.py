from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator
import threading


class RefreshGuard:
    """
    Skip-if-busy flag for refresh cycles. Acquisition never blocks: a caller
    that finds a cycle in progress is told so and is expected to skip.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        if self._lock.locked():
            self._lock.release()

    @contextmanager
    def running(self) -> Iterator[bool]:
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()
