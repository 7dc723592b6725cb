"""Process-wide busy indicator gating the blocking overlay."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class BusyIndicator:
    """Counts in-flight blocking operations; the overlay shows while any remain."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0

    @property
    def active(self) -> bool:
        with self._lock:
            return self._count > 0

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._count

    def acquire(self) -> None:
        with self._lock:
            self._count += 1

    def release(self) -> None:
        with self._lock:
            if self._count > 0:
                self._count -= 1

    def set_busy(self, active: bool) -> None:
        if active:
            self.acquire()
        else:
            self.release()

    @contextmanager
    def busy(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()
