"""Single-slot transient notifications."""

from __future__ import annotations

import itertools
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable


class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True)
class Notification:
    id: int
    message: str
    severity: Severity
    expires_at: float


class NotificationBroadcaster:
    """Holds at most one notification; a new one replaces the current one.

    There is no queue. Every ``notify`` restarts the auto-dismiss deadline.
    """

    def __init__(self, duration: float = 3.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.duration = duration
        self._clock = clock
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._current: Notification | None = None

    def notify(self, message: str, severity: Severity | str = Severity.INFO) -> Notification:
        notification = Notification(
            id=next(self._ids),
            message=message,
            severity=Severity(severity),
            expires_at=self._clock() + self.duration,
        )
        with self._lock:
            self._current = notification
        return notification

    def success(self, message: str) -> Notification:
        return self.notify(message, Severity.SUCCESS)

    def error(self, message: str) -> Notification:
        return self.notify(message, Severity.ERROR)

    def info(self, message: str) -> Notification:
        return self.notify(message, Severity.INFO)

    def warning(self, message: str) -> Notification:
        return self.notify(message, Severity.WARNING)

    def dismiss(self) -> None:
        with self._lock:
            self._current = None

    def current(self) -> Notification | None:
        with self._lock:
            if self._current is not None and self._clock() >= self._current.expires_at:
                self._current = None
            return self._current
