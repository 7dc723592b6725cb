"""Single-slot notifications and the counted busy indicator."""

from __future__ import annotations

import pytest

from finance_tracker.busy import BusyIndicator
from finance_tracker.notifications import NotificationBroadcaster, Severity


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_new_notification_replaces_current_one() -> None:
    broadcaster = NotificationBroadcaster(duration=3.0, clock=FakeClock())

    first = broadcaster.success("Saved")
    second = broadcaster.error("Failed")

    current = broadcaster.current()
    assert current == second
    assert current.severity is Severity.ERROR
    assert second.id > first.id


def test_notification_auto_dismisses_after_duration() -> None:
    clock = FakeClock()
    broadcaster = NotificationBroadcaster(duration=3.0, clock=clock)
    broadcaster.info("Hello")

    clock.now += 2.9
    assert broadcaster.current() is not None
    clock.now += 0.2
    assert broadcaster.current() is None


def test_each_notify_restarts_the_dismiss_timer() -> None:
    clock = FakeClock()
    broadcaster = NotificationBroadcaster(duration=3.0, clock=clock)
    broadcaster.warning("First")
    clock.now += 2.5
    broadcaster.warning("First")
    clock.now += 2.5

    assert broadcaster.current().message == "First"


def test_dismiss_hides_immediately() -> None:
    broadcaster = NotificationBroadcaster(clock=FakeClock())
    broadcaster.notify("Bye", "info")
    broadcaster.dismiss()
    assert broadcaster.current() is None


def test_overlapping_operations_keep_overlay_until_last_finishes() -> None:
    busy = BusyIndicator()

    busy.set_busy(True)   # operation A starts
    busy.set_busy(True)   # operation B starts
    busy.set_busy(False)  # A finishes while B is pending

    assert busy.active
    assert busy.in_flight == 1

    busy.set_busy(False)
    assert not busy.active


def test_busy_context_releases_on_error() -> None:
    busy = BusyIndicator()

    with pytest.raises(RuntimeError):
        with busy.busy():
            assert busy.active
            raise RuntimeError("boom")

    assert not busy.active


def test_unmatched_release_does_not_go_negative() -> None:
    busy = BusyIndicator()
    busy.release()
    busy.acquire()
    assert busy.active
    busy.release()
    assert busy.in_flight == 0
