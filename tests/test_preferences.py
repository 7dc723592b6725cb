"""Display-mode preference: local slot, remote reconciliation and toggling."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from finance_tracker import storage
from finance_tracker.errors import NetworkOrServerError
from finance_tracker.preferences import (
    PreferenceState,
    PreferenceStore,
    StoredPreference,
    choose_winner,
)
from finance_tracker.storage import MemoryStorage

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class StubAuth:
    """Records settings writes; ``profile_hook`` runs inside ``profile()``."""

    def __init__(self, settings=None, *, profile_error=None, write_error=None) -> None:
        self.settings = settings
        self.profile_error = profile_error
        self.write_error = write_error
        self.writes: list[dict] = []
        self.profile_hook = None

    def profile(self):
        if self.profile_hook is not None:
            self.profile_hook()
        if self.profile_error is not None:
            raise self.profile_error
        return {"id": 1, "settings": self.settings}

    def update_settings(self, settings):
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(dict(settings))
        return settings


def _store(local=None, auth=None) -> PreferenceStore:
    return PreferenceStore(local or MemoryStorage(), auth or StubAuth(), clock=lambda: NOW)


def _slot(local: MemoryStorage) -> StoredPreference:
    return StoredPreference.loads(local.get(storage.DARK_MODE_KEY))


def test_initialize_reads_local_slot_synchronously() -> None:
    local = MemoryStorage({storage.DARK_MODE_KEY: StoredPreference(True, NOW).dumps()})
    store = _store(local)

    assert store.state is PreferenceState.UNINITIALIZED
    assert store.initialize() is True
    assert store.state is PreferenceState.LOCAL


def test_initialize_defaults_to_light_and_accepts_legacy_boolean() -> None:
    assert _store().initialize() is False

    legacy = MemoryStorage({storage.DARK_MODE_KEY: json.dumps(True)})
    assert _store(legacy).initialize() is True


def test_remote_value_adopted_when_local_slot_absent() -> None:
    local = MemoryStorage()
    auth = StubAuth({"darkMode": True, "language": "en-US"})
    store = _store(local, auth)
    store.initialize()

    assert store.reconcile() is PreferenceState.RECONCILED
    assert store.dark_mode is True
    assert _slot(local).value is True
    assert auth.writes == []


def test_local_value_pushed_when_neither_side_has_timestamp() -> None:
    local = MemoryStorage({storage.DARK_MODE_KEY: json.dumps(True)})
    auth = StubAuth({"darkMode": False, "emailNotifications": False, "monthlyReport": True, "language": "en-US"})
    store = _store(local, auth)
    store.initialize()

    store.reconcile()

    assert store.dark_mode is True
    assert auth.writes[-1]["darkMode"] is True
    assert auth.writes[-1]["emailNotifications"] is False
    assert auth.writes[-1]["language"] == "en-US"


def test_newer_timestamp_wins_reconciliation() -> None:
    older = NOW - timedelta(days=1)
    local = MemoryStorage({storage.DARK_MODE_KEY: StoredPreference(False, older).dumps()})
    auth = StubAuth({"darkMode": True, "darkModeUpdatedAt": NOW.isoformat()})
    store = _store(local, auth)
    store.initialize()
    store.reconcile()
    assert store.dark_mode is True
    assert auth.writes == []

    local = MemoryStorage({storage.DARK_MODE_KEY: StoredPreference(False, NOW).dumps()})
    auth = StubAuth({"darkMode": True, "darkModeUpdatedAt": older.isoformat()})
    store = _store(local, auth)
    store.initialize()
    store.reconcile()
    assert store.dark_mode is False
    assert auth.writes[-1]["darkMode"] is False


def test_failed_profile_fetch_stays_local_without_error() -> None:
    local = MemoryStorage({storage.DARK_MODE_KEY: json.dumps(True)})
    store = _store(local, StubAuth(profile_error=NetworkOrServerError("down", status=503)))
    store.initialize()

    assert store.reconcile() is PreferenceState.LOCAL
    assert store.dark_mode is True


def test_toggle_writes_through_and_survives_remote_failure() -> None:
    local = MemoryStorage()
    auth = StubAuth(write_error=NetworkOrServerError("down", status=500))
    store = _store(local, auth)
    store.initialize()

    assert store.toggle() is True
    assert store.dark_mode is True
    assert _slot(local) == StoredPreference(True, NOW)


def test_toggle_round_trip_restores_original_state() -> None:
    local = MemoryStorage({storage.DARK_MODE_KEY: json.dumps(True)})
    auth = StubAuth({"darkMode": True})
    store = _store(local, auth)
    store.initialize()
    store.reconcile()

    store.toggle()
    store.toggle()
    store.reconcile()

    assert store.dark_mode is True
    assert _slot(local).value is True
    assert [write["darkMode"] for write in auth.writes] == [True, False, True, True]


def test_toggle_during_reconciliation_is_not_overwritten() -> None:
    local = MemoryStorage()
    auth = StubAuth({"darkMode": True, "darkModeUpdatedAt": (NOW + timedelta(hours=1)).isoformat()})
    store = _store(local, auth)
    store.initialize()
    auth.profile_hook = lambda: store.set_dark_mode(False)

    store.reconcile()

    assert store.dark_mode is False
    assert _slot(local).value is False
    assert store.state is PreferenceState.RECONCILED


def test_background_reconciliation_runs_on_executor() -> None:
    store = _store(auth=StubAuth({"darkMode": True}))
    store.initialize()

    with ThreadPoolExecutor(max_workers=1) as executor:
        future = store.reconcile_in_background(executor)
        assert future.result(timeout=5) is PreferenceState.RECONCILED

    assert store.dark_mode is True


def test_listeners_fire_only_on_value_change() -> None:
    store = _store()
    store.initialize()
    seen: list[bool] = []
    store.subscribe(seen.append)

    store.set_dark_mode(False)
    store.set_dark_mode(True)
    store.set_dark_mode(True)

    assert seen == [True]


def test_choose_winner_table() -> None:
    assert choose_winner(None, True, None) == "remote"
    assert choose_winner(StoredPreference(False), None, None) == "local"
    assert choose_winner(StoredPreference(False), True, None) == "local"
    assert choose_winner(StoredPreference(False), True, NOW) == "remote"
    assert choose_winner(StoredPreference(False, NOW), True, None) == "local"


def test_signed_out_store_never_calls_the_profile(services, adapter) -> None:
    services.navigator.navigate("/register")
    services.preferences.initialize()

    assert services.preferences.reconcile() is PreferenceState.LOCAL
    services.preferences.toggle()

    assert adapter.sent == []
    assert services.navigator.location == "/register"
    assert services.preferences.dark_mode is True
    assert _slot(services.local).value is True


def test_listener_may_change_the_preference_it_observes() -> None:
    store = _store()
    seen = []

    def listener(value: bool) -> None:
        seen.append(value)
        if len(seen) == 1:
            store.set_dark_mode(False)

    store.subscribe(listener)
    store.initialize()
    store.set_dark_mode(True)

    assert seen == [True, False]
    assert store.dark_mode is False
