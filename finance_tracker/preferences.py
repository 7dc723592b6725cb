"""Display-mode preference kept in the durable slot and mirrored to the profile.

Reconciliation between the local slot and the remote settings is decided by
the ``updatedAt`` timestamp each side carries. When neither side has one the
local slot wins if it exists, otherwise the remote value is adopted.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Literal, Mapping

from . import storage
from .errors import FinanceClientError

if TYPE_CHECKING:
    from .api import AuthService

logger = logging.getLogger(__name__)

REMOTE_TIMESTAMP_KEY = "darkModeUpdatedAt"
DEFAULT_REMOTE_SETTINGS: dict[str, Any] = {
    "emailNotifications": True,
    "monthlyReport": True,
    "darkMode": False,
    "language": "pt-BR",
}


class PreferenceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOCAL = "local"
    RECONCILED = "reconciled"


@dataclass(frozen=True)
class StoredPreference:
    value: bool
    updated_at: datetime | None = None

    def dumps(self) -> str:
        return json.dumps(
            {
                "value": self.value,
                "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            }
        )

    @classmethod
    def loads(cls, raw: str | None) -> "StoredPreference | None":
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        # Older clients stored a bare JSON boolean.
        if isinstance(data, bool):
            return cls(value=data)
        if isinstance(data, dict) and isinstance(data.get("value"), bool):
            return cls(value=data["value"], updated_at=parse_timestamp(data.get("updatedAt")))
        return None


def parse_timestamp(raw: object) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def choose_winner(
    local: StoredPreference | None,
    remote_value: bool | None,
    remote_at: datetime | None,
) -> Literal["local", "remote"]:
    """Decide which side of the reconciliation is authoritative."""

    if remote_value is None:
        return "local"
    if local is None:
        return "remote"
    if local.updated_at and remote_at:
        return "remote" if remote_at > local.updated_at else "local"
    if remote_at and not local.updated_at:
        return "remote"
    return "local"


PreferenceListener = Callable[[bool], None]


class PreferenceStore:
    def __init__(
        self,
        local: storage.LocalStorage,
        auth: "AuthService",
        *,
        token_provider: Callable[[], str | None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._local = local
        self._auth = auth
        self._token_provider = token_provider
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._listeners: list[PreferenceListener] = []
        self._preference = StoredPreference(value=False)
        self._had_local = False
        self._generation = 0
        self._remote_settings: dict[str, Any] = dict(DEFAULT_REMOTE_SETTINGS)
        self.state = PreferenceState.UNINITIALIZED

    @property
    def dark_mode(self) -> bool:
        return self._preference.value

    @property
    def remote_settings(self) -> dict[str, Any]:
        return dict(self._remote_settings)

    def subscribe(self, listener: PreferenceListener) -> None:
        self._listeners.append(listener)

    def _signed_in(self) -> bool:
        return self._token_provider is None or bool(self._token_provider())

    def _apply(self, preference: StoredPreference) -> bool:
        """Store ``preference``; callers notify listeners once the lock is released."""

        changed = preference.value != self._preference.value
        self._preference = preference
        self._local.set(storage.DARK_MODE_KEY, preference.dumps())
        return changed

    def _notify(self, value: bool) -> None:
        for listener in list(self._listeners):
            listener(value)

    def initialize(self) -> bool:
        """Synchronously read the durable slot so the first render uses it."""

        stored = StoredPreference.loads(self._local.get(storage.DARK_MODE_KEY))
        with self._lock:
            self._had_local = stored is not None
            self._preference = stored or StoredPreference(value=False)
            self.state = PreferenceState.LOCAL
        return self._preference.value

    def reconcile(self) -> PreferenceState:
        """Compare with the remote profile settings and settle on one value.

        Failures (including not being signed in) leave the store in ``local``
        and are only logged.
        """

        if self.state is PreferenceState.UNINITIALIZED:
            self.initialize()

        if not self._signed_in():
            logger.debug("Preference reconciliation skipped: not signed in")
            return self.state

        with self._lock:
            generation = self._generation
            local = self._preference if self._had_local else None

        try:
            profile = self._auth.profile()
        except FinanceClientError as exc:
            logger.info("Preference reconciliation skipped: %s", exc)
            return self.state

        settings = profile.get("settings") if isinstance(profile, dict) else None
        settings = settings if isinstance(settings, dict) else {}
        remote_value = settings.get("darkMode")
        remote_value = remote_value if isinstance(remote_value, bool) else None
        remote_at = parse_timestamp(settings.get(REMOTE_TIMESTAMP_KEY))

        changed = False
        with self._lock:
            self._remote_settings = {**DEFAULT_REMOTE_SETTINGS, **settings}
            if generation != self._generation:
                logger.info("Preference changed during reconciliation; keeping the newer local value")
                self.state = PreferenceState.RECONCILED
                return self.state
            winner = choose_winner(local, remote_value, remote_at)
            if winner == "remote":
                changed = self._apply(StoredPreference(value=bool(remote_value), updated_at=remote_at))
                self._had_local = True
            pushed = self._preference

        if changed:
            self._notify(pushed.value)
        if winner == "local":
            self._push(pushed, generation)
        logger.info("Preference reconciled (%s wins): dark_mode=%s", winner, self.dark_mode)
        self.state = PreferenceState.RECONCILED
        return self.state

    def reconcile_in_background(self, executor: Executor) -> Future:
        return executor.submit(self.reconcile)

    def set_dark_mode(self, value: bool, executor: Executor | None = None) -> bool:
        """Write through to the local slot now and to the remote profile after.

        The local value is never rolled back when the remote write fails.
        """

        with self._lock:
            self._generation += 1
            generation = self._generation
            preference = StoredPreference(value=value, updated_at=self._clock())
            changed = self._apply(preference)
            self._had_local = True
            if self.state is PreferenceState.UNINITIALIZED:
                self.state = PreferenceState.LOCAL

        if changed:
            self._notify(value)
        if executor is not None:
            executor.submit(self._push, preference, generation)
        else:
            self._push(preference, generation)
        return value

    def toggle(self, executor: Executor | None = None) -> bool:
        return self.set_dark_mode(not self.dark_mode, executor)

    def _push(self, preference: StoredPreference, generation: int) -> None:
        if not self._signed_in():
            return
        with self._lock:
            if generation != self._generation:
                return
            payload = {
                **self._remote_settings,
                "darkMode": preference.value,
                REMOTE_TIMESTAMP_KEY: preference.updated_at.isoformat() if preference.updated_at else None,
            }
        try:
            self._auth.update_settings(payload)
        except FinanceClientError as exc:
            logger.warning("Could not save display mode to the profile: %s", exc)
            return
        with self._lock:
            self._remote_settings = payload

    def merge_remote_settings(self, settings: Mapping[str, Any]) -> None:
        """Record settings saved elsewhere so later pushes do not revert them."""

        with self._lock:
            self._remote_settings = {**self._remote_settings, **settings}
