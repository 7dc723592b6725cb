"""Framework-free view controllers for each screen of the client.

Each view owns its own fetched copy of a remote collection. Mutations are
round trips followed by a refetch of the whole list; results of a request are
applied only while the view is mounted and the request is still the latest one
it issued.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Mapping

from . import aggregation, api, utils
from .busy import BusyIndicator
from .errors import AuthorizationExpired, FinanceClientError, ValidationError
from .notifications import NotificationBroadcaster
from .preferences import DEFAULT_REMOTE_SETTINGS, PreferenceStore
from .session import Role, SessionStore

logger = logging.getLogger(__name__)


class ViewScope:
    """Liveness token for one mounted view."""

    def __init__(self) -> None:
        self.mounted = False
        self._generation = 0

    def mount(self) -> None:
        self.mounted = True

    def unmount(self) -> None:
        self.mounted = False
        self._generation += 1

    def begin(self) -> int:
        self._generation += 1
        return self._generation

    def is_current(self, ticket: int) -> bool:
        return self.mounted and ticket == self._generation


class ResourceView:
    """List plus create/update/delete for one remote collection."""

    noun = "record"
    filter_keys: tuple[str, ...] = ()

    def __init__(
        self,
        service: Any,
        busy: BusyIndicator,
        notifications: NotificationBroadcaster,
        *,
        page_size: int = 10,
    ) -> None:
        self.service = service
        self.busy = busy
        self.notifications = notifications
        self.page_size = page_size
        self.scope = ViewScope()
        self.items: list[dict[str, Any]] = []
        self.meta: dict[str, Any] = {}
        self.filters: dict[str, Any] = {}
        self.page = 1
        self.error: str | None = None
        self.form_error: str | None = None
        self.loading = False

    def mount(self) -> bool:
        self.scope.mount()
        return self.load()

    def unmount(self) -> None:
        self.scope.unmount()

    def _drop(self) -> None:
        self.items = []
        self.meta = {}
        self.error = None
        self.loading = False

    def query_params(self) -> dict[str, Any]:
        params = {key: value for key, value in self.filters.items() if key in self.filter_keys}
        params["page"] = self.page
        params["limit"] = self.page_size
        return params

    def set_filters(self, **filters: Any) -> bool:
        unknown = set(filters) - set(self.filter_keys)
        if unknown:
            raise ValueError(f"Unknown {self.noun} filters: {', '.join(sorted(unknown))}")
        self.filters = {key: value for key, value in filters.items() if value not in (None, "")}
        self.page = 1
        return self.load()

    def set_page(self, page: int) -> bool:
        self.page = max(int(page), 1)
        return self.load()

    def load(self) -> bool:
        ticket = self.scope.begin()
        self.loading = True
        try:
            items, meta = self.service.list(**self.query_params())
        except AuthorizationExpired:
            self._drop()
            return False
        except FinanceClientError as exc:
            logger.error("Loading %ss failed: %s", self.noun, exc)
            if self.scope.is_current(ticket):
                self.error = f"Could not load {self.noun}s. {exc.message}"
                self.loading = False
            return False

        if not self.scope.is_current(ticket):
            logger.debug("Discarding stale %s list response", self.noun)
            return False
        self.items = items
        self.meta = meta
        self.error = None
        self.loading = False
        return True

    def validate(self, data: Mapping[str, Any], *, partial: bool = False) -> dict[str, Any]:
        return dict(data)

    def _mutate(self, action: Callable[[], Any], success: str, failure: str, *, refetch: bool = True) -> bool:
        self.form_error = None
        try:
            with self.busy.busy():
                action()
        except ValidationError as exc:
            self.form_error = exc.message
            return False
        except AuthorizationExpired:
            self._drop()
            return False
        except FinanceClientError as exc:
            logger.error("%s: %s", failure, exc)
            self.notifications.error(f"{failure}. {exc.message}")
            return False

        self.notifications.success(success)
        if refetch:
            self.load()
        return True

    def create(self, data: Mapping[str, Any]) -> bool:
        return self._mutate(
            lambda: self.service.create(self.validate(data)),
            f"{self.noun.capitalize()} created.",
            f"Could not create {self.noun}",
        )

    def update(self, item_id: Any, data: Mapping[str, Any]) -> bool:
        return self._mutate(
            lambda: self.service.update(item_id, self.validate(data, partial=True)),
            f"{self.noun.capitalize()} updated.",
            f"Could not update {self.noun}",
        )

    def delete(self, item_id: Any) -> bool:
        return self._mutate(
            lambda: self.service.delete(item_id),
            f"{self.noun.capitalize()} deleted.",
            f"Could not delete {self.noun}",
        )


def _provided(data: Mapping[str, Any], partial: bool) -> Mapping[str, Any]:
    """On a partial update a ``None`` field means "unchanged" and is not sent."""

    if not partial:
        return data
    return {key: value for key, value in data.items() if value is not None}


def _require_text(data: Mapping[str, Any], key: str, label: str, partial: bool) -> str | None:
    value = data.get(key)
    if value is None and partial:
        return None
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{label} is required.", field=key)
    return text


def _require_positive(data: Mapping[str, Any], key: str, label: str, partial: bool) -> float | None:
    value = data.get(key)
    if value is None and partial:
        return None
    cents = utils.to_cents(value)
    if cents <= 0:
        raise ValidationError(f"{label} must be greater than zero.", field=key)
    return utils.from_cents(cents)


def _iso_date(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class TransactionsView(ResourceView):
    noun = "transaction"
    filter_keys = ("search", "category", "type", "status", "startDate", "endDate")

    def query_params(self) -> dict[str, Any]:
        params = super().query_params()
        if "type" in params:
            params["type"] = api.server_kind(params["type"])
        for key in ("startDate", "endDate"):
            if key in params:
                params[key] = _iso_date(params[key])
        return params

    def validate(self, data: Mapping[str, Any], *, partial: bool = False) -> dict[str, Any]:
        data = _provided(data, partial)
        payload = dict(data)
        for key, label in (("description", "Description"), ("category", "Category")):
            text = _require_text(data, key, label, partial)
            if text is not None:
                payload[key] = text
        amount = _require_positive(data, "amount", "Amount", partial)
        if amount is not None:
            payload["amount"] = amount
        if "type" in data or not partial:
            kind = aggregation.KIND_ALIASES.get(str(data.get("type") or "").strip().lower())
            if kind is None:
                raise ValidationError("Type must be income or expense.", field="type")
            payload["type"] = api.server_kind(kind)
        if "date" in data or not partial:
            payload["date"] = _iso_date(data.get("date") or date.today())
        return payload


class SavingsView(ResourceView):
    noun = "saving"
    filter_keys = ("category", "status")

    def validate(self, data: Mapping[str, Any], *, partial: bool = False) -> dict[str, Any]:
        data = _provided(data, partial)
        payload = dict(data)
        name = _require_text(data, "name", "Name", partial)
        if name is not None:
            payload["name"] = name
            payload.setdefault("description", name)
        target = _require_positive(data, "targetAmount", "Target amount", partial)
        if target is not None:
            payload["targetAmount"] = target
        if "deadline" in data or not partial:
            payload["deadline"] = _iso_date(data.get("deadline") or date.today())
        return payload

    def add_amount(self, saving_id: Any, amount: Any) -> bool:
        def action() -> None:
            cents = utils.to_cents(amount)
            if cents <= 0:
                raise ValidationError("Amount must be greater than zero.", field="amount")
            self.service.add_amount(saving_id, utils.from_cents(cents))

        return self._mutate(action, "Amount added to saving.", "Could not add amount")

    @staticmethod
    def progress(saving: Mapping[str, Any]) -> float:
        """Fraction of the target reached, capped at 1."""

        target = utils.to_cents(saving.get("targetAmount"))
        if target <= 0:
            return 0.0
        return min(utils.to_cents(saving.get("currentAmount")) / target, 1.0)


class UsersView(ResourceView):
    noun = "user"

    def __init__(self, service: Any, sessions: SessionStore, busy: BusyIndicator, notifications: NotificationBroadcaster, **kwargs: Any) -> None:
        super().__init__(service, busy, notifications, **kwargs)
        self.sessions = sessions

    @property
    def restricted(self) -> bool:
        session = self.sessions.current_session()
        return session is None or not session.is_admin

    def load(self) -> bool:
        if self.restricted:
            self._drop()
            return False
        return super().load()

    def validate(self, data: Mapping[str, Any], *, partial: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        name = _require_text(data, "name", "Name", partial)
        if name is not None:
            payload["name"] = name
        if "role" in data or not partial:
            role = str(data.get("role") or "").strip().lower()
            if role not in {"admin", "visitor", "visitante"}:
                raise ValidationError("Role must be admin or visitor.", field="role")
            payload["role"] = api.server_role(Role.parse(role))
        return payload

    def update(self, item_id: Any, data: Mapping[str, Any]) -> bool:
        def action() -> None:
            updated = self.service.update(item_id, self.validate(data, partial=True))
            if isinstance(updated, dict):
                self.items = [updated if row.get("id") == item_id else row for row in self.items]

        return self._mutate(action, "User updated.", "Could not save changes", refetch=False)


class DashboardView:
    def __init__(self, transactions: api.TransactionService, *, today: Callable[[], date] = date.today) -> None:
        self.transactions = transactions
        self._today = today
        self.scope = ViewScope()
        self.payload: aggregation.DashboardPayload | None = None
        self.error: str | None = None
        self.loading = False

    def mount(self) -> bool:
        self.scope.mount()
        return self.load()

    def unmount(self) -> None:
        self.scope.unmount()

    def load(self) -> bool:
        ticket = self.scope.begin()
        self.loading = True
        try:
            records = self.transactions.all()
        except AuthorizationExpired:
            self.payload = None
            self.loading = False
            return False
        except FinanceClientError as exc:
            logger.error("Loading dashboard failed: %s", exc)
            if self.scope.is_current(ticket):
                self.error = f"Could not load dashboard data. {exc.message}"
                self.loading = False
            return False

        try:
            stats = self.transactions.stats()
        except AuthorizationExpired:
            self.payload = None
            self.loading = False
            return False
        except FinanceClientError as exc:
            logger.warning("Stats unavailable, computing totals locally: %s", exc)
            stats = None

        if not self.scope.is_current(ticket):
            logger.debug("Discarding stale dashboard response")
            return False
        self.payload = aggregation.build_dashboard(records, stats, today=self._today())
        self.error = None
        self.loading = False
        return True


class ProfileView:
    def __init__(
        self,
        auth: api.AuthService,
        sessions: SessionStore,
        busy: BusyIndicator,
        notifications: NotificationBroadcaster,
    ) -> None:
        self.auth = auth
        self.sessions = sessions
        self.busy = busy
        self.notifications = notifications
        self.scope = ViewScope()
        self.profile: dict[str, Any] = {}
        self.error: str | None = None
        self.form_error: str | None = None

    @property
    def photo(self) -> str | None:
        session = self.sessions.current_session()
        return self.profile.get("photo") or (session.photo if session else None)

    def mount(self) -> bool:
        self.scope.mount()
        return self.load()

    def unmount(self) -> None:
        self.scope.unmount()

    def load(self) -> bool:
        ticket = self.scope.begin()
        try:
            body = self.auth.profile()
        except AuthorizationExpired:
            self.profile = {}
            return False
        except FinanceClientError as exc:
            logger.error("Loading profile failed: %s", exc)
            if self.scope.is_current(ticket):
                self.error = f"Could not load profile. {exc.message}"
            return False
        if not self.scope.is_current(ticket):
            return False
        self.profile = body.get("user", body) if isinstance(body, dict) else {}
        self.error = None
        return True

    def update(
        self,
        name: str,
        current_password: str = "",
        new_password: str = "",
        confirmation: str = "",
    ) -> bool:
        self.form_error = None
        if not name.strip():
            self.form_error = "Name is required."
            return False
        if new_password or confirmation:
            if new_password != confirmation:
                self.form_error = "Passwords do not match."
                return False
            if not current_password:
                self.form_error = "Current password is required to set a new one."
                return False

        payload: dict[str, Any] = {"name": name.strip()}
        if new_password:
            payload["currentPassword"] = current_password
            payload["newPassword"] = new_password

        try:
            with self.busy.busy():
                body = self.auth.update_profile(payload)
        except AuthorizationExpired:
            self.profile = {}
            return False
        except FinanceClientError as exc:
            logger.error("Profile update failed: %s", exc)
            self.notifications.error(f"Could not update profile. {exc.message}")
            return False

        user = body.get("user", body) if isinstance(body, dict) else {}
        user = user or {"name": payload["name"]}
        self.profile = {**self.profile, **user}
        self.sessions.update_user(user)
        self.notifications.success("Profile updated.")
        return True

    def upload_photo(self, filename: str, content: bytes, content_type: str = "image/jpeg") -> bool:
        try:
            with self.busy.busy():
                body = self.auth.upload_photo(filename, content, content_type)
        except AuthorizationExpired:
            self.profile = {}
            return False
        except FinanceClientError as exc:
            logger.error("Photo upload failed: %s", exc)
            self.notifications.error(f"Could not update photo. {exc.message}")
            return False

        body = body if isinstance(body, dict) else {}
        photo = body.get("photo") or body.get("photoUrl") or body.get("path")
        if not photo:
            self.notifications.error("Could not update photo. The server did not return a path.")
            return False
        self.profile = {**self.profile, "photo": photo}
        self.sessions.update_user({"photo": photo})
        self.notifications.success("Photo updated.")
        return True


class SettingsView:
    def __init__(
        self,
        auth: api.AuthService,
        preferences: PreferenceStore,
        busy: BusyIndicator,
        notifications: NotificationBroadcaster,
    ) -> None:
        self.auth = auth
        self.preferences = preferences
        self.busy = busy
        self.notifications = notifications
        self.scope = ViewScope()
        self.settings: dict[str, Any] = dict(DEFAULT_REMOTE_SETTINGS)
        self.error: str | None = None

    def mount(self) -> bool:
        self.scope.mount()
        return self.load()

    def unmount(self) -> None:
        self.scope.unmount()

    def load(self) -> bool:
        ticket = self.scope.begin()
        try:
            body = self.auth.profile()
        except AuthorizationExpired:
            return False
        except FinanceClientError as exc:
            logger.error("Loading settings failed: %s", exc)
            if self.scope.is_current(ticket):
                self.error = f"Could not load settings. {exc.message}"
            return False
        if not self.scope.is_current(ticket):
            return False
        remote = body.get("settings") if isinstance(body, dict) else None
        self.settings = {**DEFAULT_REMOTE_SETTINGS, **(remote or {}), "darkMode": self.preferences.dark_mode}
        self.error = None
        return True

    def save(self, **changes: Any) -> bool:
        """Save notification and language settings; dark mode goes through the preference store."""

        changes.pop("darkMode", None)
        payload = {**self.settings, **changes, "darkMode": self.preferences.dark_mode}
        try:
            with self.busy.busy():
                self.auth.update_settings(payload)
        except AuthorizationExpired:
            return False
        except FinanceClientError as exc:
            logger.error("Saving settings failed: %s", exc)
            self.error = f"Could not save settings. {exc.message}"
            return False
        self.settings = payload
        self.preferences.merge_remote_settings(payload)
        self.error = None
        self.notifications.success("Settings saved.")
        return True

    def toggle_dark_mode(self, executor: Any = None) -> bool:
        value = self.preferences.toggle(executor)
        self.settings["darkMode"] = value
        return value
