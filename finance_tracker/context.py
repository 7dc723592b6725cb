"""Construct every store once and hand out explicit references to them."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

import requests

from . import api, storage, views
from .busy import BusyIndicator
from .config import Settings
from .guard import LOGIN_PATH, Navigator, RouteGuard
from .notifications import NotificationBroadcaster
from .preferences import PreferenceStore
from .session import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    settings: Settings
    local: storage.LocalStorage
    navigator: Navigator
    sessions: SessionStore
    client: api.ApiClient
    auth: api.AuthService
    transactions: api.TransactionService
    savings: api.SavingService
    users: api.UserService
    preferences: PreferenceStore
    notifications: NotificationBroadcaster
    busy: BusyIndicator
    guard: RouteGuard
    executor: ThreadPoolExecutor
    _views: dict[str, Any] = field(default_factory=dict)

    def start(self) -> None:
        """Restore the session, read the local preference and start reconciling it."""

        self.preferences.initialize()
        self.sessions.restore()
        self.preferences.reconcile_in_background(self.executor)

    def view(self, name: str) -> Any:
        """Return the controller for ``name``, creating it on first use."""

        if name not in self._views:
            self._views[name] = self._build_view(name)
        return self._views[name]

    def _build_view(self, name: str) -> Any:
        page_size = self.settings.page_size
        if name == "transactions":
            return views.TransactionsView(self.transactions, self.busy, self.notifications, page_size=page_size)
        if name == "savings":
            return views.SavingsView(self.savings, self.busy, self.notifications, page_size=page_size)
        if name == "users":
            return views.UsersView(self.users, self.sessions, self.busy, self.notifications, page_size=page_size)
        if name == "dashboard":
            return views.DashboardView(self.transactions)
        if name == "profile":
            return views.ProfileView(self.auth, self.sessions, self.busy, self.notifications)
        if name == "settings":
            return views.SettingsView(self.auth, self.preferences, self.busy, self.notifications)
        raise KeyError(f"Unknown view: {name}")

    def unmount_views(self) -> None:
        for view in self._views.values():
            view.unmount()

    def close(self) -> None:
        self.executor.shutdown(wait=False)


def build_services(
    settings: Settings,
    local: storage.LocalStorage | None = None,
    *,
    client_scope: str | None = None,
    http_session: requests.Session | None = None,
) -> AppServices:
    """Wire the stores for one browser.

    Without an explicit ``local`` the durable slot is the settings file seen
    through ``client_scope``. A missing or malformed scope gets a fresh one,
    so the graph starts signed out rather than reading another browser's token.
    """

    if local is None:
        scope = storage.client_scope(client_scope)
        local = storage.ScopedStorage(storage.FileStorage(settings.storage_path), scope)
    navigator = Navigator()
    sessions = SessionStore(local)

    def on_unauthorized() -> None:
        sessions.clear_unauthorized()
        navigator.navigate(LOGIN_PATH)

    client = api.ApiClient(
        settings.api_url,
        sessions.token,
        on_unauthorized,
        session=http_session,
        timeout=settings.request_timeout,
    )
    auth = api.AuthService(client)
    sessions.bind(auth)

    services = AppServices(
        settings=settings,
        local=local,
        navigator=navigator,
        sessions=sessions,
        client=client,
        auth=auth,
        transactions=api.TransactionService(client),
        savings=api.SavingService(client),
        users=api.UserService(client),
        preferences=PreferenceStore(local, auth, token_provider=sessions.token),
        notifications=NotificationBroadcaster(settings.notification_seconds),
        busy=BusyIndicator(),
        guard=RouteGuard(sessions, navigator),
        executor=ThreadPoolExecutor(max_workers=1, thread_name_prefix="finance-bg"),
    )
    logger.debug("Services built for %s", settings.api_url)
    return services
