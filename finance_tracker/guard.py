"""Navigation state and the gate in front of the resource views."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .session import Role, SessionStore

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
REGISTER_PATH = "/register"
HOME_PATH = "/dashboard"
PUBLIC_PATHS = frozenset({LOGIN_PATH, REGISTER_PATH})
RESTRICTED_NOTICE = "Access restricted to administrators."

ROUTES: dict[str, Role | None] = {
    "/dashboard": None,
    "/transactions": None,
    "/savings": None,
    "/profile": None,
    "/settings": None,
    "/users": Role.ADMIN,
}


class Navigator:
    def __init__(self, location: str = "/") -> None:
        self.location = location
        self.history: list[str] = [location]

    def navigate(self, path: str) -> None:
        if path != self.location:
            logger.debug("Navigate %s -> %s", self.location, path)
        self.location = path
        self.history.append(path)


class GuardState(str, Enum):
    CHECKING = "checking"
    AUTHORIZED = "authorized"
    REDIRECTING = "redirecting"
    RESTRICTED = "restricted"


@dataclass(frozen=True)
class GuardDecision:
    state: GuardState
    path: str
    redirect_to: str | None = None
    notice: str | None = None

    @property
    def render(self) -> bool:
        return self.state is GuardState.AUTHORIZED


class RouteGuard:
    def __init__(self, sessions: SessionStore, navigator: Navigator) -> None:
        self.sessions = sessions
        self.navigator = navigator

    def check(self, path: str, required_role: Role | None = None) -> GuardDecision:
        if self.sessions.pending:
            return GuardDecision(GuardState.CHECKING, path)

        session = self.sessions.current_session()
        if path in PUBLIC_PATHS:
            if session is not None:
                self.navigator.navigate(HOME_PATH)
                return GuardDecision(GuardState.REDIRECTING, path, redirect_to=HOME_PATH)
            return GuardDecision(GuardState.AUTHORIZED, path)

        if session is None:
            self.navigator.navigate(LOGIN_PATH)
            return GuardDecision(GuardState.REDIRECTING, path, redirect_to=LOGIN_PATH)

        role = required_role if required_role is not None else ROUTES.get(path)
        if role is Role.ADMIN and not session.is_admin:
            return GuardDecision(GuardState.RESTRICTED, path, notice=RESTRICTED_NOTICE)
        return GuardDecision(GuardState.AUTHORIZED, path)

    def resolve(self) -> GuardDecision:
        """Check the navigator's current location, mapping ``/`` to the home view."""

        path = self.navigator.location
        if path == "/" or (path not in ROUTES and path not in PUBLIC_PATHS):
            path = HOME_PATH
            self.navigator.navigate(path)
        return self.check(path)
