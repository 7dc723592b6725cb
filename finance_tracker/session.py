"""Authenticated identity and bearer token for the current client instance."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping

from . import storage
from .errors import AuthorizationExpired, NetworkOrServerError, ValidationError

if TYPE_CHECKING:
    from .api import AuthService

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    VISITOR = "visitor"

    @classmethod
    def parse(cls, raw: object) -> "Role":
        if isinstance(raw, str) and raw.strip().lower() == "admin":
            return cls.ADMIN
        return cls.VISITOR


class SessionStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"


@dataclass(frozen=True)
class Session:
    user_id: Any
    name: str
    email: str
    role: Role
    photo: str | None
    auth_token: str

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @classmethod
    def from_user(cls, user: Mapping[str, Any], token: str) -> "Session":
        return cls(
            user_id=user.get("id", user.get("_id")),
            name=str(user.get("name") or ""),
            email=str(user.get("email") or ""),
            role=Role.parse(user.get("role")),
            photo=user.get("photo") or user.get("photoUrl") or None,
            auth_token=token,
        )

    def user_record(self) -> dict[str, Any]:
        record = asdict(self)
        record.pop("auth_token")
        record["id"] = record.pop("user_id")
        record["role"] = self.role.value
        return record


SessionListener = Callable[["Session | None"], None]


class SessionStore:
    """Owns the session; every mutation goes through this object.

    The token is persisted under ``token`` and the user record under ``user``
    in the durable slot so a restart can restore the session before the
    profile round trip completes.
    """

    def __init__(self, local: storage.LocalStorage, auth: "AuthService | None" = None) -> None:
        self._local = local
        self._auth = auth
        self._lock = threading.RLock()
        self._session: Session | None = None
        self._listeners: list[SessionListener] = []
        self.status = SessionStatus.PENDING

    def bind(self, auth: "AuthService") -> None:
        """Attach the auth service once the HTTP client exists."""

        self._auth = auth

    @property
    def auth(self) -> "AuthService":
        if self._auth is None:
            raise RuntimeError("SessionStore has no AuthService bound")
        return self._auth

    @property
    def pending(self) -> bool:
        return self.status is SessionStatus.PENDING

    def current_session(self) -> Session | None:
        with self._lock:
            return self._session

    def token(self) -> str | None:
        with self._lock:
            return self._session.auth_token if self._session else None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, session: Session | None) -> None:
        with self._lock:
            self._session = session
            self.status = SessionStatus.READY
            if session is None:
                self._local.remove(storage.TOKEN_KEY)
                self._local.remove(storage.USER_KEY)
            else:
                self._local.set(storage.TOKEN_KEY, session.auth_token)
                self._local.set(storage.USER_KEY, json.dumps(session.user_record()))
        for listener in list(self._listeners):
            listener(session)

    def restore(self) -> Session | None:
        """Rebuild the session from the durable slot, then refresh the profile."""

        token = self._local.get(storage.TOKEN_KEY)
        if not token:
            self.status = SessionStatus.READY
            return None

        cached: dict[str, Any] = {}
        raw_user = self._local.get(storage.USER_KEY)
        if raw_user:
            try:
                cached = json.loads(raw_user)
            except json.JSONDecodeError:
                cached = {}
        with self._lock:
            self._session = Session.from_user(cached, token)

        try:
            profile = self.auth.profile()
        except AuthorizationExpired:
            logger.info("Stored token rejected; session discarded")
        except NetworkOrServerError as exc:
            logger.warning("Profile refresh failed, keeping cached session: %s", exc)
        else:
            user = profile.get("user", profile) if isinstance(profile, dict) else {}
            self._set(Session.from_user(user, token))
        finally:
            self.status = SessionStatus.READY
        return self.current_session()

    def login(self, email: str, password: str) -> Session:
        if not email.strip() or not password:
            raise ValidationError("Email and password are required.", field="email" if not email.strip() else "password")

        body = self.auth.login(email.strip(), password)
        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise NetworkOrServerError("Login response did not include a token")
        session = Session.from_user(body.get("user") or {}, token)
        self._set(session)
        logger.info("Signed in as user %s", session.user_id)
        return session

    def register(self, name: str, email: str, password: str, confirmation: str | None = None) -> None:
        if not name.strip():
            raise ValidationError("Name is required.", field="name")
        if not email.strip():
            raise ValidationError("Email is required.", field="email")
        if not password:
            raise ValidationError("Password is required.", field="password")
        if confirmation is not None and confirmation != password:
            raise ValidationError("Passwords do not match.", field="confirmation")
        self.auth.register(name.strip(), email.strip(), password)

    def logout(self) -> None:
        self._set(None)
        logger.info("Signed out")

    def clear_unauthorized(self) -> None:
        """Forced clear after a 401 from any request."""

        if self.current_session() is not None or self._local.get(storage.TOKEN_KEY):
            self._set(None)

    def update_user(self, user: Mapping[str, Any]) -> Session | None:
        current = self.current_session()
        if current is None:
            return None
        refreshed = replace(
            current,
            name=str(user.get("name") or current.name),
            email=str(user.get("email") or current.email),
            role=Role.parse(user.get("role", current.role.value)),
            photo=user.get("photo") or current.photo,
        )
        self._set(refreshed)
        return refreshed
