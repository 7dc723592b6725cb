"""HTTP client for the finance REST API and thin per-resource service facades."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, BinaryIO, Callable, Mapping

import requests

from .errors import AuthorizationExpired, InvalidCredentials, NetworkOrServerError

if TYPE_CHECKING:
    from .session import Role

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], "str | None"]

# The backend speaks Portuguese enum values on the wire.
SERVER_KINDS = {"income": "receita", "expense": "despesa"}
SERVER_ROLES = {"admin": "admin", "visitor": "visitante"}


def server_kind(kind: str) -> str:
    normalised = str(kind).strip().lower()
    if normalised in SERVER_KINDS.values():
        return normalised
    return SERVER_KINDS.get(normalised, normalised)


def server_role(role: "Role | str") -> str:
    value = getattr(role, "value", role)
    return SERVER_ROLES.get(str(value), str(value))


def _server_message(response: requests.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("error", "details", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def _clean_params(params: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    cleaned = {key: value for key, value in params.items() if value is not None and value != ""}
    return cleaned or None


class ApiClient:
    """Issue JSON requests against ``base_url``.

    The bearer token is read from ``token_provider`` on every call. Any 401
    runs ``on_unauthorized`` before :class:`AuthorizationExpired` is raised, so
    the reaction is global rather than left to each caller.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        on_unauthorized: Callable[[], None],
        *,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._on_unauthorized = on_unauthorized
        self._session = session or requests.Session()
        self._timeout = timeout

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
    ) -> Any:
        headers = {"Accept": "application/json"}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        url = self.base_url + "/" + path.lstrip("/")
        logger.debug("%s %s", method.upper(), path)
        try:
            response = self._session.request(
                method.upper(),
                url,
                headers=headers,
                json=json if files is None else None,
                data=json if files is not None else None,
                params=_clean_params(params),
                files=files,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method.upper(), path, exc)
            raise NetworkOrServerError(f"Could not reach the server: {exc}") from exc

        if response.status_code == 401:
            logger.warning("%s %s returned 401; clearing session", method.upper(), path)
            self._on_unauthorized()
            raise AuthorizationExpired(_server_message(response) or AuthorizationExpired().message)

        if not response.ok:
            message = _server_message(response) or response.reason or "Request failed"
            logger.warning("%s %s returned %s: %s", method.upper(), path, response.status_code, message)
            raise NetworkOrServerError(message, status=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkOrServerError("Server returned a non-JSON body", status=response.status_code) from exc

    def get(self, path: str, **params: Any) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: Any = None) -> Any:
        return self.request("POST", path, json=payload)

    def put(self, path: str, payload: Any = None) -> Any:
        return self.request("PUT", path, json=payload)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)


def _unwrap_list(body: Any, key: str) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    """Accept either a bare list or ``{key: [...], total, page, pages}``."""

    if isinstance(body, list):
        return body, {"total": len(body)}
    if isinstance(body, dict):
        items = body.get(key)
        if not isinstance(items, list):
            items = []
        meta = {name: body[name] for name in ("total", "page", "pages", "limit") if name in body}
        meta.setdefault("total", len(items))
        return items, meta
    return [], {"total": 0}


class AuthService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def login(self, email: str, password: str) -> dict[str, Any]:
        try:
            return self.client.post("/auth/login", {"email": email, "password": password})
        except AuthorizationExpired as exc:
            raise InvalidCredentials() from exc
        except NetworkOrServerError as exc:
            if exc.status in (400, 403, 404):
                raise InvalidCredentials(exc.message) from exc
            raise

    def register(self, name: str, email: str, password: str) -> dict[str, Any]:
        return self.client.post("/auth/register", {"name": name, "email": email, "password": password})

    def profile(self) -> dict[str, Any]:
        return self.client.get("/auth/profile")

    def update_profile(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.client.put("/auth/profile", dict(payload))

    def update_settings(self, settings: Mapping[str, Any]) -> dict[str, Any]:
        return self.client.put("/auth/settings", dict(settings))

    def upload_photo(self, filename: str, content: bytes | BinaryIO, content_type: str = "image/jpeg") -> dict[str, Any]:
        return self.client.request(
            "POST",
            "/auth/upload-photo",
            files={"photo": (filename, content, content_type)},
        )


class TransactionService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def list(self, **params: Any) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        return _unwrap_list(self.client.get("/transactions", **params), "transactions")

    def all(self) -> list[dict[str, Any]]:
        items, _ = self.list()
        return items

    def stats(self) -> dict[str, Any]:
        return self.client.get("/transactions/stats") or {}

    def create(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.client.post("/transactions", dict(payload))

    def update(self, transaction_id: Any, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.client.put(f"/transactions/{transaction_id}", dict(payload))

    def delete(self, transaction_id: Any) -> Any:
        return self.client.delete(f"/transactions/{transaction_id}")


class SavingService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def list(self, **params: Any) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        return _unwrap_list(self.client.get("/savings", **params), "savings")

    def all(self) -> list[dict[str, Any]]:
        items, _ = self.list()
        return items

    def stats(self) -> dict[str, Any]:
        return self.client.get("/savings/stats") or {}

    def create(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.client.post("/savings", dict(payload))

    def update(self, saving_id: Any, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.client.put(f"/savings/{saving_id}", dict(payload))

    def delete(self, saving_id: Any) -> Any:
        return self.client.delete(f"/savings/{saving_id}")

    def add_amount(self, saving_id: Any, amount: float) -> dict[str, Any]:
        return self.client.post(f"/savings/{saving_id}/add", {"amount": amount})


class UserService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def list(self, **params: Any) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        return _unwrap_list(self.client.get("/users", **params), "users")

    def update(self, user_id: Any, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.client.put(f"/users/{user_id}", dict(payload))
