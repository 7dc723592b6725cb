"""Shared fixtures: a fake HTTP transport mounted on a real ``requests.Session``."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qs, urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter

from finance_tracker.config import Settings
from finance_tracker.context import build_services
from finance_tracker.storage import MemoryStorage

BASE_URL = "http://api.test/api"


class FakeAdapter(BaseAdapter):
    """Answers requests from a table of canned responses keyed by method and path.

    A route registered with several responses hands them out in order and then
    keeps repeating the last one. A response body that is an exception
    instance is raised instead of returned.
    """

    def __init__(self) -> None:
        super().__init__()
        self.routes: dict[tuple[str, str], list[tuple[int, Any]]] = {}
        self.sent: list[requests.PreparedRequest] = []
        self.on_send: Callable[[requests.PreparedRequest], None] | None = None

    def add(self, method: str, path: str, body: Any = None, status: int = 200) -> None:
        self.routes.setdefault((method.upper(), path), []).append((status, body))

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.sent.append(request)
        if self.on_send is not None:
            self.on_send(request)

        path = urlsplit(request.url).path
        if path.startswith("/api"):
            path = path[len("/api"):]
        queue = self.routes.get((request.method, path))
        if not queue:
            status, body = 404, {"error": f"no route for {request.method} {path}"}
        elif len(queue) > 1:
            status, body = queue.pop(0)
        else:
            status, body = queue[0]

        if isinstance(body, Exception):
            raise body

        response = requests.Response()
        response.status_code = status
        response.reason = "OK" if status < 400 else "Error"
        response._content = b"" if body is None else json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
        response.encoding = "utf-8"
        response.url = request.url
        response.request = request
        return response

    def close(self) -> None:
        pass

    def requests_to(self, method: str, path: str) -> list[requests.PreparedRequest]:
        return [
            request
            for request in self.sent
            if request.method == method.upper() and urlsplit(request.url).path == "/api" + path
        ]

    @staticmethod
    def query(request: requests.PreparedRequest) -> dict[str, list[str]]:
        return parse_qs(urlsplit(request.url).query)

    @staticmethod
    def body(request: requests.PreparedRequest) -> Any:
        raw = request.body
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw) if raw else None


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def http_session(adapter: FakeAdapter) -> requests.Session:
    session = requests.Session()
    session.trust_env = False
    session.mount("http://", adapter)
    return session


@pytest.fixture
def local() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def services(local, http_session):
    settings = Settings(api_url=BASE_URL, storage_path=Path("unused.json"))
    built = build_services(settings, local, http_session=http_session)
    yield built
    built.close()


@pytest.fixture
def signed_in(services, adapter):
    """Services with a completed login as a regular user holding token ``t1``."""

    adapter.add("POST", "/auth/login", {"token": "t1", "user": {"id": 1, "name": "Ana", "role": "visitante"}})
    services.sessions.login("ana@example.com", "secret")
    adapter.sent.clear()
    return services


@pytest.fixture
def signed_in_admin(services, adapter):
    adapter.add("POST", "/auth/login", {"token": "adm", "user": {"id": 9, "name": "Root", "role": "admin"}})
    services.sessions.login("root@example.com", "secret")
    adapter.sent.clear()
    return services
