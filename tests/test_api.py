"""HTTP client behaviour: token attachment, 401 handling and error mapping."""

from __future__ import annotations

import pytest
import requests

from finance_tracker import storage
from finance_tracker.errors import AuthorizationExpired, InvalidCredentials, NetworkOrServerError
from finance_tracker.guard import GuardState


def test_login_token_is_attached_to_following_requests(services, adapter) -> None:
    adapter.add("POST", "/auth/login", {"token": "t1", "user": {"id": 1, "name": "Ana"}})
    adapter.add("GET", "/transactions", {"transactions": []})
    adapter.add("GET", "/savings", {"savings": []})

    services.sessions.login("ana@example.com", "secret")
    services.transactions.list()
    services.savings.list()
    services.transactions.list(page=2)

    login_request = adapter.requests_to("POST", "/auth/login")[0]
    assert "Authorization" not in login_request.headers
    for request in adapter.sent[1:]:
        assert request.headers["Authorization"] == "Bearer t1"


def test_logout_stops_sending_the_token(signed_in, adapter) -> None:
    adapter.add("GET", "/transactions", {"transactions": []})
    signed_in.transactions.list()
    signed_in.sessions.logout()
    signed_in.transactions.list()

    first, second = adapter.requests_to("GET", "/transactions")
    assert first.headers["Authorization"] == "Bearer t1"
    assert "Authorization" not in second.headers


def test_any_401_clears_session_and_redirects_to_login(signed_in, adapter, local) -> None:
    adapter.add("GET", "/savings/stats", {"error": "jwt expired"}, status=401)
    signed_in.navigator.navigate("/savings")

    with pytest.raises(AuthorizationExpired):
        signed_in.savings.stats()

    assert signed_in.sessions.current_session() is None
    assert local.get(storage.TOKEN_KEY) is None
    assert signed_in.navigator.location == "/login"
    decision = signed_in.guard.check("/savings")
    assert decision.state is GuardState.REDIRECTING
    assert decision.redirect_to == "/login"


def test_server_error_passes_message_through_and_keeps_session(signed_in, adapter) -> None:
    adapter.add("POST", "/transactions", {"error": "Categoria inválida"}, status=422)

    with pytest.raises(NetworkOrServerError) as excinfo:
        signed_in.transactions.create({"description": "x"})

    assert excinfo.value.status == 422
    assert excinfo.value.message == "Categoria inválida"
    assert signed_in.sessions.current_session() is not None


def test_transport_failure_is_a_network_error(signed_in, adapter) -> None:
    adapter.add("GET", "/transactions", requests.ConnectionError("connection refused"))

    with pytest.raises(NetworkOrServerError) as excinfo:
        signed_in.transactions.list()

    assert excinfo.value.status is None
    assert len(adapter.requests_to("GET", "/transactions")) == 1


def test_rejected_login_is_invalid_credentials(services, adapter) -> None:
    adapter.add("POST", "/auth/login", {"error": "Credenciais inválidas"}, status=401)

    with pytest.raises(InvalidCredentials):
        services.sessions.login("ana@example.com", "wrong")

    assert services.sessions.current_session() is None


def test_list_accepts_envelope_or_bare_list_and_drops_empty_params(signed_in, adapter) -> None:
    adapter.add("GET", "/transactions", {"transactions": [{"id": 1}], "total": 11, "page": 1, "pages": 2})
    adapter.add("GET", "/users", [{"id": 1}, {"id": 2}])

    items, meta = signed_in.transactions.list(search="", category=None, page=1, limit=10)
    users, users_meta = signed_in.users.list()

    assert items == [{"id": 1}]
    assert meta == {"total": 11, "page": 1, "pages": 2}
    assert len(users) == 2 and users_meta["total"] == 2
    assert adapter.query(adapter.requests_to("GET", "/transactions")[0]) == {"page": ["1"], "limit": ["10"]}


def test_savings_add_amount_posts_to_increment_endpoint(signed_in, adapter) -> None:
    adapter.add("POST", "/savings/4/add", {"id": 4, "currentAmount": "150.00"})

    signed_in.savings.add_amount(4, 50.0)

    request = adapter.requests_to("POST", "/savings/4/add")[0]
    assert adapter.body(request) == {"amount": 50.0}


def test_photo_upload_is_multipart(signed_in, adapter) -> None:
    adapter.add("POST", "/auth/upload-photo", {"photo": "/uploads/ana.png"})

    body = signed_in.auth.upload_photo("ana.png", b"\x89PNG", "image/png")

    request = adapter.requests_to("POST", "/auth/upload-photo")[0]
    assert body == {"photo": "/uploads/ana.png"}
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert request.headers["Authorization"] == "Bearer t1"
