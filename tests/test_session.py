"""Session lifecycle: login, register, logout, restore and role parsing."""

from __future__ import annotations

import json

import pytest

from finance_tracker import storage
from finance_tracker.errors import ValidationError
from finance_tracker.guard import GuardState
from finance_tracker.session import Role, SessionStatus


def test_login_persists_token_and_user_record(services, adapter, local) -> None:
    adapter.add(
        "POST",
        "/auth/login",
        {"token": "t1", "user": {"id": 1, "name": "Ana", "email": "ana@example.com", "role": "admin"}},
    )

    session = services.sessions.login(" ana@example.com ", "secret")

    assert session.auth_token == "t1"
    assert session.role is Role.ADMIN
    assert services.sessions.current_session() == session
    assert local.get(storage.TOKEN_KEY) == "t1"
    assert json.loads(local.get(storage.USER_KEY))["name"] == "Ana"
    assert adapter.body(adapter.sent[0]) == {"email": "ana@example.com", "password": "secret"}


def test_login_with_blank_fields_never_reaches_the_network(services, adapter) -> None:
    with pytest.raises(ValidationError):
        services.sessions.login("", "secret")
    with pytest.raises(ValidationError):
        services.sessions.login("ana@example.com", "")

    assert adapter.sent == []


def test_register_checks_confirmation_and_does_not_sign_in(services, adapter) -> None:
    adapter.add("POST", "/auth/register", {"id": 2}, status=201)

    with pytest.raises(ValidationError) as excinfo:
        services.sessions.register("Ana", "ana@example.com", "secret", "other")
    assert excinfo.value.field == "confirmation"
    assert adapter.sent == []

    services.sessions.register("Ana", "ana@example.com", "secret", "secret")

    assert len(adapter.requests_to("POST", "/auth/register")) == 1
    assert services.sessions.current_session() is None


def test_logout_clears_memory_and_durable_slot_without_calling_api(signed_in, adapter, local) -> None:
    signed_in.sessions.logout()

    assert signed_in.sessions.current_session() is None
    assert local.get(storage.TOKEN_KEY) is None
    assert local.get(storage.USER_KEY) is None
    assert adapter.sent == []


def test_restore_refreshes_profile_from_stored_token(services, adapter, local) -> None:
    local.set(storage.TOKEN_KEY, "stored")
    local.set(storage.USER_KEY, json.dumps({"id": 3, "name": "Old name", "role": "visitante"}))
    adapter.add("GET", "/auth/profile", {"id": 3, "name": "New name", "email": "b@example.com", "role": "visitante"})

    assert services.sessions.pending
    assert services.guard.check("/dashboard").state is GuardState.CHECKING

    session = services.sessions.restore()

    assert services.sessions.status is SessionStatus.READY
    assert session.name == "New name"
    assert session.auth_token == "stored"
    assert adapter.sent[0].headers["Authorization"] == "Bearer stored"
    assert services.guard.check("/dashboard").state is GuardState.AUTHORIZED


def test_restore_with_rejected_token_ends_signed_out(services, adapter, local) -> None:
    local.set(storage.TOKEN_KEY, "expired")
    adapter.add("GET", "/auth/profile", {"error": "expired"}, status=401)

    assert services.sessions.restore() is None
    assert local.get(storage.TOKEN_KEY) is None
    assert services.guard.check("/dashboard").state is GuardState.REDIRECTING


def test_restore_keeps_cached_session_when_server_unreachable(services, adapter, local) -> None:
    local.set(storage.TOKEN_KEY, "stored")
    local.set(storage.USER_KEY, json.dumps({"id": 3, "name": "Cached"}))
    adapter.add("GET", "/auth/profile", {"error": "boom"}, status=503)

    session = services.sessions.restore()

    assert session is not None and session.name == "Cached"
    assert services.sessions.status is SessionStatus.READY


def test_restore_without_token_is_ready_and_signed_out(services, adapter) -> None:
    assert services.sessions.restore() is None
    assert not services.sessions.pending
    assert adapter.sent == []


def test_listeners_see_every_session_change(services, adapter) -> None:
    seen = []
    services.sessions.subscribe(seen.append)
    adapter.add("POST", "/auth/login", {"token": "t1", "user": {"id": 1}})

    services.sessions.login("ana@example.com", "secret")
    services.sessions.update_user({"name": "Ana Maria"})
    services.sessions.logout()

    assert [entry.auth_token if entry else None for entry in seen] == ["t1", "t1", None]
    assert seen[1].name == "Ana Maria"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("admin", Role.ADMIN), ("ADMIN", Role.ADMIN), ("visitante", Role.VISITOR), ("visitor", Role.VISITOR), (None, Role.VISITOR)],
)
def test_role_parse_accepts_server_spellings(raw, expected) -> None:
    assert Role.parse(raw) is expected


def test_start_restores_session_and_reconciles_preference(services, adapter, local) -> None:
    local.set(storage.TOKEN_KEY, "stored")
    adapter.add("GET", "/auth/profile", {"id": 3, "name": "Bia", "settings": {"darkMode": True}})

    services.start()
    services.executor.shutdown(wait=True)

    assert services.sessions.current_session().name == "Bia"
    assert services.preferences.dark_mode is True
