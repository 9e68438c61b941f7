import uuid
from datetime import datetime, timezone

import pytest
from fastapi import HTTPException

import app.services.session as session_module
from app.core.security import new_password_hash, token_digest
from app.services.session import ANONYMOUS, LOADING, AuthEvent, Identity, SessionService, SessionState

USER_ID = uuid.UUID("9e7c0e0a-7a55-4f0a-b7a4-6b8d2d1c3e21")
EXPIRES = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def backend(monkeypatch):
    """In-memory stand-ins for the auth queries and commands."""
    password_hash, salt_hex = new_password_hash("Correct#1")
    state = {
        "user": {
            "id": USER_ID,
            "email": "admin@example.com",
            "password_hash": password_hash,
            "password_salt": salt_hex,
        },
        "role": {"role": "admin", "must_change_password": True, "protected": False},
        "sessions": {},
    }

    def find_credentials(email):
        return state["user"] if email == state["user"]["email"] else None

    def open_session(user_id, token_hash, ttl_minutes):
        state["sessions"][token_hash] = user_id
        return EXPIRES

    def close_session(token_hash):
        return 1 if state["sessions"].pop(token_hash, None) else 0

    def rotate_session(old_hash, new_hash, ttl_minutes):
        user_id = state["sessions"].pop(old_hash, None)
        if user_id is None:
            raise HTTPException(status_code=401, detail="Session expired or not found")
        state["sessions"][new_hash] = user_id
        return str(user_id), EXPIRES

    def find_session(token_hash):
        user_id = state["sessions"].get(token_hash)
        if user_id is None:
            return None
        return {"user_id": user_id, "email": state["user"]["email"], "expires_at": EXPIRES}

    def change_password(user_id, password):
        if state["role"]:
            state["role"]["must_change_password"] = False

    monkeypatch.setattr(session_module.auth_queries, "find_credentials", find_credentials)
    monkeypatch.setattr(session_module.auth_queries, "find_session", find_session)
    monkeypatch.setattr(session_module.auth_queries, "fetch_role", lambda user_id: state["role"])
    monkeypatch.setattr(session_module.auth_commands, "open_session", open_session)
    monkeypatch.setattr(session_module.auth_commands, "close_session", close_session)
    monkeypatch.setattr(session_module.auth_commands, "rotate_session", rotate_session)
    monkeypatch.setattr(session_module.auth_commands, "change_password", change_password)
    return state


def test_identity_states():
    assert LOADING.state is SessionState.LOADING
    assert ANONYMOUS.state is SessionState.UNAUTHENTICATED
    assert Identity(user_id="u").state is SessionState.AUTHENTICATED_NO_ROLE
    assert Identity(user_id="u", role="admin").state is SessionState.ADMIN
    assert (
        Identity(user_id="u", role="admin", must_change_password=True).state
        is SessionState.ADMIN_MUST_CHANGE_PASSWORD
    )
    assert Identity(user_id="u", role="super_admin").state is SessionState.SUPER_ADMIN
    assert Identity(user_id="u", role="super_admin").is_admin


def test_sign_in_emits_and_resolves(backend):
    service = SessionService(ttl_minutes=60)
    events = []
    service.subscribe(lambda event, identity: events.append((event, identity.state)))

    issued = service.sign_in("admin@example.com", "Correct#1")

    assert token_digest(issued.access_token) in backend["sessions"]
    assert issued.identity.state is SessionState.ADMIN_MUST_CHANGE_PASSWORD
    assert events == [(AuthEvent.SIGNED_IN, SessionState.ADMIN_MUST_CHANGE_PASSWORD)]
    assert service.resolve(issued.access_token).role == "admin"


def test_sign_in_rejects_bad_password(backend):
    service = SessionService(ttl_minutes=60)
    with pytest.raises(HTTPException) as excinfo:
        service.sign_in("admin@example.com", "wrong")
    assert excinfo.value.status_code == 401
    assert backend["sessions"] == {}


def test_missing_role_row_means_no_role_and_no_password_change(backend):
    backend["role"] = None
    service = SessionService(ttl_minutes=60)
    issued = service.sign_in("admin@example.com", "Correct#1")
    identity = service.resolve(issued.access_token)
    assert identity.role is None
    assert identity.must_change_password is False
    assert identity.state is SessionState.AUTHENTICATED_NO_ROLE


def test_role_is_refetched_on_every_resolution(backend):
    service = SessionService(ttl_minutes=60)
    token = service.sign_in("admin@example.com", "Correct#1").access_token
    backend["role"] = None
    assert service.resolve(token).state is SessionState.AUTHENTICATED_NO_ROLE


def test_sign_out_clears_session(backend):
    service = SessionService(ttl_minutes=60)
    events = []
    service.subscribe(lambda event, identity: events.append((event, identity)))
    token = service.sign_in("admin@example.com", "Correct#1").access_token

    service.sign_out(token)

    assert service.resolve(token) is ANONYMOUS
    assert events[-1] == (AuthEvent.SIGNED_OUT, ANONYMOUS)


def test_refresh_rotates_token(backend):
    service = SessionService(ttl_minutes=60)
    old = service.sign_in("admin@example.com", "Correct#1").access_token
    refreshed = service.refresh(old)
    assert refreshed.access_token != old
    assert service.resolve(old) is ANONYMOUS
    assert service.resolve(refreshed.access_token).user_id == str(USER_ID)


def test_change_password_enforces_policy(backend):
    service = SessionService(ttl_minutes=60)
    identity = service.sign_in("admin@example.com", "Correct#1").identity
    with pytest.raises(HTTPException) as excinfo:
        service.change_password(identity, "short", "short")
    assert excinfo.value.status_code == 400


def test_change_password_clears_pending_flag(backend):
    service = SessionService(ttl_minutes=60)
    events = []
    service.subscribe(lambda event, identity: events.append(event))
    identity = service.sign_in("admin@example.com", "Correct#1").identity

    refreshed = service.change_password(identity, "N3w!Password", "N3w!Password")

    assert refreshed.state is SessionState.ADMIN
    assert events[-1] is AuthEvent.PASSWORD_UPDATED


def test_unsubscribe_and_failing_listener(backend, caplog):
    service = SessionService(ttl_minutes=60)
    calls = []

    def broken(event, identity):
        raise RuntimeError("listener bug")

    service.subscribe(broken)
    unsubscribe = service.subscribe(lambda event, identity: calls.append(event))
    service.sign_in("admin@example.com", "Correct#1")
    unsubscribe()
    service.sign_in("admin@example.com", "Correct#1")

    assert calls == [AuthEvent.SIGNED_IN]
    assert "Auth listener failed" in caplog.text
