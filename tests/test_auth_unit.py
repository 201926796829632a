from datetime import datetime, timedelta, timezone

import pytest

import hosteldesk.auth as auth
from hosteldesk.auth import (
    AuthContext,
    context_from_session,
    create_session,
    delete_session,
    get_session,
    login,
)
from hosteldesk.errors import BackendError, ErrorKind


def test_get_session_returns_none_without_token(db_conn):
    assert get_session(db_conn, "") is None
    assert get_session(db_conn, "missing") is None


def test_get_session_removes_expired_session(db_conn, monkeypatch):
    token = create_session(db_conn, "admin-1", "access-abc")
    expired_at = datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)
    db_conn.execute(
        "UPDATE sessions SET expires_at = ? WHERE token = ?",
        (expired_at.isoformat(), token),
    )
    db_conn.commit()
    monkeypatch.setattr(auth, "_now", lambda: expired_at + timedelta(seconds=1))

    assert get_session(db_conn, token) is None
    row = db_conn.execute("SELECT token FROM sessions WHERE token = ?", (token,)).fetchone()
    assert row is None


def test_get_session_extends_expiry_on_activity(db_conn, monkeypatch):
    created_at = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
    monkeypatch.setattr(auth, "SESSION_TTL_SECONDS", 120)
    monkeypatch.setattr(auth, "_now", lambda: created_at)
    token = create_session(db_conn, "admin-1", "access-abc")

    seen_at = created_at + timedelta(seconds=45)
    monkeypatch.setattr(auth, "_now", lambda: seen_at)
    session = get_session(db_conn, token)

    assert session is not None
    assert session["last_seen_at"] == seen_at.isoformat()
    assert session["expires_at"] == (seen_at + timedelta(seconds=120)).isoformat()
    row = db_conn.execute(
        "SELECT expires_at FROM sessions WHERE token = ?",
        (token,),
    ).fetchone()
    assert row["expires_at"] == (seen_at + timedelta(seconds=120)).isoformat()


def test_delete_session(db_conn):
    token = create_session(db_conn, "admin-1", "access-abc")
    assert delete_session(db_conn, token) is True
    assert delete_session(db_conn, token) is False
    assert delete_session(db_conn, "") is False


def test_auth_context_attaches_bearer_without_mutating_headers(db_conn):
    token = create_session(db_conn, "admin-1", "access-abc", role="super_admin", hostel_id="h-7")
    context = context_from_session(get_session(db_conn, token))
    headers = {"Accept": "application/json"}

    assert context.get_token() == "access-abc"
    assert context.with_auth(headers) == {
        "Accept": "application/json",
        "Authorization": "Bearer access-abc",
    }
    assert headers == {"Accept": "application/json"}
    assert context.role == "super_admin"
    assert context.hostel_id == "h-7"


def test_login_opens_session_for_verified_user(db_conn, fake_backend):
    fake_backend.route(
        "POST",
        "/auth/login",
        {
            "access_token": "jwt-1",
            "user": {
                "id": 42,
                "email": "ops@hostel.test",
                "role": "hostel_admin",
                "hostelId": 7,
                "is_verified": True,
            },
        },
    )

    result = login(db_conn, fake_backend, "ops@hostel.test", "secret")

    assert result["user_id"] == "42"
    assert result["role"] == "hostel_admin"
    row = db_conn.execute("SELECT * FROM sessions WHERE token = ?", (result["token"],)).fetchone()
    assert row["access_token"] == "jwt-1"
    assert row["hostel_id"] == "7"
    assert fake_backend.calls[0]["payload"] == {"email": "ops@hostel.test", "password": "secret"}


def test_login_refuses_unverified_user_without_session(db_conn, fake_backend):
    fake_backend.route(
        "POST",
        "/auth/login",
        {"access_token": "jwt-1", "user": {"id": 1, "is_verified": False}},
    )

    with pytest.raises(BackendError) as excinfo:
        login(db_conn, fake_backend, "new@hostel.test", "secret")

    assert excinfo.value.kind is ErrorKind.EMAIL_UNVERIFIED
    assert db_conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0] == 0


def test_login_maps_backend_401_to_invalid_credentials(db_conn, fake_backend):
    fake_backend.route(
        "POST",
        "/auth/login",
        BackendError(ErrorKind.SESSION_EXPIRED, 401, "Invalid email or password"),
    )
    with pytest.raises(BackendError) as excinfo:
        login(db_conn, fake_backend, "ops@hostel.test", "wrong")
    assert excinfo.value.kind is ErrorKind.INVALID_CREDENTIALS
    assert excinfo.value.message == "Invalid email or password"


def test_login_requires_access_token(db_conn, fake_backend):
    fake_backend.route("POST", "/auth/login", {"user": {"is_verified": True}})
    with pytest.raises(BackendError) as excinfo:
        login(db_conn, fake_backend, "ops@hostel.test", "secret")
    assert excinfo.value.kind is ErrorKind.SERVER


def test_auth_context_is_immutable():
    context = AuthContext(session_token="s", user_id="u", role="admin", access_token="t")
    with pytest.raises(AttributeError):
        context.access_token = "other"
