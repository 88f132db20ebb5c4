import threading

from agrotech import models
from agrotech.errors import BackendError, BackendUnavailableError
from agrotech.session import SessionGuard
from .conftest import TestingSessionLocal, auth_headers, use_settings


def test_check_without_token_redirects(backend):
    state = SessionGuard(backend).check(None)
    assert state.authenticated is False
    assert state.reason == "no_session"
    assert state.redirect == "/"


def test_deleted_account_is_signed_out(backend):
    headers, email = auth_headers(backend)
    token = headers["Authorization"].split()[1]
    guard = SessionGuard(backend)
    assert guard.check(token).authenticated is True

    backend.remove_account(email)
    state = guard.check(token)
    assert state.authenticated is False
    assert state.reason == "account_missing"
    assert state.redirect == "/"
    assert token in backend.signed_out


def test_watch_stops_when_account_disappears(backend):
    headers, email = auth_headers(backend)
    token = headers["Authorization"].split()[1]
    seen = []

    def on_state(state):
        seen.append(state.authenticated)
        if len(seen) == 2:
            backend.remove_account(email)

    last = SessionGuard(backend, interval=0).watch(token, on_state, max_polls=10)
    assert seen == [True, True, False]
    assert last.reason == "account_missing"


def test_watch_reports_errors_and_keeps_polling(backend):
    headers, _ = auth_headers(backend)
    token = headers["Authorization"].split()[1]
    backend.unavailable = True
    errors = []
    states = []
    last = SessionGuard(backend, interval=0).watch(
        token, states.append, on_error=errors.append, max_polls=3
    )
    assert len(errors) == 3
    assert all(isinstance(e, BackendUnavailableError) for e in errors)
    assert states == []
    assert last is None


def test_watch_keeps_polling_after_upstream_rejection(backend, monkeypatch):
    headers, _ = auth_headers(backend)
    token = headers["Authorization"].split()[1]

    def rate_limited(access_token):
        raise BackendError("Too many requests", upstream_status=429)

    monkeypatch.setattr(backend, "get_user", rate_limited)
    errors = []
    last = SessionGuard(backend, interval=0).watch(
        token, lambda state: None, on_error=errors.append, max_polls=3
    )
    assert last is None
    assert [e.upstream_status for e in errors] == [429, 429, 429]


def test_watch_honours_stop_event(backend):
    headers, _ = auth_headers(backend)
    stop = threading.Event()
    states = []

    def on_state(state):
        states.append(state)
        stop.set()

    SessionGuard(backend, interval=0).watch(headers["Authorization"].split()[1], on_state, stop=stop)
    assert len(states) == 1


def test_session_route_reports_state(client, backend):
    headers, email = auth_headers(backend, admin=True)
    resp = client.get("/api/session", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["authenticated"] is True
    assert data["user"]["email"] == email
    assert data["user"]["isAdmin"] is True
    assert data["pollInterval"] == 30

    anonymous = client.get("/api/session").json()
    assert anonymous["authenticated"] is False
    assert anonymous["reason"] == "no_session"


def test_session_route_backend_down_is_500(client, backend):
    headers, _ = auth_headers(backend)
    backend.unavailable = True
    resp = client.get("/api/session", headers=headers)
    assert resp.status_code == 500
    assert "error" in resp.json()


def test_sign_in_without_single_use(client, backend):
    backend.add_account("grower@example.com", "pw-123456")
    for _ in range(2):
        resp = client.post(
            "/api/auth/sign-in", json={"email": "grower@example.com", "password": "pw-123456"}
        )
        assert resp.status_code == 200
        assert resp.json()["firstAccess"] is False


def test_sign_in_wrong_password(client, backend):
    backend.add_account("grower@example.com", "pw-123456")
    resp = client.post("/api/auth/sign-in", json={"email": "grower@example.com", "password": "nope"})
    assert resp.status_code == 401


def test_single_use_sign_in_rejects_second_access(client, backend, monkeypatch):
    use_settings(monkeypatch, single_use_access=True)
    backend.add_account("once@example.com", "pw-123456")
    creds = {"email": "once@example.com", "password": "pw-123456"}

    first = client.post("/api/auth/sign-in", json=creds)
    assert first.status_code == 200
    assert first.json()["firstAccess"] is True
    assert first.json()["accessToken"]

    second = client.post("/api/auth/sign-in", json=creds)
    assert second.status_code == 401
    assert second.json()["error"] == "This access link has already been used"
    # the session issued for the rejected attempt was revoked
    assert len(backend.signed_out) == 1

    db = TestingSessionLocal()
    try:
        user = db.query(models.User).filter(models.User.email == "once@example.com").one()
        assert user.first_access is False
    finally:
        db.close()


def test_single_use_flips_existing_profile(client, backend, monkeypatch):
    use_settings(monkeypatch, single_use_access=True)
    backend.add_account("profile@example.com", "pw-123456")
    db = TestingSessionLocal()
    db.add(models.User(email="profile@example.com", full_name="Ana Souza"))
    db.commit()
    db.close()

    resp = client.post(
        "/api/auth/sign-in", json={"email": "profile@example.com", "password": "pw-123456"}
    )
    assert resp.json()["firstAccess"] is True
    resp = client.post(
        "/api/auth/sign-in", json={"email": "profile@example.com", "password": "pw-123456"}
    )
    assert resp.status_code == 401


def test_sign_out_revokes_token(client, backend):
    headers, _ = auth_headers(backend)
    resp = client.post("/api/auth/sign-out", headers=headers)
    assert resp.status_code == 200
    assert client.get("/api/session", headers=headers).json()["authenticated"] is False
