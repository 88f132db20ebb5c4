import threading

from agrotech.errors import AuthError
from agrotech.services import access_links
from .conftest import TestingSessionLocal, auth_headers


def test_admin_creates_link(client, backend):
    headers, _ = auth_headers(backend, admin=True)
    resp = client.post("/api/access-links", json={"email": "Guest@Example.com"}, headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["usesRemaining"] == 1
    assert data["email"] == "guest@example.com"
    assert len(data["linkCode"]) >= 12

    fetched = client.get(f"/api/access-links/{data['linkCode']}")
    assert fetched.status_code == 200
    assert fetched.json()["id"] == data["id"]


def test_non_admin_cannot_create_link(client, backend):
    headers, _ = auth_headers(backend)
    resp = client.post("/api/access-links", json={}, headers=headers)
    assert resp.status_code == 403
    assert resp.json() == {"error": "Admin role required"}


def test_unauthenticated_create_is_401(client):
    resp = client.post("/api/access-links", json={})
    assert resp.status_code == 401


def test_duplicate_code_conflicts(client, backend):
    headers, _ = auth_headers(backend, admin=True)
    assert client.post("/api/access-links", json={"linkCode": "harvest-2026"}, headers=headers).status_code == 200
    resp = client.post("/api/access-links", json={"linkCode": "harvest-2026"}, headers=headers)
    assert resp.status_code == 409


def test_link_can_be_used_once(client, backend):
    headers, _ = auth_headers(backend, admin=True)
    code = client.post("/api/access-links", json={}, headers=headers).json()["linkCode"]

    first = client.post(f"/api/access-links/{code}/use")
    assert first.status_code == 200
    assert first.json() == {"success": True, "usesRemaining": 0}

    second = client.post(f"/api/access-links/{code}/use")
    assert second.status_code == 401
    assert second.json()["error"] == "Access link already used"
    assert client.get(f"/api/access-links/{code}").json()["usesRemaining"] == 0


def test_unknown_link_is_404(client):
    assert client.get("/api/access-links/missing-code").status_code == 404
    resp = client.post("/api/access-links/missing-code/use")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Link not found"}


def test_concurrent_use_has_single_winner():
    db = TestingSessionLocal()
    code = access_links.create_access_link(db).link_code
    db.close()

    outcomes = []
    lock = threading.Lock()
    start = threading.Barrier(2)

    def use():
        session = TestingSessionLocal()
        try:
            start.wait(timeout=5)
            link = access_links.use_access_link(session, code)
            result = ("ok", link.uses_remaining)
        except AuthError as exc:
            result = ("rejected", exc.message)
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=use) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == [("ok", 0), ("rejected", "Access link already used")]

    db = TestingSessionLocal()
    try:
        assert access_links.get_access_link(db, code).uses_remaining == 0
    finally:
        db.close()
