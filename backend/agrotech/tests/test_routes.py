import pytest
from fastapi import APIRouter

from agrotech import main
from .conftest import auth_headers

PROFILE = {
    "fullName": "Bruno Costa",
    "phone": "31999990000",
    "address": "Estrada Velha km 4",
    "occupation": "Farmer",
    "education": "High school",
    "birthDate": "1985-02-01",
}


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_metrics_exposed(client):
    client.get("/api/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "request_count" in resp.text


def test_every_private_route_requires_auth():
    main.audit_routes()


def test_route_audit_flags_unprotected_route():
    router = APIRouter(prefix="/api/reports")

    @router.get("/unprotected")
    async def unprotected():
        return {}

    with pytest.raises(RuntimeError, match="/api/reports/unprotected"):
        main.audit_routes([router])


def test_route_audit_walks_nested_routers():
    inner = APIRouter(prefix="/api/reports")

    @inner.get("/unprotected")
    async def unprotected():
        return {}

    outer = APIRouter()
    outer.include_router(inner)
    with pytest.raises(RuntimeError, match="/api/reports/unprotected"):
        main.audit_routes([outer])


def test_unknown_route_uses_error_shape(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found"}


def test_invalid_token_is_401(client):
    resp = client.get("/api/users/me", headers={"Authorization": "Bearer stale"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid or expired session"}


def test_profile_endpoints(client, backend):
    admin, _ = auth_headers(backend, admin=True)
    user, email = auth_headers(backend)
    code = client.post(
        "/api/create-invite", json={"email": email}, headers=admin
    ).json()["invite"]["code"]

    assert client.get("/api/users/me", headers=user).status_code == 404
    saved = client.post("/api/save-user-profile", json={**PROFILE, "email": email, "inviteCode": code})
    assert saved.status_code == 200

    me = client.get("/api/users/me", headers=user)
    assert me.status_code == 200
    assert me.json()["fullName"] == "Bruno Costa"
    assert me.json()["birthDate"] == "1985-02-01"

    assert client.get("/api/users/all", headers=user).status_code == 403
    everyone = client.get("/api/users/all", headers=admin).json()
    assert [u["email"] for u in everyone] == [email]


def test_audit_is_admin_only_and_filters(client, backend):
    admin, _ = auth_headers(backend, admin=True)
    user, _ = auth_headers(backend)
    client.post("/api/access-links", json={}, headers=admin)
    client.post("/api/create-invite", json={"email": "a@example.com"}, headers=admin)

    assert client.get("/api/audit", headers=user).status_code == 403
    logs = client.get("/api/audit", params={"action": "create_invite"}, headers=admin).json()
    assert [log["action"] for log in logs] == ["create_invite"]
    assert logs[0]["details"]["email"] == "a@example.com"
