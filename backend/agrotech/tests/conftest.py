import os
os.environ["TESTING"] = "1"
os.environ.setdefault("APP_ENV", "test")
import pytest
from dataclasses import replace
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path
import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from agrotech.main import app
from agrotech.database import Base, get_db
from agrotech.auth import get_backend, get_optional_backend
from agrotech.errors import AuthError, BackendError, BackendUnavailableError, ConfigurationError

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


class FakeSupabase:
    """In-memory stand-in for the Supabase auth, admin and storage endpoints."""

    url = "https://fake-project.supabase.co"
    anon_key = "fake-anon-key"
    source = "env"

    def __init__(self):
        self.accounts: dict[str, dict] = {}
        self.tokens: dict[str, str] = {}
        self.objects: dict[str, bytes] = {}
        self.signed_out: list[str] = []
        self.has_admin = True
        self.unavailable = False
        self.fail_delete = False

    def _check(self):
        if self.unavailable:
            raise BackendUnavailableError("Supabase request failed: connection refused")

    def _require_admin(self):
        if not self.has_admin:
            raise ConfigurationError("Supabase service role key is not configured.")

    @staticmethod
    def _public(account: dict) -> dict:
        return {k: v for k, v in account.items() if k != "password"}

    def add_account(self, email: str, password: str = "secret123", role: str | None = None) -> dict:
        account = {
            "id": str(uuid.uuid4()),
            "email": email.lower(),
            "password": password,
            "app_metadata": {"role": role} if role else {},
            "user_metadata": {},
            "created_at": "2026-01-01T00:00:00Z",
            "last_sign_in_at": None,
        }
        self.accounts[account["id"]] = account
        return self._public(account)

    def issue_token(self, user_id: str) -> str:
        token = f"token-{uuid.uuid4().hex}"
        self.tokens[token] = user_id
        return token

    def remove_account(self, email: str) -> None:
        for user_id, account in list(self.accounts.items()):
            if account["email"] == email.lower():
                del self.accounts[user_id]

    def get_user(self, access_token: str) -> dict | None:
        self._check()
        account = self.accounts.get(self.tokens.get(access_token))
        return self._public(account) if account else None

    def sign_in_with_password(self, email: str, password: str) -> dict:
        self._check()
        account = self.admin_find_user_by_email(email)
        if not account or self.accounts[account["id"]]["password"] != password:
            raise AuthError("Invalid login credentials")
        token = self.issue_token(account["id"])
        return {
            "access_token": token,
            "refresh_token": f"refresh-{token}",
            "expires_in": 3600,
            "user": account,
        }

    def sign_out(self, access_token: str) -> None:
        self._check()
        self.tokens.pop(access_token, None)
        self.signed_out.append(access_token)

    def admin_create_user(self, email: str, password: str, user_metadata: dict | None = None) -> dict:
        self._check()
        self._require_admin()
        if self.admin_find_user_by_email(email):
            raise BackendError(
                "Failed to create Supabase user: User already registered", upstream_status=422
            )
        return self.add_account(email, password)

    def admin_delete_user(self, user_id: str) -> None:
        self._check()
        self._require_admin()
        if self.fail_delete:
            raise BackendError("Failed to delete Supabase user: forbidden", upstream_status=403)
        self.accounts.pop(user_id, None)

    def admin_list_users(self) -> list[dict]:
        self._check()
        self._require_admin()
        return [self._public(a) for a in self.accounts.values()]

    def admin_find_user_by_email(self, email: str) -> dict | None:
        target = email.strip().lower()
        account = next((a for a in self.accounts.values() if a["email"] == target), None)
        return self._public(account) if account else None

    def upload_object(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        self._check()
        self._require_admin()
        key = f"{bucket}/{path}"
        self.objects[key] = data
        return key


@pytest.fixture(autouse=True)
def clean_database():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    app.state.memory_store.clear()


@pytest.fixture(autouse=True)
def backend():
    fake = FakeSupabase()
    app.dependency_overrides[get_backend] = lambda: fake
    app.dependency_overrides[get_optional_backend] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_backend, None)
    app.dependency_overrides.pop(get_optional_backend, None)


@pytest.fixture(autouse=True)
def settings(tmp_path, monkeypatch):
    configured = replace(app.state.settings, upload_dir=str(tmp_path / "uploads"))
    monkeypatch.setattr(app.state, "settings", configured)
    return configured


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def use_settings(monkeypatch, **changes):
    configured = replace(app.state.settings, **changes)
    monkeypatch.setattr(app.state, "settings", configured)
    return configured


def auth_headers(backend: FakeSupabase, *, email: str | None = None, admin: bool = False):
    """Register an account with the fake backend and return bearer headers for it."""

    email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
    account = backend.admin_find_user_by_email(email) or backend.add_account(
        email, role="admin" if admin else None
    )
    token = backend.issue_token(account["id"])
    return {"Authorization": f"Bearer {token}"}, email.lower()
