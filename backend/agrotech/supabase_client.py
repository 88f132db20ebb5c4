"""Thin REST client for the hosted auth/storage backend and its provider."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable
from urllib.parse import quote

import requests

from .config import BackendCredentials, Settings, resolve_backend_credentials
from .errors import AuthError, BackendError, BackendUnavailableError, ConfigurationError

# purpose: reach Supabase auth, admin and storage endpoints with bounded timeouts
# status: active

logger = logging.getLogger(__name__)

ADMIN_PAGE_SIZE = 200


class SupabaseClient:
    def __init__(
        self,
        credentials: BackendCredentials,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.url = credentials.url
        self.anon_key = credentials.anon_key
        self.source = credentials.source
        self._service_key = credentials.service_role_key
        self.timeout = timeout
        self._http = session or requests.Session()

    @property
    def has_admin(self) -> bool:
        return bool(self._service_key)

    def _headers(self, bearer: str | None = None, *, admin: bool = False) -> dict[str, str]:
        if admin:
            if not self._service_key:
                raise ConfigurationError(
                    "Supabase service role key is not configured.",
                    hint="Set SUPABASE_SERVICE_ROLE_KEY on the server.",
                )
            key = self._service_key
            bearer = self._service_key
        else:
            key = self.anon_key
        return {"apikey": key, "Authorization": f"Bearer {bearer or key}"}

    def _request(self, method: str, path: str, *, headers: dict, **kwargs) -> requests.Response:
        try:
            resp = self._http.request(
                method, f"{self.url}{path}", headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.warning("Supabase %s %s failed: %s", method, path, exc)
            raise BackendUnavailableError(f"Supabase request failed: {exc}") from exc
        if resp.status_code >= 500:
            raise BackendUnavailableError(f"Supabase returned {resp.status_code} for {path}")
        return resp

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        for key in ("msg", "message", "error_description", "error"):
            if isinstance(body, dict) and body.get(key):
                return str(body[key])
        return f"HTTP {resp.status_code}"

    # auth (anon key)

    def get_user(self, access_token: str) -> dict | None:
        """Fetch the identity behind ``access_token`` straight from the auth server."""

        resp = self._request("GET", "/auth/v1/user", headers=self._headers(access_token))
        if resp.status_code in (401, 403, 404):
            return None
        if resp.status_code >= 400:
            raise BackendError(self._error_message(resp), upstream_status=resp.status_code)
        data = resp.json()
        return data if data and data.get("id") else None

    def sign_in_with_password(self, email: str, password: str) -> dict:
        resp = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        if resp.status_code in (400, 401):
            raise AuthError(self._error_message(resp))
        if resp.status_code >= 400:
            raise BackendError(self._error_message(resp), upstream_status=resp.status_code)
        return resp.json()

    def sign_out(self, access_token: str) -> None:
        resp = self._request("POST", "/auth/v1/logout", headers=self._headers(access_token))
        if resp.status_code >= 400 and resp.status_code not in (401, 403, 404):
            raise BackendError(self._error_message(resp), upstream_status=resp.status_code)

    # admin (service role key)

    def admin_create_user(self, email: str, password: str, user_metadata: dict | None = None) -> dict:
        resp = self._request(
            "POST",
            "/auth/v1/admin/users",
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": user_metadata or {},
            },
            headers=self._headers(admin=True),
        )
        if resp.status_code >= 400:
            raise BackendError(
                f"Failed to create Supabase user: {self._error_message(resp)}",
                upstream_status=resp.status_code,
            )
        data = resp.json()
        return data.get("user", data)

    def admin_delete_user(self, user_id: str) -> None:
        resp = self._request(
            "DELETE", f"/auth/v1/admin/users/{quote(user_id)}", headers=self._headers(admin=True)
        )
        if resp.status_code >= 400:
            raise BackendError(
                f"Failed to delete Supabase user: {self._error_message(resp)}",
                upstream_status=resp.status_code,
            )

    def admin_list_users(self) -> list[dict]:
        users: list[dict] = []
        page = 1
        while True:
            resp = self._request(
                "GET",
                "/auth/v1/admin/users",
                params={"page": page, "per_page": ADMIN_PAGE_SIZE},
                headers=self._headers(admin=True),
            )
            if resp.status_code >= 400:
                raise BackendError(
                    f"Failed to fetch users: {self._error_message(resp)}",
                    upstream_status=resp.status_code,
                )
            batch = resp.json().get("users", [])
            users.extend(batch)
            if len(batch) < ADMIN_PAGE_SIZE:
                return users
            page += 1

    def admin_find_user_by_email(self, email: str) -> dict | None:
        target = email.strip().lower()
        return next(
            (u for u in self.admin_list_users() if (u.get("email") or "").lower() == target),
            None,
        )

    # storage

    def upload_object(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        resp = self._request(
            "POST",
            f"/storage/v1/object/{quote(bucket)}/{quote(path)}",
            data=data,
            headers={**self._headers(admin=True), "Content-Type": content_type},
        )
        if resp.status_code >= 400:
            raise BackendError(
                f"Failed to upload {path}: {self._error_message(resp)}",
                upstream_status=resp.status_code,
            )
        return f"{bucket}/{path}"


class BackendProvider:
    """Resolve the backend client once per process.

    The future is registered under the lock before any resolution work starts,
    so concurrent first callers all wait on the same initialization.
    """

    def __init__(
        self,
        settings: Settings,
        factory: Callable[[BackendCredentials, Settings], Any] | None = None,
        resolver: Callable[[Settings], BackendCredentials] = resolve_backend_credentials,
    ):
        self.settings = settings
        self._factory = factory or (
            lambda creds, s: SupabaseClient(creds, timeout=s.request_timeout)
        )
        self._resolver = resolver
        self._lock = threading.Lock()
        self._future: Future | None = None

    def get_client(self):
        with self._lock:
            future = self._future
            owner = future is None
            if owner:
                future = self._future = Future()
        if owner:
            try:
                client = self._factory(self._resolver(self.settings), self.settings)
            except BaseException as exc:
                with self._lock:
                    self._future = None
                future.set_exception(exc)
            else:
                logger.info("Backend client initialized from %s", getattr(client, "source", "unknown"))
                future.set_result(client)
        return future.result()
