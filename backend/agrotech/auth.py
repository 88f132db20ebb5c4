from __future__ import annotations

import logging
from dataclasses import dataclass

import bcrypt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings
from .errors import AuthError, ConfigurationError, PermissionDeniedError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated account as reported by the auth provider."""

    id: str
    email: str
    role: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @classmethod
    def from_user(cls, user: dict) -> "Identity":
        # app_metadata is writable only with the service role key
        app_metadata = user.get("app_metadata") or {}
        return cls(
            id=str(user["id"]),
            email=(user.get("email") or "").strip().lower(),
            role=app_metadata.get("role"),
        )


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_backend(request: Request):
    return request.app.state.backend.get_client()


def get_optional_backend(request: Request):
    """Backend client, or ``None`` when credentials are not configured."""
    try:
        return request.app.state.backend.get_client()
    except ConfigurationError as exc:
        logger.warning("Backend unavailable for optional check: %s", exc)
        return None


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials


def get_current_user(
    token: str | None = Depends(get_bearer_token),
    backend=Depends(get_backend),
) -> Identity:
    if not token:
        raise AuthError("Missing bearer token")
    user = backend.get_user(token)
    if not user:
        raise AuthError("Invalid or expired session")
    return Identity.from_user(user)


def require_admin(user: Identity = Depends(get_current_user)) -> Identity:
    if not user.is_admin:
        raise PermissionDeniedError("Admin role required")
    return user
