"""Configuration resolution for the AgroTech backend."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Mapping

import requests

from .errors import ConfigurationError

# purpose: single place where environment variables are read
# status: active

logger = logging.getLogger(__name__)

URL_ENV_NAMES = ("SUPABASE_URL", "VITE_SUPABASE_URL")
ANON_KEY_ENV_NAMES = ("SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY")
LOCAL_ENVIRONMENTS = {"development", "local", "test"}

DEFAULT_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 30
DEFAULT_MAX_UPLOAD_BYTES = 20 * 1024 * 1024


def _first_env(environ: Mapping[str, str], names: tuple[str, ...]) -> tuple[str | None, str | None]:
    for name in names:
        value = (environ.get(name) or "").strip()
        if value:
            return value, name
    return None, None


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    database_url: str = "sqlite:///./agrotech.db"
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    credential_source: str | None = None
    service_role_key: str | None = None
    config_url: str | None = None
    app_base_url: str | None = None
    request_timeout: float = DEFAULT_TIMEOUT
    storage_bucket: str = "soil-analysis-pdfs"
    upload_dir: str = "uploaded_files"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    single_use_access: bool = False
    session_poll_interval: int = DEFAULT_POLL_INTERVAL
    cors_origins: tuple[str, ...] = ("http://localhost:5000", "http://127.0.0.1:5000")
    log_level: str = "INFO"
    sentry_dsn: str | None = None
    testing: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        url, url_name = _first_env(env, URL_ENV_NAMES)
        key, key_name = _first_env(env, ANON_KEY_ENV_NAMES)
        source = None
        if url and key:
            source = "env" if url_name == URL_ENV_NAMES[0] and key_name == ANON_KEY_ENV_NAMES[0] else "env-fallback"
        database_url, _ = _first_env(env, ("DATABASE_URL", "SUPABASE_DB_URL"))
        app_base_url, _ = _first_env(env, ("APP_BASE_URL", "VITE_APP_URL"))
        origins = tuple(o.strip() for o in env.get("CORS_ORIGINS", "").split(",") if o.strip())
        return cls(
            environment=(env.get("APP_ENV") or "development").strip().lower(),
            database_url=database_url or cls.database_url,
            supabase_url=url,
            supabase_anon_key=key,
            credential_source=source,
            service_role_key=(env.get("SUPABASE_SERVICE_ROLE_KEY") or "").strip() or None,
            config_url=(env.get("AGROTECH_CONFIG_URL") or "").strip() or None,
            app_base_url=app_base_url.rstrip("/") if app_base_url else None,
            request_timeout=float(env.get("SUPABASE_TIMEOUT") or DEFAULT_TIMEOUT),
            storage_bucket=env.get("SUPABASE_STORAGE_BUCKET") or cls.storage_bucket,
            upload_dir=env.get("UPLOAD_DIR") or cls.upload_dir,
            max_upload_bytes=int(env.get("MAX_UPLOAD_BYTES") or DEFAULT_MAX_UPLOAD_BYTES),
            single_use_access=_flag(env.get("SINGLE_USE_ACCESS")),
            session_poll_interval=int(env.get("SESSION_POLL_INTERVAL") or DEFAULT_POLL_INTERVAL),
            cors_origins=origins or cls.cors_origins,
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
            sentry_dsn=env.get("SENTRY_DSN") or None,
            testing=env.get("TESTING") == "1",
        )

    @property
    def is_local(self) -> bool:
        return self.environment in LOCAL_ENVIRONMENTS


@dataclass(frozen=True)
class BackendCredentials:
    url: str
    anon_key: str
    source: str
    service_role_key: str | None = field(default=None, repr=False)


def remediation_hint(settings: Settings) -> str:
    names = "SUPABASE_URL and SUPABASE_ANON_KEY"
    if settings.is_local:
        return (
            f"Set {names} (or VITE_SUPABASE_URL and VITE_SUPABASE_ANON_KEY) in your local "
            "environment or backend/.env, then restart the server."
        )
    return (
        f"Set {names} in the deployment's environment settings "
        "(or point AGROTECH_CONFIG_URL at a config endpoint) and redeploy."
    )


def fetch_remote_config(url: str, timeout: float) -> tuple[str | None, str | None]:
    """Read ``supabaseUrl``/``supabaseAnonKey`` from a config endpoint."""

    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    data = resp.json()
    return (data.get("supabaseUrl") or None), (data.get("supabaseAnonKey") or None)


def resolve_backend_credentials(
    settings: Settings,
    fetch: Callable[[str, float], tuple[str | None, str | None]] = fetch_remote_config,
) -> BackendCredentials:
    """Resolve the backend URL and key.

    Sources are tried in order: ``SUPABASE_URL``/``SUPABASE_ANON_KEY``, then
    ``VITE_SUPABASE_URL``/``VITE_SUPABASE_ANON_KEY``, then the config endpoint
    named by ``AGROTECH_CONFIG_URL``. The first source that yields both values
    wins.
    """

    if settings.supabase_url and settings.supabase_anon_key:
        return BackendCredentials(
            url=settings.supabase_url.rstrip("/"),
            anon_key=settings.supabase_anon_key,
            source=settings.credential_source or "env",
            service_role_key=settings.service_role_key,
        )
    if settings.config_url:
        try:
            url, key = fetch(settings.config_url, settings.request_timeout)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Config endpoint %s unavailable: %s", settings.config_url, exc)
        else:
            if url and key:
                return BackendCredentials(
                    url=url.rstrip("/"),
                    anon_key=key,
                    source="config-endpoint",
                    service_role_key=settings.service_role_key,
                )
    raise ConfigurationError("Supabase is not configured.", hint=remediation_hint(settings))
