"""Admin-provisioned login credentials and the create-with-auth saga."""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..auth import get_password_hash, verify_password
from ..errors import (
    AgroTechError,
    AuthError,
    BackendError,
    BackendUnavailableError,
    NotFoundError,
    PartialFailureError,
    TransitionError,
    ValidationError,
)

# purpose: generate, store and verify username/password grants sold per plan tier
# status: active

logger = logging.getLogger(__name__)

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"
PASSWORD_LENGTH = 12
USERNAME_ADJECTIVES = ("Blue", "Red", "Green", "Swift", "Happy", "Bold", "Smart", "Quick")
USERNAME_ANIMALS = ("Lion", "Tiger", "Eagle", "Fox", "Wolf", "Bear", "Hawk", "Panda")

PLAN_DURATIONS = {
    "1_month": 30,
    "3_months": 90,
    "6_months": 180,
    "1_year": 365,
    "lifetime": None,
}

INVALID_CREDENTIALS = "Invalid credentials"
LOGIN_EXPIRED = "Login has expired"


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def generate_username() -> str:
    return (
        secrets.choice(USERNAME_ADJECTIVES)
        + secrets.choice(USERNAME_ANIMALS)
        + str(secrets.randbelow(1000))
    )


def plan_expiry(plan: str, start: datetime | None = None) -> datetime | None:
    days = PLAN_DURATIONS.get(plan)
    if days is None:
        return None
    return (start or models.utcnow()) + timedelta(days=days)


def is_expired(login: models.Login, now: datetime | None = None) -> bool:
    expires_at = models.as_utc(login.expires_at)
    return expires_at is not None and expires_at <= (now or models.utcnow())


def _normalize_email(email: str | None) -> str | None:
    return email.strip().lower() if email else None


def _insert_login(
    db: Session,
    *,
    username: str,
    password: str,
    client_name: str | None,
    email: str | None,
    plan: str,
    expires_at: datetime | None,
    status: str = "active",
) -> models.Login:
    login = models.Login(
        username=username,
        password_hash=get_password_hash(password),
        client_name=client_name,
        email=_normalize_email(email),
        plan=plan,
        expires_at=expires_at if expires_at is not None else plan_expiry(plan),
        status=status,
        created_at=models.utcnow(),
    )
    db.add(login)
    db.commit()
    db.refresh(login)
    return login


def create_login(
    db: Session,
    *,
    username: str | None = None,
    password: str | None = None,
    client_name: str | None = None,
    email: str | None = None,
    plan: str = "1_month",
    expires_at: datetime | None = None,
    status: str = "active",
) -> tuple[models.Login, str]:
    """Create a local login; returns the row and the plain-text password."""

    password = password or generate_password()
    try:
        login = _insert_login(
            db,
            username=username or generate_username(),
            password=password,
            client_name=client_name,
            email=email,
            plan=plan,
            expires_at=expires_at,
            status=status,
        )
    except IntegrityError:
        db.rollback()
        raise TransitionError("Username already exists")
    return login, password


def create_login_with_auth(
    db: Session,
    backend,
    *,
    email: str,
    password: str | None = None,
    client_name: str | None = None,
    plan: str = "1_month",
    expires_at: datetime | None = None,
) -> tuple[models.Login, str]:
    """Create the remote identity, then the login row; undo the identity on failure."""

    email = _normalize_email(email)
    password = password or generate_password()
    auth_user = backend.admin_create_user(email, password, {"client_name": client_name})
    auth_user_id = str(auth_user.get("id"))
    logger.info("Auth user %s created for %s", auth_user_id, email)

    try:
        login = _insert_login(
            db,
            username=email,
            password=password,
            client_name=client_name,
            email=email,
            plan=plan,
            expires_at=expires_at,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to insert login for %s: %s", email, exc)
        try:
            backend.admin_delete_user(auth_user_id)
        except AgroTechError as cleanup_exc:
            logger.critical(
                "Orphaned auth user %s (%s) after failed login insert: %s",
                auth_user_id,
                email,
                cleanup_exc,
            )
            raise PartialFailureError(
                f"Failed to create login record; auth user {auth_user_id} could not be removed"
            ) from exc
        raise PartialFailureError(
            f"Failed to create login record; auth user {auth_user_id} was removed"
        ) from exc
    return login, password


def list_logins(db: Session) -> list[models.Login]:
    return db.query(models.Login).order_by(models.Login.created_at.desc()).all()


def get_login(db: Session, login_id: int) -> models.Login:
    login = db.get(models.Login, login_id)
    if not login:
        raise NotFoundError("Login not found")
    return login


def update_login(db: Session, login_id: int, changes: dict) -> models.Login:
    login = get_login(db, login_id)
    if "plan" in changes and "expires_at" not in changes:
        changes["expires_at"] = plan_expiry(changes["plan"])
    for key, value in changes.items():
        setattr(login, key, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Invalid login update")
    db.refresh(login)
    return login


def delete_login(db: Session, login_id: int, backend=None) -> None:
    """Delete the row, and best-effort the remote identity with the same email."""

    login = get_login(db, login_id)
    if login.email and backend is not None and backend.has_admin:
        try:
            auth_user = backend.admin_find_user_by_email(login.email)
            if auth_user:
                backend.admin_delete_user(str(auth_user["id"]))
        except AgroTechError as exc:
            logger.warning("Could not remove auth user for %s: %s", login.email, exc)
    db.delete(login)
    db.commit()


def _identity_exists(backend, email: str) -> bool | None:
    if backend is None or not backend.has_admin:
        return None
    try:
        return backend.admin_find_user_by_email(email) is not None
    except (BackendError, BackendUnavailableError) as exc:
        logger.warning("Could not validate auth user for %s: %s", email, exc)
        return None


def _active_logins(db: Session, email: str) -> list[models.Login]:
    return (
        db.query(models.Login)
        .filter(models.Login.email == email, models.Login.status == "active")
        .order_by(models.Login.created_at.desc())
        .all()
    )


def verify_login(db: Session, email: str, password: str, backend=None) -> models.Login:
    email = _normalize_email(email)
    match = next(
        (login for login in _active_logins(db, email) if verify_password(password, login.password_hash)),
        None,
    )
    if match is None:
        raise AuthError(INVALID_CREDENTIALS)
    if is_expired(match):
        raise AuthError(LOGIN_EXPIRED)
    if _identity_exists(backend, email) is False:
        logger.info("Login %s rejected: auth user deleted", email)
        raise AuthError(INVALID_CREDENTIALS)
    return match


def verify_login_exists(db: Session, email: str, backend=None) -> None:
    email = _normalize_email(email)
    logins = _active_logins(db, email)
    if not logins:
        raise AuthError("Login not found")
    if is_expired(logins[0]):
        raise AuthError(LOGIN_EXPIRED)
    if _identity_exists(backend, email) is False:
        raise AuthError("User deleted")
