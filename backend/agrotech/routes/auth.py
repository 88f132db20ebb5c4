from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import Settings
from ..database import get_db
from ..errors import AuthError
from ..session import SessionGuard, sign_in
from .. import schemas
from ..auth import Identity, get_backend, get_bearer_token, get_current_user, get_settings

limiter = Limiter(key_func=get_remote_address)
testing = Settings.from_env().testing


def rate_limit(limit: str):
    if testing:
        def wrapper(func):
            return func
        return wrapper
    return limiter.limit(limit)


router = APIRouter(tags=["auth"])


def identity_out(identity: Identity) -> schemas.IdentityOut:
    return schemas.IdentityOut(
        id=identity.id, email=identity.email, role=identity.role, is_admin=identity.is_admin
    )


@router.get("/api/session", response_model=schemas.SessionStateOut)
def session_state(
    token: str | None = Depends(get_bearer_token),
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    state = SessionGuard(backend, settings.session_poll_interval).check(token)
    return schemas.SessionStateOut(
        authenticated=state.authenticated,
        user=identity_out(state.identity) if state.identity else None,
        reason=state.reason,
        redirect=state.redirect,
        poll_interval=settings.session_poll_interval,
    )


@router.post("/api/auth/sign-in", response_model=schemas.SignInOut)
@rate_limit("10/minute")
def sign_in_route(
    request: Request,
    payload: schemas.SignInRequest,
    db: Session = Depends(get_db),
    backend=Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    session, first_access = sign_in(
        backend, db, payload.email, payload.password, single_use=settings.single_use_access
    )
    if not session.get("access_token") or not session.get("user"):
        raise AuthError("Sign-in did not return a session")
    return schemas.SignInOut(
        access_token=session["access_token"],
        refresh_token=session.get("refresh_token"),
        expires_in=session.get("expires_in"),
        user=identity_out(Identity.from_user(session["user"])),
        first_access=first_access,
    )


@router.post("/api/auth/sign-out", response_model=schemas.SuccessOut)
def sign_out(
    token: str | None = Depends(get_bearer_token),
    current_user: Identity = Depends(get_current_user),
    backend=Depends(get_backend),
):
    backend.sign_out(token)
    return schemas.SuccessOut(message=f"Signed out {current_user.email}")
