"""Session liveness checks and single-use sign-in."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .auth import Identity
from .config import DEFAULT_POLL_INTERVAL
from .errors import AgroTechError, AuthError, BackendError, BackendUnavailableError

# purpose: detect accounts deleted server-side while a token is still held locally
# status: active

logger = logging.getLogger(__name__)

LOGIN_REDIRECT = "/"
ALREADY_USED_MESSAGE = "This access link has already been used"


@dataclass(frozen=True)
class SessionState:
    authenticated: bool
    identity: Identity | None = None
    reason: str | None = None
    redirect: str | None = None


class SessionGuard:
    def __init__(self, backend, interval: float = DEFAULT_POLL_INTERVAL):
        self.backend = backend
        self.interval = interval

    def check(self, access_token: str | None) -> SessionState:
        """Re-fetch the identity behind ``access_token`` and sign out if it is gone."""

        if not access_token:
            return SessionState(False, reason="no_session", redirect=LOGIN_REDIRECT)
        user = self.backend.get_user(access_token)
        if not user:
            self._revoke(access_token)
            return SessionState(False, reason="account_missing", redirect=LOGIN_REDIRECT)
        return SessionState(True, identity=Identity.from_user(user))

    def _revoke(self, access_token: str) -> None:
        try:
            self.backend.sign_out(access_token)
        except AgroTechError as exc:
            # the token is already useless to the caller
            logger.warning("Could not revoke stale session token: %s", exc)

    def watch(
        self,
        access_token: str,
        on_state: Callable[[SessionState], None],
        stop: threading.Event | None = None,
        on_error: Callable[[Exception], None] | None = None,
        max_polls: int | None = None,
    ) -> SessionState | None:
        """Poll ``check`` every ``interval`` seconds until signed out or stopped."""

        stop = stop or threading.Event()
        polls = 0
        last: SessionState | None = None
        while not stop.is_set():
            try:
                last = self.check(access_token)
            except (BackendError, BackendUnavailableError) as exc:
                logger.warning("Session check failed, retrying next interval: %s", exc)
                if on_error:
                    on_error(exc)
            else:
                on_state(last)
                if not last.authenticated:
                    return last
            polls += 1
            if max_polls is not None and polls >= max_polls:
                break
            stop.wait(self.interval)
        return last


def _claim_first_access(db: Session, email: str) -> bool:
    claimed = (
        db.query(models.User)
        .filter(models.User.email == email, models.User.first_access.is_(True))
        .update({models.User.first_access: False}, synchronize_session=False)
    )
    if claimed:
        db.commit()
        return True
    if db.query(models.User.id).filter(models.User.email == email).first():
        db.rollback()
        return False
    db.add(models.User(email=email, first_access=False))
    try:
        db.commit()
    except IntegrityError:
        # a concurrent first sign-in inserted the row first
        db.rollback()
        return False
    return True


def sign_in(backend, db: Session, email: str, password: str, *, single_use: bool) -> tuple[dict, bool]:
    """Password sign-in; in single-use mode only the first sign-in is accepted.

    Returns the provider session and whether this sign-in consumed the first access.
    """

    email = email.strip().lower()
    session = backend.sign_in_with_password(email, password)
    if not single_use:
        return session, False
    if _claim_first_access(db, email):
        logger.info("First access consumed for %s", email)
        return session, True
    token = session.get("access_token")
    if token:
        try:
            backend.sign_out(token)
        except AgroTechError as exc:
            logger.error("Could not terminate reused single-use session for %s: %s", email, exc)
            raise
    raise AuthError(ALREADY_USED_MESSAGE)
