"""Counter-based single-use access links."""

from __future__ import annotations

import secrets

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import AuthError, NotFoundError, TransitionError

CODE_BYTES = 12


def generate_link_code() -> str:
    return secrets.token_urlsafe(CODE_BYTES)


def create_access_link(
    db: Session, code: str | None = None, email: str | None = None
) -> models.AccessLink:
    link = models.AccessLink(
        link_code=code or generate_link_code(),
        uses_remaining=1,
        email=email.strip().lower() if email else None,
        created_at=models.utcnow(),
    )
    db.add(link)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise TransitionError("Access link code already exists")
    db.refresh(link)
    return link


def get_access_link(db: Session, code: str) -> models.AccessLink:
    link = db.query(models.AccessLink).filter(models.AccessLink.link_code == code).first()
    if not link:
        raise NotFoundError("Link not found")
    return link


def use_access_link(db: Session, code: str) -> models.AccessLink:
    """Decrement ``uses_remaining`` if it is still positive.

    The check and the decrement are one UPDATE statement, so concurrent
    callers racing for the last use see exactly one success.
    """

    updated = (
        db.query(models.AccessLink)
        .filter(models.AccessLink.link_code == code, models.AccessLink.uses_remaining > 0)
        .update(
            {models.AccessLink.uses_remaining: models.AccessLink.uses_remaining - 1},
            synchronize_session=False,
        )
    )
    db.commit()
    if not updated:
        get_access_link(db, code)
        raise AuthError("Access link already used")
    link = get_access_link(db, code)
    db.refresh(link)
    return link
