"""Expiry-based signup invites."""

from __future__ import annotations

import secrets
from datetime import timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import models
from ..errors import AuthError
from ..schemas import InviteValidation

DEFAULT_BASE_URL = "http://localhost:5000"
LIFETIME = "lifetime"


def generate_invite_code() -> str:
    return secrets.token_hex(16)


def create_invite(db: Session, email: str, expires_in: int | str = 7) -> models.InviteLink:
    now = models.utcnow()
    expires_at = None if expires_in == LIFETIME else now + timedelta(days=int(expires_in))
    invite = models.InviteLink(
        code=generate_invite_code(),
        email=email.strip().lower(),
        expires_at=expires_at,
        created_at=now,
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)
    return invite


def build_invite_url(code: str, base_url: str | None = None, origin: str | None = None) -> str:
    base = (base_url or origin or DEFAULT_BASE_URL).rstrip("/")
    return f"{base}/signup?code={code}"


def _invite_error(invite: models.InviteLink | None, email: str | None = None) -> str | None:
    if invite is None:
        return "Invite not found"
    if invite.used_at is not None:
        return "Invite already used"
    expires_at = models.as_utc(invite.expires_at)
    if expires_at is not None and expires_at <= models.utcnow():
        return "Invite expired"
    if email and invite.email and invite.email != email.strip().lower():
        return "Invite issued for a different email"
    return None


def validate_invite(db: Session, code: str) -> InviteValidation:
    invite = db.query(models.InviteLink).filter(models.InviteLink.code == code).first()
    error = _invite_error(invite)
    if error:
        return InviteValidation(valid=False, error=error)
    return InviteValidation(valid=True, email=invite.email)


def consume_invite(db: Session, code: str, email: str) -> None:
    """Mark the invite used in the caller's transaction.

    Does not commit; the caller commits together with whatever the invite
    unlocks, or rolls back and leaves the invite unused.
    """

    now = models.utcnow()
    email = email.strip().lower()
    updated = (
        db.query(models.InviteLink)
        .filter(
            models.InviteLink.code == code,
            models.InviteLink.used_at.is_(None),
            or_(models.InviteLink.expires_at.is_(None), models.InviteLink.expires_at > now),
            or_(models.InviteLink.email.is_(None), models.InviteLink.email == email),
        )
        .update({models.InviteLink.used_at: now}, synchronize_session=False)
    )
    if not updated:
        invite = db.query(models.InviteLink).filter(models.InviteLink.code == code).first()
        db.rollback()
        raise AuthError(_invite_error(invite, email) or "Invite is no longer valid")


def list_invites(db: Session) -> list[models.InviteLink]:
    return db.query(models.InviteLink).order_by(models.InviteLink.created_at.desc()).all()
