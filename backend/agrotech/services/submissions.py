"""Soil-analysis review workflow: pending -> approved | rejected."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import models
from ..auth import Identity
from ..errors import NotFoundError, PermissionDeniedError, TransitionError

PENDING = "pending"
TERMINAL_STATUSES = frozenset({"approved", "rejected"})


def create_submission(db: Session, owner_email: str, data: dict) -> models.SoilAnalysis:
    fields = {k: v for k, v in data.items() if k not in {"status", "user_email", "id"}}
    now = models.utcnow()
    submission = models.SoilAnalysis(
        **fields,
        user_email=owner_email.strip().lower(),
        status=PENDING,
        admin_file_urls=[],
        created_at=now,
        updated_at=now,
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission


def get_submission(db: Session, submission_id: int) -> models.SoilAnalysis:
    submission = db.get(models.SoilAnalysis, submission_id)
    if not submission:
        raise NotFoundError("Analysis not found")
    return submission


def ensure_can_read(user: Identity, owner_email: str) -> None:
    if user.is_admin or user.email == owner_email.strip().lower():
        return
    raise PermissionDeniedError("Not authorized")


def list_for_owner(db: Session, owner_email: str) -> list[models.SoilAnalysis]:
    return (
        db.query(models.SoilAnalysis)
        .filter(models.SoilAnalysis.user_email == owner_email.strip().lower())
        .order_by(models.SoilAnalysis.created_at.desc(), models.SoilAnalysis.id.desc())
        .all()
    )


def list_all(db: Session, status: str | None = None) -> list[models.SoilAnalysis]:
    query = db.query(models.SoilAnalysis)
    if status:
        query = query.filter(models.SoilAnalysis.status == status)
    return query.order_by(models.SoilAnalysis.created_at.desc(), models.SoilAnalysis.id.desc()).all()


def apply_review(
    db: Session,
    submission_id: int,
    status: str,
    *,
    admin_comments: str | None = None,
    admin_file_urls: Iterable[str] | None = None,
) -> models.SoilAnalysis:
    """Set status (and optionally comments/files) in one conditional update.

    The WHERE clause only matches rows whose current status allows ``status``,
    so two concurrent reviews cannot both move a record out of ``pending``
    into different terminal states.
    """

    if status not in TERMINAL_STATUSES:
        get_submission(db, submission_id)
        raise TransitionError(f"Cannot move an analysis to '{status}'")
    values = {
        models.SoilAnalysis.status: status,
        models.SoilAnalysis.updated_at: models.utcnow(),
    }
    if admin_comments is not None:
        values[models.SoilAnalysis.admin_comments] = admin_comments
    if admin_file_urls is not None:
        values[models.SoilAnalysis.admin_file_urls] = list(admin_file_urls)
    updated = (
        db.query(models.SoilAnalysis)
        .filter(
            models.SoilAnalysis.id == submission_id,
            or_(models.SoilAnalysis.status == PENDING, models.SoilAnalysis.status == status),
        )
        .update(values, synchronize_session=False)
    )
    db.commit()
    submission = get_submission(db, submission_id)
    if not updated:
        raise TransitionError(
            f"Cannot move an analysis from '{submission.status}' to '{status}'"
        )
    return submission


def delete_submission(db: Session, submission_id: int, user: Identity) -> None:
    submission = get_submission(db, submission_id)
    if not user.is_admin:
        if submission.user_email != user.email:
            raise PermissionDeniedError("Not authorized")
        if submission.status == PENDING:
            raise TransitionError("Pending analyses can only be removed by an admin")
    db.delete(submission)
    db.commit()
