from datetime import datetime, timezone
from sqlalchemy.orm import Session
from . import models


def log_action(
    db: Session,
    actor_email: str,
    action: str,
    target_type: str | None = None,
    target_id: str | int | None = None,
    details: dict | None = None,
):
    log = models.AuditLog(
        actor_email=actor_email,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        details=details or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def recent_actions(db: Session, limit: int = 100, action: str | None = None):
    query = db.query(models.AuditLog)
    if action:
        query = query.filter(models.AuditLog.action == action)
    return query.order_by(models.AuditLog.created_at.desc()).limit(limit).all()
