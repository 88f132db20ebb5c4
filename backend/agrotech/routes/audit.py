from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import Identity, require_admin
from .. import schemas, audit

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("", response_model=list[schemas.AuditLogOut])
async def list_logs(
    action: str | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    return audit.recent_actions(db, limit=min(max(limit, 1), 500), action=action)
