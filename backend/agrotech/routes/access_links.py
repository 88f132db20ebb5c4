from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import Identity, require_admin
from ..services import access_links
from .. import schemas, audit

router = APIRouter(prefix="/api/access-links", tags=["access-links"])


@router.post("", response_model=schemas.AccessLinkOut)
async def create_link(
    payload: schemas.AccessLinkCreate,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    link = access_links.create_access_link(db, code=payload.link_code, email=payload.email)
    audit.log_action(db, current_user.email, "create_access_link", "access_link", link.id)
    return link


@router.get("/{code}", response_model=schemas.AccessLinkOut)
async def get_link(code: str, db: Session = Depends(get_db)):
    return access_links.get_access_link(db, code)


@router.post("/{code}/use", response_model=schemas.AccessLinkUseOut)
async def use_link(code: str, db: Session = Depends(get_db)):
    link = access_links.use_access_link(db, code)
    return schemas.AccessLinkUseOut(uses_remaining=link.uses_remaining)
