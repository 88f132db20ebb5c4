from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..auth import Identity, get_settings, require_admin
from ..errors import ValidationError
from ..services import invites
from .. import schemas, audit

router = APIRouter(prefix="/api", tags=["invites"])


@router.get("/validate-invite", response_model=schemas.InviteValidation)
async def validate_invite(code: str | None = None, db: Session = Depends(get_db)):
    if not code:
        raise ValidationError("Invite code is required", field="code")
    return invites.validate_invite(db, code)


@router.post("/create-invite", response_model=schemas.InviteCreated)
async def create_invite(
    payload: schemas.InviteCreate,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: Identity = Depends(require_admin),
):
    invite = invites.create_invite(db, payload.email, payload.expires_in)
    audit.log_action(
        db,
        current_user.email,
        "create_invite",
        "invite",
        invite.id,
        {"email": invite.email, "expires_in": payload.expires_in},
    )
    url = invites.build_invite_url(
        invite.code, base_url=settings.app_base_url, origin=request.headers.get("origin")
    )
    return schemas.InviteCreated(invite=schemas.InviteOut.model_validate(invite), invite_url=url)


@router.get("/invites", response_model=list[schemas.InviteOut])
async def list_invites(
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    return invites.list_invites(db)
