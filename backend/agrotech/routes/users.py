from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import Identity, get_current_user, require_admin
from ..errors import NotFoundError, TransitionError
from ..services import invites
from .. import models, schemas

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/save-user-profile", response_model=schemas.ProfileSaved)
async def save_user_profile(payload: schemas.UserProfileCreate, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    # invite consumption and profile insert commit together
    invites.consume_invite(db, payload.invite_code, email)
    user = models.User(
        email=email,
        full_name=payload.full_name,
        phone=payload.phone,
        address=payload.address,
        occupation=payload.occupation,
        education=payload.education,
        birth_date=payload.birth_date,
        first_access=True,
        created_at=models.utcnow(),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise TransitionError("Profile already exists")
    db.refresh(user)
    return schemas.ProfileSaved(user=schemas.UserOut.model_validate(user))


@router.get("/users/me", response_model=schemas.UserOut)
async def read_profile(
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    user = db.query(models.User).filter(models.User.email == current_user.email).first()
    if not user:
        raise NotFoundError("Profile not found")
    return user


@router.get("/users/all", response_model=list[schemas.UserOut])
async def list_profiles(
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    return db.query(models.User).order_by(models.User.created_at.desc()).all()
