from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import Identity, get_backend, get_optional_backend, require_admin
from ..services import provisioning
from .. import schemas, audit
from .auth import rate_limit

router = APIRouter(prefix="/api", tags=["logins"])


def _created(login, password: str) -> schemas.LoginCreated:
    return schemas.LoginCreated(
        **schemas.LoginOut.model_validate(login).model_dump(), password=password
    )


@router.get("/logins", response_model=list[schemas.LoginOut])
async def list_logins(
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    return provisioning.list_logins(db)


@router.post("/logins", response_model=schemas.LoginCreated)
async def create_login(
    payload: schemas.LoginCreate,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    login, password = provisioning.create_login(db, **payload.model_dump())
    audit.log_action(
        db, current_user.email, "create_login", "login", login.id, {"plan": login.plan}
    )
    return _created(login, password)


@router.post("/logins/create-with-auth", response_model=schemas.LoginWithAuthOut)
def create_login_with_auth(
    payload: schemas.LoginWithAuthCreate,
    db: Session = Depends(get_db),
    backend=Depends(get_backend),
    current_user: Identity = Depends(require_admin),
):
    login, password = provisioning.create_login_with_auth(db, backend, **payload.model_dump())
    audit.log_action(
        db, current_user.email, "provision_login", "login", login.id, {"email": login.email}
    )
    return schemas.LoginWithAuthOut(
        message="Login created and user added to Supabase Authentication",
        login=_created(login, password),
    )


@router.get("/logins/{login_id}", response_model=schemas.LoginOut)
async def get_login(
    login_id: int,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    return provisioning.get_login(db, login_id)


@router.patch("/logins/{login_id}", response_model=schemas.LoginOut)
async def update_login(
    login_id: int,
    payload: schemas.LoginUpdate,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    changes = payload.model_dump(exclude_unset=True)
    login = provisioning.update_login(db, login_id, changes)
    audit.log_action(
        db, current_user.email, "update_login", "login", login_id,
        {key: str(value) for key, value in changes.items()},
    )
    return login


@router.delete("/logins/{login_id}", response_model=schemas.SuccessOut)
def delete_login(
    login_id: int,
    db: Session = Depends(get_db),
    backend=Depends(get_optional_backend),
    current_user: Identity = Depends(require_admin),
):
    provisioning.delete_login(db, login_id, backend)
    audit.log_action(db, current_user.email, "delete_login", "login", login_id)
    return schemas.SuccessOut(message="Login deleted")


@router.post("/verify-login", response_model=schemas.VerifyLoginOut)
@rate_limit("10/minute")
def verify_login(
    request: Request,
    payload: schemas.VerifyLoginRequest,
    db: Session = Depends(get_db),
    backend=Depends(get_optional_backend),
):
    login = provisioning.verify_login(db, payload.email, payload.password, backend)
    return schemas.VerifyLoginOut(user=schemas.VerifiedLoginUser.model_validate(login))


@router.post("/verify-login-exists", response_model=schemas.SuccessOut)
def verify_login_exists(
    payload: schemas.EmailRequest,
    db: Session = Depends(get_db),
    backend=Depends(get_optional_backend),
):
    provisioning.verify_login_exists(db, payload.email, backend)
    return schemas.SuccessOut()


@router.get("/auth-users", response_model=list[schemas.AuthUserOut])
def list_auth_users(
    backend=Depends(get_backend),
    current_user: Identity = Depends(require_admin),
):
    return [
        schemas.AuthUserOut(
            id=str(user["id"]),
            email=user.get("email"),
            created_at=user.get("created_at"),
            last_sign_in_at=user.get("last_sign_in_at"),
        )
        for user in backend.admin_list_users()
    ]
