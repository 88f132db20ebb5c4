import logging

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..auth import Identity, get_current_user, get_optional_backend, get_settings, require_admin
from ..errors import NotFoundError, ValidationError
from ..services import submissions
from ..storage import PDF_CONTENT_TYPE, save_upload
from .. import schemas, audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/soil-analysis", tags=["soil-analysis"])


def _memory_store(request: Request):
    return request.app.state.memory_store


@router.post("", response_model=schemas.SoilAnalysisOut)
async def create_analysis(
    payload: schemas.SoilAnalysisCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    data = payload.model_dump()
    try:
        return submissions.create_submission(db, current_user.email, data)
    except OperationalError as exc:
        db.rollback()
        logger.warning("Database unavailable, keeping analysis in memory: %s", exc)
        return _memory_store(request).create(current_user.email, data)


@router.post("/uploads", response_model=schemas.UploadOut)
def upload_file(
    file: UploadFile = File(...),
    kind: str = Form("report"),
    settings: Settings = Depends(get_settings),
    backend=Depends(get_optional_backend),
    current_user: Identity = Depends(get_current_user),
):
    if kind not in ("report", "attachment"):
        raise ValidationError("kind must be 'report' or 'attachment'", field="kind")
    content_type = file.content_type or "application/octet-stream"
    if kind == "report" and content_type != PDF_CONTENT_TYPE:
        raise ValidationError("Only PDF files are accepted for the analysis report", field="file")
    data = file.file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise ValidationError(
            f"File exceeds the {settings.max_upload_bytes} byte upload limit", field="file"
        )
    ref, storage = save_upload(
        data,
        file.filename,
        kind=kind,
        content_type=content_type,
        settings=settings,
        backend=backend,
    )
    logger.info("Stored %s upload for %s in %s", kind, current_user.email, storage)
    return schemas.UploadOut(path=ref, kind=kind, storage=storage)


@router.get("/all", response_model=list[schemas.SoilAnalysisOut])
async def list_all(
    status: schemas.SubmissionStatus | None = None,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    return submissions.list_all(db, status)


@router.get("/user/{email}", response_model=list[schemas.SoilAnalysisOut])
async def list_for_owner(
    email: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    submissions.ensure_can_read(current_user, email)
    try:
        return submissions.list_for_owner(db, email)
    except OperationalError as exc:
        db.rollback()
        logger.warning("Database unavailable, serving analyses from memory: %s", exc)
        return _memory_store(request).list_for_owner(email.strip().lower())


@router.get("/{analysis_id}", response_model=schemas.SoilAnalysisOut)
async def get_analysis(
    analysis_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    try:
        analysis = submissions.get_submission(db, analysis_id)
    except OperationalError as exc:
        db.rollback()
        logger.warning("Database unavailable, serving analysis from memory: %s", exc)
        analysis = _memory_store(request).get(analysis_id)
        if analysis is None:
            raise NotFoundError("Analysis not found")
        submissions.ensure_can_read(current_user, analysis["user_email"])
        return analysis
    submissions.ensure_can_read(current_user, analysis.user_email)
    return analysis


@router.patch("/{analysis_id}/status", response_model=schemas.SoilAnalysisOut)
async def update_status(
    analysis_id: int,
    payload: schemas.StatusUpdate,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    analysis = submissions.apply_review(db, analysis_id, payload.status)
    audit.log_action(
        db, current_user.email, "update_analysis_status", "soil_analysis", analysis_id,
        {"status": payload.status},
    )
    return analysis


@router.patch("/{analysis_id}/review", response_model=schemas.SoilAnalysisOut)
async def review_analysis(
    analysis_id: int,
    payload: schemas.ReviewUpdate,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(require_admin),
):
    analysis = submissions.apply_review(
        db,
        analysis_id,
        payload.status,
        admin_comments=payload.admin_comments,
        admin_file_urls=payload.admin_file_urls,
    )
    audit.log_action(
        db, current_user.email, "review_analysis", "soil_analysis", analysis_id,
        {"status": payload.status, "files": len(payload.admin_file_urls)},
    )
    return analysis


@router.delete("/{analysis_id}", response_model=schemas.SuccessOut)
async def delete_analysis(
    analysis_id: int,
    db: Session = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    submissions.delete_submission(db, analysis_id, current_user)
    audit.log_action(db, current_user.email, "delete_analysis", "soil_analysis", analysis_id)
    return schemas.SuccessOut(message="Analysis deleted")
