from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_context
from app.db import SessionLocal
from app.schemas.case import (
    CaseCreate,
    CaseRead,
    CaseReviewCreate,
    CaseReviewRead,
    CaseStatusUpdate,
    EvidenceCreate,
    EvidenceRead,
    EvidenceUploadUrlRead,
    EvidenceUploadUrlRequest,
)
from app.schemas.common import ListResponse
from app.services.case import case_reviews, cases, evidence_items
from app.services.context import ServiceContext

router = APIRouter(prefix="/cases", tags=["cases"])


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@router.post("", response_model=CaseRead, status_code=status.HTTP_201_CREATED)
def create_case(
    payload: CaseCreate,
    db: Session = Depends(get_db),
    context: ServiceContext = Depends(get_context),
):
    return cases.create(db, context.dispatcher, payload)


@router.get("/{case_id}", response_model=CaseRead)
def get_case(case_id: str, db: Session = Depends(get_db)):
    return cases.get(db, case_id)


@router.get("", response_model=ListResponse[CaseRead])
def list_cases(
    case_status: str | None = Query(default=None, alias="status"),
    priority: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return cases.list_response(
        db, case_status, priority, order_by, order_dir, limit, offset
    )


@router.patch("/{case_id}/status", response_model=CaseRead)
def update_case_status(
    case_id: str,
    payload: CaseStatusUpdate,
    db: Session = Depends(get_db),
    context: ServiceContext = Depends(get_context),
):
    return cases.update_status(
        db, context.dispatcher, case_id, payload.status, payload.assigned_to
    )


@router.post(
    "/{case_id}/evidence",
    response_model=EvidenceRead,
    status_code=status.HTTP_201_CREATED,
)
def upload_evidence(
    case_id: str,
    payload: EvidenceCreate,
    db: Session = Depends(get_db),
    context: ServiceContext = Depends(get_context),
):
    return evidence_items.upload(db, context.dispatcher, case_id, payload)


@router.get("/{case_id}/evidence", response_model=list[EvidenceRead])
def list_evidence(case_id: str, db: Session = Depends(get_db)):
    return evidence_items.list_for_case(db, case_id)


@router.post("/{case_id}/evidence/upload-url", response_model=EvidenceUploadUrlRead)
def evidence_upload_url(
    case_id: str,
    payload: EvidenceUploadUrlRequest,
    db: Session = Depends(get_db),
):
    return evidence_items.upload_url(db, case_id, payload.file_name, payload.mime_type)


@router.get("/evidence/{evidence_id}/download-url")
def evidence_download_url(evidence_id: str, db: Session = Depends(get_db)):
    return {"download_url": evidence_items.download_url(db, evidence_id)}


@router.post(
    "/{case_id}/reviews",
    response_model=CaseReviewRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_review(
    case_id: str,
    payload: CaseReviewCreate,
    db: Session = Depends(get_db),
    context: ServiceContext = Depends(get_context),
):
    payload = payload.model_copy(update={"case_id": case_id})
    return case_reviews.submit(db, context.dispatcher, payload)


@router.get("/{case_id}/reviews", response_model=list[CaseReviewRead])
def list_reviews(case_id: str, db: Session = Depends(get_db)):
    return case_reviews.list_for_case(db, case_id)
