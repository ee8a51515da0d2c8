from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_context
from app.db import SessionLocal
from app.schemas.deadline import (
    ComplianceDeadlineCreate,
    ComplianceDeadlineRead,
    DeadlineListRead,
    DeadlineScanRead,
    ReconcileRead,
    UpcomingDeadlineListRead,
)
from app.services.context import ServiceContext
from app.services.deadline import check_deadlines, compliance_deadlines

router = APIRouter(prefix="/deadlines", tags=["deadlines"])


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@router.post(
    "",
    response_model=ComplianceDeadlineRead,
    status_code=status.HTTP_201_CREATED,
)
def create_deadline(payload: ComplianceDeadlineCreate, db: Session = Depends(get_db)):
    return compliance_deadlines.create(
        db,
        payload.case_id,
        payload.deadline_type,
        payload.days_from_now,
        payload.description,
    )


@router.get("/overdue", response_model=DeadlineListRead)
def list_overdue(db: Session = Depends(get_db)):
    deadlines = compliance_deadlines.list_overdue(db)
    return {"deadlines": deadlines, "count": len(deadlines)}


@router.get("/upcoming", response_model=UpcomingDeadlineListRead)
def list_upcoming(
    days_ahead: int = Query(default=14, ge=0, le=365),
    db: Session = Depends(get_db),
):
    deadlines = compliance_deadlines.list_upcoming(db, days_ahead)
    return {"deadlines": deadlines, "count": len(deadlines)}


@router.get("", response_model=DeadlineListRead)
def list_by_status(
    deadline_status: str = Query(default="pending", alias="status"),
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    deadlines = compliance_deadlines.list_by_status(db, deadline_status, limit)
    return {"deadlines": deadlines, "count": len(deadlines)}


@router.get("/case/{case_id}", response_model=list[ComplianceDeadlineRead])
def list_for_case(case_id: str, db: Session = Depends(get_db)):
    return compliance_deadlines.list_for_case(db, case_id)


@router.get("/{deadline_id}", response_model=ComplianceDeadlineRead)
def get_deadline(deadline_id: str, db: Session = Depends(get_db)):
    return compliance_deadlines.get(db, deadline_id)


@router.post("/{deadline_id}/complete", response_model=ComplianceDeadlineRead)
def complete_deadline(deadline_id: str, db: Session = Depends(get_db)):
    return compliance_deadlines.complete(db, deadline_id)


@router.post("/scan", response_model=DeadlineScanRead)
def scan_deadlines(
    db: Session = Depends(get_db),
    context: ServiceContext = Depends(get_context),
):
    return check_deadlines(db, context.dispatcher).as_dict()


@router.post("/reconcile", response_model=ReconcileRead)
def reconcile_deadlines(db: Session = Depends(get_db)):
    return {"created": compliance_deadlines.reconcile_missing(db)}
