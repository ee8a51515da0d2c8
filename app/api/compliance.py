from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.schemas.compliance import ComplianceReport
from app.services.compliance import generate_report

router = APIRouter(prefix="/compliance", tags=["compliance"])


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@router.get("/report", response_model=ComplianceReport)
def compliance_report(
    start: datetime | None = None,
    end: datetime | None = None,
    db: Session = Depends(get_db),
):
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(days=365)
    return generate_report(db, start, end)
