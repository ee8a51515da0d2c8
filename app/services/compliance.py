import logging
from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.models.posh import Case, CaseStatus
from app.schemas.compliance import ComplianceReport
from app.services.common import as_utc

logger = logging.getLogger(__name__)


def _rate(part: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(part / total * 100, 2)


def _closed_before_deadline(case: Case) -> bool:
    if case.resolution_date is None:
        return False
    if not case.deadlines:
        return True
    earliest = min(as_utc(d.deadline_date) for d in case.deadlines)
    return as_utc(case.resolution_date) <= earliest


def _is_overdue(case: Case, now: datetime) -> bool:
    if case.status == CaseStatus.closed:
        return False
    return any(as_utc(d.deadline_date) < now for d in case.deadlines)


def generate_report(
    db: Session,
    start: datetime,
    end: datetime,
    now: datetime | None = None,
) -> ComplianceReport:
    """Summarize how cases opened in ``[start, end]`` have been handled.

    ``compliance_rate`` counts every closed case, ``on_time_rate`` only those
    resolved on or before their earliest deadline.
    """
    start = as_utc(start)
    end = as_utc(end)
    if start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    now = now or datetime.now(timezone.utc)

    stmt = (
        select(Case)
        .options(selectinload(Case.deadlines))
        .where(Case.created_at >= start, Case.created_at <= end)
    )
    rows = list(db.scalars(stmt).all())

    closed = [c for c in rows if c.status == CaseStatus.closed]
    on_time = [c for c in closed if _closed_before_deadline(c)]
    overdue = [c for c in rows if _is_overdue(c, now)]
    resolution_days = [
        (as_utc(c.resolution_date) - as_utc(c.created_at)).total_seconds() / 86400
        for c in closed
        if c.resolution_date is not None
    ]
    average = (
        round(sum(resolution_days) / len(resolution_days), 2)
        if resolution_days
        else 0.0
    )

    report = ComplianceReport(
        start=start,
        end=end,
        total_cases=len(rows),
        closed_cases=len(closed),
        closed_before_deadline=len(on_time),
        overdue_cases=len(overdue),
        pending_cases=len(rows) - len(closed),
        compliance_rate=_rate(len(closed), len(rows)),
        on_time_rate=_rate(len(on_time), len(rows)),
        average_resolution_days=average,
        generated_at=now,
    )
    logger.info(
        "Compliance report %s..%s: %d cases, %d closed, %d overdue",
        start.date(),
        end.date(),
        report.total_cases,
        report.closed_cases,
        report.overdue_cases,
    )
    return report
