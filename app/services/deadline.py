import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.config import settings
from app.models.posh import (
    Case,
    CaseStatus,
    ComplianceDeadline,
    DeadlineStatus,
    DeadlineType,
    UrgencyLevel,
)
from app.schemas.webhook import DeadlineApproachingPayload, WebhookEventType
from app.services.common import as_utc, coerce_uuid

logger = logging.getLogger(__name__)

APPROACHING_WINDOW_DAYS = 7
SCAN_WINDOW_DAYS = 14
INVESTIGATION_DEADLINE_DESCRIPTION = (
    "Complete investigation within 90 days as per POSH Act"
)


def days_remaining(due: datetime, now: datetime) -> int:
    return math.ceil((as_utc(due) - now).total_seconds() / 86400)


def classify_urgency(days: int) -> UrgencyLevel | None:
    """Urgency of an approaching deadline, ``None`` outside the alert window."""
    if days <= 1:
        return UrgencyLevel.critical
    if days <= 3:
        return UrgencyLevel.high
    if days <= APPROACHING_WINDOW_DAYS:
        return UrgencyLevel.medium
    return None


def _coerce_deadline_type(value) -> DeadlineType:
    try:
        return value if isinstance(value, DeadlineType) else DeadlineType(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid deadline_type: {value}")


def _coerce_deadline_status(value) -> DeadlineStatus:
    try:
        return value if isinstance(value, DeadlineStatus) else DeadlineStatus(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status: {value}")


# ---------------------------------------------------------------------------
# ComplianceDeadlines
# ---------------------------------------------------------------------------


class ComplianceDeadlines:
    @staticmethod
    def create(
        db: Session,
        case_id: str,
        deadline_type: DeadlineType | str,
        days_from_now: int,
        description: str,
        now: datetime | None = None,
    ) -> ComplianceDeadline:
        deadline_type = _coerce_deadline_type(deadline_type)
        if not db.get(Case, coerce_uuid(case_id)):
            raise HTTPException(status_code=404, detail="Case not found")
        now = now or datetime.now(timezone.utc)
        deadline = ComplianceDeadline(
            case_id=coerce_uuid(case_id),
            deadline_type=deadline_type,
            deadline_date=now + timedelta(days=days_from_now),
            description=description,
            status=DeadlineStatus.pending,
            urgency_level=(
                UrgencyLevel.high
                if days_from_now <= APPROACHING_WINDOW_DAYS
                else UrgencyLevel.medium
            ),
        )
        db.add(deadline)
        db.commit()
        db.refresh(deadline)
        logger.info(
            "Created %s deadline for case %s due in %d days",
            deadline_type.value,
            case_id,
            days_from_now,
        )
        return deadline

    @staticmethod
    def get(db: Session, deadline_id: str) -> ComplianceDeadline:
        deadline = db.get(ComplianceDeadline, coerce_uuid(deadline_id))
        if not deadline:
            raise HTTPException(status_code=404, detail="Deadline not found")
        return deadline

    @staticmethod
    def list_for_case(db: Session, case_id: str) -> list[ComplianceDeadline]:
        stmt = (
            select(ComplianceDeadline)
            .where(ComplianceDeadline.case_id == coerce_uuid(case_id))
            .order_by(ComplianceDeadline.deadline_date.asc())
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def list_overdue(
        db: Session, now: datetime | None = None
    ) -> list[ComplianceDeadline]:
        now = now or datetime.now(timezone.utc)
        stmt = (
            select(ComplianceDeadline)
            .options(selectinload(ComplianceDeadline.case))
            .where(
                ComplianceDeadline.deadline_date < now,
                ComplianceDeadline.status.in_(
                    [DeadlineStatus.pending, DeadlineStatus.alert_sent]
                ),
            )
            .order_by(ComplianceDeadline.deadline_date.asc())
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def list_upcoming(
        db: Session, days_ahead: int = SCAN_WINDOW_DAYS, now: datetime | None = None
    ) -> list[dict]:
        """Pending deadlines due within ``days_ahead``, soonest first."""
        now = now or datetime.now(timezone.utc)
        stmt = (
            select(ComplianceDeadline)
            .options(selectinload(ComplianceDeadline.case))
            .where(
                ComplianceDeadline.status == DeadlineStatus.pending,
                ComplianceDeadline.deadline_date <= now + timedelta(days=days_ahead),
            )
            .order_by(ComplianceDeadline.deadline_date.asc())
        )
        return [
            {
                "deadline": deadline,
                "days_until_deadline": days_remaining(deadline.deadline_date, now),
            }
            for deadline in db.scalars(stmt).all()
        ]

    @staticmethod
    def list_by_status(
        db: Session, status: DeadlineStatus | str, limit: int
    ) -> list[ComplianceDeadline]:
        stmt = (
            select(ComplianceDeadline)
            .options(selectinload(ComplianceDeadline.case))
            .where(ComplianceDeadline.status == _coerce_deadline_status(status))
            .order_by(ComplianceDeadline.deadline_date.asc())
            .limit(limit)
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def complete(db: Session, deadline_id: str) -> ComplianceDeadline:
        deadline = ComplianceDeadlines.get(db, deadline_id)
        if deadline.status == DeadlineStatus.completed:
            return deadline
        deadline.status = DeadlineStatus.completed
        db.commit()
        db.refresh(deadline)
        logger.info("Completed deadline %s", deadline_id)
        return deadline

    @staticmethod
    def reconcile_missing(db: Session, now: datetime | None = None) -> int:
        """Create the investigation deadline for open cases that lack one.

        Case creation does not roll back when the deadline insert fails, so
        this sweep restores the invariant afterwards. The due date is counted
        from the case's creation, not from the sweep.
        """
        now = now or datetime.now(timezone.utc)
        window = settings.investigation_window_days
        stmt = select(Case).where(
            Case.status != CaseStatus.closed,
            ~Case.deadlines.any(
                ComplianceDeadline.deadline_type == DeadlineType.investigation
            ),
        )
        cases = db.scalars(stmt).all()
        for case in cases:
            due = as_utc(case.created_at) + timedelta(days=window)
            db.add(
                ComplianceDeadline(
                    case_id=case.id,
                    deadline_type=DeadlineType.investigation,
                    deadline_date=due,
                    description=INVESTIGATION_DEADLINE_DESCRIPTION,
                    status=DeadlineStatus.pending,
                    urgency_level=(
                        UrgencyLevel.high
                        if days_remaining(due, now) <= APPROACHING_WINDOW_DAYS
                        else UrgencyLevel.medium
                    ),
                )
            )
            logger.warning(
                "Created missing investigation deadline for case %s", case.id
            )
        db.commit()
        return len(cases)


compliance_deadlines = ComplianceDeadlines()


# ---------------------------------------------------------------------------
# Deadline scan
# ---------------------------------------------------------------------------


@dataclass
class DeadlineScanResult:
    scanned: int = 0
    alerted: int = 0
    overdue: int = 0
    failed: int = 0
    skipped: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def _transition(
    db: Session,
    deadline_id,
    from_statuses: list[DeadlineStatus],
    to_status: DeadlineStatus,
    **values,
) -> bool:
    """Conditionally move a deadline between statuses.

    Returns False when no row matched, i.e. a concurrent scan got there first.
    """
    stmt = (
        update(ComplianceDeadline)
        .where(
            ComplianceDeadline.id == deadline_id,
            ComplianceDeadline.status.in_(from_statuses),
        )
        .values(status=to_status, **values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount > 0


def _payload(
    deadline: ComplianceDeadline, days: int, urgency: UrgencyLevel
) -> DeadlineApproachingPayload:
    case = deadline.case
    return DeadlineApproachingPayload(
        case_id=deadline.case_id,
        case_number=case.case_number if case else None,
        case_title=case.title if case else None,
        deadline_id=deadline.id,
        deadline_type=deadline.deadline_type.value,
        due_date=as_utc(deadline.deadline_date),
        days_remaining=days,
        urgency=urgency.value,
        requires_immediate_action=days <= APPROACHING_WINDOW_DAYS,
    )


def check_deadlines(
    db: Session, dispatcher, now: datetime | None = None
) -> DeadlineScanResult:
    """Scan open deadlines, alert on approaching ones and mark lapsed ones.

    Each qualifying deadline is claimed with a conditional update before its
    alert is dispatched, so two overlapping scans cannot both alert it.
    """
    now = now or datetime.now(timezone.utc)
    horizon = now + timedelta(days=SCAN_WINDOW_DAYS)
    stmt = (
        select(ComplianceDeadline)
        .options(selectinload(ComplianceDeadline.case))
        .where(
            ComplianceDeadline.status.in_(
                [DeadlineStatus.pending, DeadlineStatus.alert_sent]
            ),
            ComplianceDeadline.deadline_date <= horizon,
        )
        .order_by(ComplianceDeadline.deadline_date.asc())
    )
    deadlines = list(db.scalars(stmt).all())
    logger.info("Checking %d compliance deadlines", len(deadlines))

    result = DeadlineScanResult(scanned=len(deadlines))
    for deadline in deadlines:
        try:
            _process_deadline(db, dispatcher, deadline, now, result)
        except SQLAlchemyError as e:
            db.rollback()
            result.failed += 1
            logger.exception("Failed to process deadline %s: %s", deadline.id, e)

    logger.info(
        "Deadline scan finished: %d alerted, %d overdue, %d failed, %d skipped",
        result.alerted,
        result.overdue,
        result.failed,
        result.skipped,
    )
    return result


def _process_deadline(
    db: Session,
    dispatcher,
    deadline: ComplianceDeadline,
    now: datetime,
    result: DeadlineScanResult,
) -> None:
    deadline_id = deadline.id
    case_id = deadline.case_id
    due = as_utc(deadline.deadline_date)
    days = days_remaining(due, now)

    if due <= now:
        payload = _payload(deadline, days, UrgencyLevel.critical)
        marked = _transition(
            db,
            deadline_id,
            [DeadlineStatus.pending, DeadlineStatus.alert_sent],
            DeadlineStatus.overdue,
            urgency_level=UrgencyLevel.critical,
            alert_sent_date=now,
        )
        if not marked:
            result.skipped += 1
            return
        logger.warning(
            "OVERDUE: deadline %s for case %s passed %d days ago",
            deadline_id,
            case_id,
            abs(days),
        )
        result.overdue += 1
        outcome = dispatcher.dispatch(
            db, WebhookEventType.deadline_approaching, payload, case_id=case_id
        )
        if not outcome.success:
            result.failed += 1
        return

    if deadline.status != DeadlineStatus.pending:
        result.skipped += 1
        return

    urgency = classify_urgency(days)
    if urgency is None:
        result.skipped += 1
        return

    payload = _payload(deadline, days, urgency)
    previous_urgency = deadline.urgency_level
    claimed = _transition(
        db,
        deadline_id,
        [DeadlineStatus.pending],
        DeadlineStatus.alert_sent,
        urgency_level=urgency,
        alert_sent_date=now,
    )
    if not claimed:
        result.skipped += 1
        return

    logger.info(
        "Deadline approaching for case %s: %d days remaining (%s)",
        case_id,
        days,
        urgency.value,
    )
    outcome = dispatcher.dispatch(
        db, WebhookEventType.deadline_approaching, payload, case_id=case_id
    )
    if outcome.success:
        result.alerted += 1
        return

    result.failed += 1
    _transition(
        db,
        deadline_id,
        [DeadlineStatus.alert_sent],
        DeadlineStatus.pending,
        urgency_level=previous_urgency,
        alert_sent_date=None,
    )
    logger.error(
        "Failed to send deadline alert for case %s: %s", case_id, outcome.error
    )
