import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.posh import (
    Case,
    CasePriority,
    CaseReview,
    CaseStatus,
    DeadlineType,
    Evidence,
    InvestigationPathway,
)
from app.schemas.case import CaseCreate, CaseReviewCreate, EvidenceCreate, PartyInfo
from app.schemas.webhook import (
    CaseCreatedPayload,
    CaseStatusChangedPayload,
    EvidenceUploadedPayload,
    HumanReviewSubmittedPayload,
    PartySummary,
    WebhookEventType,
)
from app.services.common import (
    apply_ordering,
    apply_pagination,
    as_utc,
    coerce_uuid,
)
from app.services.deadline import (
    INVESTIGATION_DEADLINE_DESCRIPTION,
    compliance_deadlines,
)
from app.services.evidence_storage import is_external_url, storage
from app.services.response import ListResponseMixin
from app.services.scoring import (
    calculate_evidence_score,
    default_priority,
    needs_human_review,
    risk_level,
)

logger = logging.getLogger(__name__)

_ACTIVE_STATES = {
    CaseStatus.under_review,
    CaseStatus.investigating,
    CaseStatus.mediation,
}

ALLOWED_TRANSITIONS: dict[CaseStatus, set[CaseStatus]] = {
    CaseStatus.pending: _ACTIVE_STATES | {CaseStatus.escalated},
    CaseStatus.under_review: _ACTIVE_STATES
    | {CaseStatus.closed, CaseStatus.escalated},
    CaseStatus.investigating: _ACTIVE_STATES
    | {CaseStatus.closed, CaseStatus.escalated},
    CaseStatus.mediation: _ACTIVE_STATES | {CaseStatus.closed, CaseStatus.escalated},
    CaseStatus.escalated: _ACTIVE_STATES | {CaseStatus.closed},
    CaseStatus.closed: set(),
}

PATHWAY_STATUS = {
    InvestigationPathway.formal: CaseStatus.investigating,
    InvestigationPathway.mediation: CaseStatus.mediation,
}

AI_REVIEW_THRESHOLD = 60


def can_transition(old: CaseStatus, new: CaseStatus) -> bool:
    return old == new or new in ALLOWED_TRANSITIONS[old]


def _coerce_status(value) -> CaseStatus:
    try:
        return value if isinstance(value, CaseStatus) else CaseStatus(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid status: {value}")


def generate_case_number(db: Session, now: datetime) -> str:
    for _ in range(5):
        number = f"POSH-{now.year}-{secrets.randbelow(10**6):06d}"
        exists = db.scalar(select(Case.id).where(Case.case_number == number))
        if exists is None:
            return number
    raise HTTPException(status_code=500, detail="Failed to create case")


def _party_summary(party: PartyInfo | None, anonymous: bool) -> PartySummary:
    party = party or PartyInfo()
    return PartySummary(
        id="anonymous" if anonymous else party.id,
        name=None if anonymous else party.name,
        department=party.department,
        manager=party.manager,
        anonymous=anonymous,
    )


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


class Cases(ListResponseMixin):
    @staticmethod
    def create(
        db: Session,
        dispatcher,
        payload: CaseCreate,
        now: datetime | None = None,
    ) -> Case:
        now = now or datetime.now(timezone.utc)
        score = calculate_evidence_score(payload.evidence)
        review_needed = needs_human_review(score)
        window = settings.investigation_window_days
        deadline_at = now + timedelta(days=window)
        complainant = payload.complainant or PartyInfo()
        respondent = payload.respondent or PartyInfo()

        case = Case(
            case_number=generate_case_number(db, now),
            title=payload.title or payload.incident_type or "POSH Complaint",
            description=payload.description,
            complainant_name=(
                "Anonymous"
                if payload.is_anonymous
                else complainant.name or "Anonymous"
            ),
            respondent_name=respondent.name or "Not specified",
            status=CaseStatus.pending,
            priority=default_priority(score),
            evidence_score=score,
            ai_analysis={
                "needsHumanReview": review_needed,
                "riskLevel": risk_level(score),
                "recommendedAction": (
                    "immediate_review" if review_needed else "standard_process"
                ),
            },
            metadata_={
                "submissionDate": now.isoformat(),
                "deadline": deadline_at.isoformat(),
                "complainant": complainant.model_dump(),
                "respondent": respondent.model_dump(),
                "department": complainant.department,
                "incidentType": payload.incident_type,
                "anonymous": payload.is_anonymous,
            },
            created_at=now,
        )
        try:
            db.add(case)
            for item in payload.evidence:
                db.add(
                    Evidence(
                        case=case,
                        type=item.type,
                        description=item.description or item.type.value,
                    )
                )
            db.commit()
            db.refresh(case)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Failed to save case: %s", e)
            raise HTTPException(status_code=500, detail="Failed to create case")
        logger.info("Created case %s (%s)", case.id, case.case_number)

        try:
            compliance_deadlines.create(
                db,
                case.id,
                DeadlineType.investigation,
                window,
                INVESTIGATION_DEADLINE_DESCRIPTION,
                now=now,
            )
        except (SQLAlchemyError, HTTPException) as e:
            db.rollback()
            logger.exception(
                "Failed to create investigation deadline for case %s: %s", case.id, e
            )

        result = dispatcher.dispatch(
            db,
            WebhookEventType.case_created,
            CaseCreatedPayload(
                case_id=case.id,
                case_number=case.case_number,
                priority=case.priority.value,
                evidence_score=score,
                needs_human_review=review_needed,
                submission_date=now,
                deadline=deadline_at,
                complainant=_party_summary(complainant, payload.is_anonymous),
                respondent=_party_summary(respondent, False),
                department=complainant.department,
                incident_type=payload.incident_type,
                description=payload.description,
                uploaded_files=payload.uploaded_files,
            ),
            case_id=case.id,
        )
        if not result.success:
            logger.warning(
                "case_created notification failed for case %s: %s",
                case.id,
                result.error,
            )
        if review_needed:
            logger.warning(
                "Low evidence case %s requires immediate human review",
                case.case_number,
            )
        return case

    @staticmethod
    def get(db: Session, case_id: str) -> Case:
        case = db.get(Case, coerce_uuid(case_id))
        if not case:
            raise HTTPException(status_code=404, detail="Case not found")
        return case

    @staticmethod
    def list(
        db: Session,
        status: str | None,
        priority: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Case]:
        query = db.query(Case)
        if status is not None:
            query = query.filter(Case.status == _coerce_status(status))
        if priority is not None:
            try:
                query = query.filter(Case.priority == CasePriority(priority))
            except ValueError:
                raise HTTPException(
                    status_code=400, detail=f"Invalid priority: {priority}"
                )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Case.created_at,
                "evidence_score": Case.evidence_score,
                "case_number": Case.case_number,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update_status(
        db: Session,
        dispatcher,
        case_id: str,
        new_status: CaseStatus | str,
        assigned_to: str | None = None,
    ) -> Case:
        """Persist a status change, then announce it.

        The store write is the durable fact; a failed notification is logged
        and does not undo it.
        """
        case = Cases.get(db, case_id)
        new_status = _coerce_status(new_status)
        old_status = case.status
        if not can_transition(old_status, new_status):
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Invalid status transition: {old_status.value} -> "
                    f"{new_status.value}"
                ),
            )
        case.status = new_status
        if assigned_to is not None:
            case.assigned_to = assigned_to
        if new_status == CaseStatus.closed and case.resolution_date is None:
            case.resolution_date = datetime.now(timezone.utc)
        db.commit()
        db.refresh(case)
        logger.info(
            "Case %s status %s -> %s", case.id, old_status.value, new_status.value
        )

        result = dispatcher.dispatch(
            db,
            WebhookEventType.case_status_changed,
            CaseStatusChangedPayload(
                case_id=case.id,
                old_status=old_status.value,
                new_status=new_status.value,
                assigned_to=assigned_to,
            ),
            case_id=case.id,
        )
        if not result.success:
            logger.warning(
                "case_status_changed notification failed for case %s: %s",
                case.id,
                result.error,
            )
        return case

    @staticmethod
    def recalculate_score(db: Session, case_id: str) -> int | None:
        case = Cases.get(db, case_id)
        try:
            score = calculate_evidence_score(case.evidence)
            case.evidence_score = score
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Failed to recalculate case score for %s: %s", case_id, e)
            return None
        logger.info("Recalculated evidence score for case %s: %d", case_id, score)
        return score


# ---------------------------------------------------------------------------
# Evidence
# ---------------------------------------------------------------------------


class EvidenceItems:
    @staticmethod
    def upload(
        db: Session, dispatcher, case_id: str, payload: EvidenceCreate
    ) -> Evidence:
        case = Cases.get(db, case_id)
        if payload.file_url:
            EvidenceItems._check_file(case, payload.file_url)
        evidence = Evidence(
            case_id=case.id,
            type=payload.type,
            description=payload.description,
            file_url=payload.file_url,
            score=payload.score,
            credibility_rating=payload.credibility_rating,
            ai_analysis={
                "credibilityRating": payload.credibility_rating,
                "processingComplete": True,
            },
            metadata_=payload.metadata_ or {},
        )
        db.add(evidence)
        db.commit()
        db.refresh(evidence)
        logger.info(
            "Uploaded %s evidence %s to case %s",
            payload.type.value,
            evidence.id,
            case.id,
        )

        result = dispatcher.dispatch(
            db,
            WebhookEventType.evidence_uploaded,
            EvidenceUploadedPayload(
                case_id=case.id,
                evidence_id=evidence.id,
                type=evidence.type.value,
                description=evidence.description,
                ai_analysis_score=evidence.score,
                credibility_rating=evidence.credibility_rating,
                needs_processing=evidence.score < AI_REVIEW_THRESHOLD,
                metadata=evidence.metadata_ or {},
            ),
            case_id=case.id,
        )
        if not result.success:
            logger.warning(
                "evidence_uploaded notification failed for evidence %s: %s",
                evidence.id,
                result.error,
            )

        Cases.recalculate_score(db, case.id)
        return evidence

    @staticmethod
    def list_for_case(db: Session, case_id: str) -> list[Evidence]:
        Cases.get(db, case_id)
        stmt = (
            select(Evidence)
            .where(Evidence.case_id == coerce_uuid(case_id))
            .order_by(Evidence.created_at.asc())
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def _require_storage() -> None:
        if not storage.is_configured():
            raise HTTPException(
                status_code=503, detail="Evidence storage is not configured"
            )

    @staticmethod
    def _check_file(case: Case, file_url: str) -> None:
        """Stored files must live under the case's key prefix and exist."""
        if is_external_url(file_url):
            return
        if not storage.key_belongs_to_case(file_url, case.id):
            raise HTTPException(
                status_code=400, detail="file_url does not belong to this case"
            )
        EvidenceItems._require_storage()
        if not storage.object_exists(file_url):
            raise HTTPException(
                status_code=400, detail="Evidence file has not been uploaded"
            )

    @staticmethod
    def upload_url(db: Session, case_id: str, file_name: str, mime_type: str) -> dict:
        case = Cases.get(db, case_id)
        if case.status == CaseStatus.closed:
            raise HTTPException(
                status_code=400, detail="Cannot add evidence to a closed case"
            )
        EvidenceItems._require_storage()
        key = storage.generate_storage_key(case.id, file_name)
        return {
            "storage_key": key,
            "upload_url": storage.generate_upload_url(key, mime_type),
        }

    @staticmethod
    def download_url(db: Session, evidence_id: str) -> str:
        evidence = db.get(Evidence, coerce_uuid(evidence_id))
        if not evidence:
            raise HTTPException(status_code=404, detail="Evidence not found")
        if not evidence.file_url:
            raise HTTPException(status_code=404, detail="Evidence has no file")
        if is_external_url(evidence.file_url):
            return evidence.file_url
        if not storage.key_belongs_to_case(evidence.file_url, evidence.case_id):
            raise HTTPException(
                status_code=409, detail="Evidence file is outside its case folder"
            )
        EvidenceItems._require_storage()
        return storage.generate_download_url(evidence.file_url)


# ---------------------------------------------------------------------------
# Human reviews
# ---------------------------------------------------------------------------


class CaseReviews:
    @staticmethod
    def submit(db: Session, dispatcher, payload: CaseReviewCreate) -> CaseReview:
        case = Cases.get(db, payload.case_id)
        new_status = PATHWAY_STATUS.get(
            payload.investigation_pathway, CaseStatus.under_review
        )
        if not can_transition(case.status, new_status):
            raise HTTPException(
                status_code=400,
                detail=f"Case in status {case.status.value} cannot be reviewed",
            )

        review = CaseReview(
            case_id=case.id,
            reviewer_id=payload.reviewer_id,
            reviewer_role=payload.reviewer_role,
            credibility_assessment=payload.credibility_assessment,
            investigation_pathway=payload.investigation_pathway,
            mediation_recommended=payload.mediation_recommended,
            rationale=payload.rationale,
        )
        db.add(review)
        db.commit()
        db.refresh(review)
        logger.info("Recorded review %s for case %s", review.id, case.id)

        Cases.update_status(db, dispatcher, case.id, new_status)

        pathway = payload.investigation_pathway
        result = dispatcher.dispatch(
            db,
            WebhookEventType.human_review_submitted,
            HumanReviewSubmittedPayload(
                case_id=case.id,
                reviewer_id=review.reviewer_id,
                reviewer_role=review.reviewer_role.value,
                pathway=pathway.value,
                credibility_score=review.credibility_assessment,
                mediation_recommended=review.mediation_recommended,
                rationale=review.rationale,
                review_date=as_utc(review.created_at),
                next_action=(
                    "assign_investigator"
                    if pathway == InvestigationPathway.formal
                    else "route_mediation"
                ),
            ),
            case_id=case.id,
        )
        if not result.success:
            logger.warning(
                "human_review_submitted notification failed for case %s: %s",
                case.id,
                result.error,
            )
        return review

    @staticmethod
    def list_for_case(db: Session, case_id: str) -> list[CaseReview]:
        Cases.get(db, case_id)
        stmt = (
            select(CaseReview)
            .where(CaseReview.case_id == coerce_uuid(case_id))
            .order_by(CaseReview.created_at.asc())
        )
        return list(db.scalars(stmt).all())


cases = Cases()
evidence_items = EvidenceItems()
case_reviews = CaseReviews()
