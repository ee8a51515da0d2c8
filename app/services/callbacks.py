import logging
from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models.posh import (
    Case,
    CasePriority,
    CaseStatus,
    ComplianceDeadline,
    DeadlineStatus,
    Evidence,
)
from app.schemas.callback import (
    AnalysisResults,
    CaseAnalysisComplete,
    CaseSummaryResults,
    DeadlineAlertSent,
    EvidenceAnalysisComplete,
    EvidenceAnalysisResults,
    InvestigationTaskCreated,
    NotificationSent,
    WitnessEvaluationResults,
)
from app.schemas.webhook import HumanReviewSubmittedPayload, WebhookEventType
from app.services.case import can_transition

logger = logging.getLogger(__name__)

ANALYSIS_SOURCE = "n8n-openai"
AI_REVIEWER_ID = "AI_SYSTEM"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _get_case(db: Session, case_id) -> Case:
    case = db.get(Case, case_id)
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")
    return case


def _stamped(analysis: dict) -> dict:
    return {**analysis, "processedAt": _now_iso(), "source": ANALYSIS_SOURCE}


def _score(value) -> int:
    try:
        score = int(value)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=422, detail=f"Invalid credibilityScore: {value}"
        )
    if not 0 <= score <= 100:
        raise HTTPException(
            status_code=422,
            detail=f"credibilityScore must be between 0 and 100, got {score}",
        )
    return score


def priority_for_urgency(urgency: str | None) -> CasePriority:
    try:
        return CasePriority(urgency)
    except ValueError:
        return CasePriority.medium


class CallbackHandlers:
    """Apply results reported back by the automation workflows.

    Every handler validates its body, writes to the store and commits.
    """

    @staticmethod
    def case_analysis_complete(
        db: Session, dispatcher, payload: CaseAnalysisComplete
    ) -> None:
        case = _get_case(db, payload.case_id)
        case.ai_analysis = _stamped(payload.analysis)
        db.commit()
        logger.info("Stored AI analysis for case %s", case.id)

    @staticmethod
    def evidence_analysis_complete(
        db: Session, dispatcher, payload: EvidenceAnalysisComplete
    ) -> None:
        evidence = db.get(Evidence, payload.evidence_id)
        if not evidence:
            raise HTTPException(status_code=404, detail="Evidence not found")
        score = payload.analysis.get("credibilityScore")
        if score is None:
            score = payload.score
        if score is not None:
            evidence.score = _score(score)
        evidence.ai_analysis = _stamped(payload.analysis)
        db.commit()
        logger.info("Stored AI analysis for evidence %s", evidence.id)

    @staticmethod
    def investigation_task_created(
        db: Session, dispatcher, payload: InvestigationTaskCreated
    ) -> None:
        case = _get_case(db, payload.case_id)
        if not can_transition(case.status, CaseStatus.investigating):
            raise HTTPException(
                status_code=400,
                detail=f"Case in status {case.status.value} cannot be investigated",
            )
        case.status = CaseStatus.investigating
        case.assigned_to = payload.assignee_id
        case.metadata_ = {
            **(case.metadata_ or {}),
            "investigator": payload.assignee_id,
            "investigationStarted": _now_iso(),
            "taskId": payload.task_id,
        }
        db.commit()
        logger.info(
            "Case %s assigned to investigator %s", case.id, payload.assignee_id
        )

    @staticmethod
    def deadline_alert_sent(
        db: Session, dispatcher, payload: DeadlineAlertSent
    ) -> None:
        _get_case(db, payload.case_id)
        stmt = (
            update(ComplianceDeadline)
            .where(
                ComplianceDeadline.case_id == payload.case_id,
                ComplianceDeadline.deadline_type == payload.deadline_type,
                ComplianceDeadline.status == DeadlineStatus.pending,
            )
            .values(
                status=DeadlineStatus.alert_sent,
                alert_sent_date=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        db.commit()
        logger.info(
            "Marked %d %s deadline(s) alert_sent for case %s",
            result.rowcount,
            payload.deadline_type.value,
            payload.case_id,
        )

    @staticmethod
    def notification_sent(db: Session, dispatcher, payload: NotificationSent) -> None:
        logger.info(
            "Notification %s sent to %s",
            payload.notification_type,
            payload.recipient,
        )
        if payload.case_id is None:
            return
        case = _get_case(db, payload.case_id)
        case.metadata_ = {
            **(case.metadata_ or {}),
            "lastNotification": {
                "type": payload.notification_type,
                "sentAt": _now_iso(),
                "recipient": payload.recipient,
            },
        }
        db.commit()

    @staticmethod
    def analysis_results(db: Session, dispatcher, payload: AnalysisResults) -> None:
        """Route a typed AI analysis result to the records it describes."""
        case = _get_case(db, payload.case_id)
        if payload.analysis_type == "evidence":
            AnalysisRouting.evidence(
                db, case, EvidenceAnalysisResults.model_validate(payload.results)
            )
        elif payload.analysis_type == "case_summary":
            AnalysisRouting.case_summary(
                db,
                dispatcher,
                case,
                CaseSummaryResults.model_validate(payload.results),
            )
        else:
            AnalysisRouting.witness_evaluation(
                db, case, WitnessEvaluationResults.model_validate(payload.results)
            )


class AnalysisRouting:
    @staticmethod
    def evidence(db: Session, case: Case, results: EvidenceAnalysisResults) -> None:
        by_id = {item.evidence_id: item for item in results.evidence_items}
        stmt = select(Evidence).where(
            Evidence.case_id == case.id, Evidence.id.in_(list(by_id))
        )
        updated = 0
        for evidence in db.scalars(stmt).all():
            item = by_id[evidence.id]
            if item.strength_score is not None:
                evidence.score = item.strength_score
            evidence.ai_analysis = {
                "contentAnalysis": item.content_analysis,
                "keyFindings": item.key_findings,
                "confidenceLevel": item.confidence_level,
                "analysisDate": _now_iso(),
            }
            updated += 1
        if updated < len(by_id):
            logger.warning(
                "Ignored %d evidence analyses not belonging to case %s",
                len(by_id) - updated,
                case.id,
            )
        if results.overall_evidence_score is not None:
            case.evidence_score = results.overall_evidence_score
        db.commit()
        logger.info(
            "Applied evidence analysis to %d item(s) of case %s", updated, case.id
        )

    @staticmethod
    def case_summary(
        db: Session, dispatcher, case: Case, results: CaseSummaryResults
    ) -> None:
        case.ai_analysis = {
            "summary": results.executive_summary,
            "keyPoints": results.key_points,
            "evidenceStrength": results.evidence_strength,
            "recommendedPath": results.recommended_path,
            "urgencyLevel": results.urgency_level,
            "riskAssessment": results.risk_assessment,
            "analysisDate": _now_iso(),
            "aiConfidence": results.confidence_score,
        }
        case.priority = priority_for_urgency(results.urgency_level)
        db.commit()
        logger.info(
            "Stored case summary for %s (priority %s)", case.id, case.priority.value
        )
        if results.evidence_strength == "low" or results.urgency_level == "critical":
            AnalysisRouting.flag_for_human_review(db, dispatcher, case, results)

    @staticmethod
    def witness_evaluation(
        db: Session, case: Case, results: WitnessEvaluationResults
    ) -> None:
        case.metadata_ = {
            **(case.metadata_ or {}),
            "witnessAnalysis": {
                "reliability": results.reliability,
                "availability": results.availability,
                "contactRecommendations": results.contact_recommendations,
                "analysisDate": _now_iso(),
            },
        }
        db.commit()
        logger.info("Stored witness analysis for case %s", case.id)

    @staticmethod
    def flag_for_human_review(
        db: Session, dispatcher, case: Case, results: CaseSummaryResults
    ) -> None:
        reason = (
            "low_evidence" if results.evidence_strength == "low" else "high_urgency"
        )
        flagged_at = datetime.now(timezone.utc)
        case.metadata_ = {
            **(case.metadata_ or {}),
            "flaggedForReview": True,
            "flagReason": reason,
            "flagDate": flagged_at.isoformat(),
            "aiRecommendation": results.recommended_path,
        }
        db.commit()
        logger.warning("Case %s flagged for human review: %s", case.id, reason)

        # Credibility is left at 0 for the ICC reviewer to assess.
        outcome = dispatcher.dispatch(
            db,
            WebhookEventType.human_review_submitted,
            HumanReviewSubmittedPayload(
                case_id=case.id,
                reviewer_id=AI_REVIEWER_ID,
                reviewer_role="ai_system",
                pathway="requires_human_review",
                credibility_score=0,
                rationale=f"Flagged by AI analysis: {reason}",
                review_date=flagged_at,
                next_action="human_review",
            ),
            case_id=case.id,
        )
        if not outcome.success:
            logger.warning(
                "Review flag notification failed for case %s: %s",
                case.id,
                outcome.error,
            )


CALLBACKS = {
    "case-analysis-complete": (
        CaseAnalysisComplete,
        CallbackHandlers.case_analysis_complete,
    ),
    "evidence-analysis-complete": (
        EvidenceAnalysisComplete,
        CallbackHandlers.evidence_analysis_complete,
    ),
    "investigation-task-created": (
        InvestigationTaskCreated,
        CallbackHandlers.investigation_task_created,
    ),
    "deadline-alert-sent": (DeadlineAlertSent, CallbackHandlers.deadline_alert_sent),
    "notification-sent": (NotificationSent, CallbackHandlers.notification_sent),
    "analysis-results": (AnalysisResults, CallbackHandlers.analysis_results),
}


def process_callback(db: Session, dispatcher, endpoint: str, body: dict) -> dict:
    """Validate ``body`` for ``endpoint`` and apply it.

    Raises ``HTTPException`` (400 unknown endpoint, 404 missing target) and
    lets pydantic's ``ValidationError`` propagate for malformed bodies.
    """
    if endpoint not in CALLBACKS:
        logger.warning("Unknown callback endpoint: %s", endpoint)
        raise HTTPException(status_code=400, detail="Unknown endpoint")
    schema, handler = CALLBACKS[endpoint]
    payload = schema.model_validate(body)
    logger.info("Received callback %s", endpoint)
    handler(db, dispatcher, payload)
    return {"success": True, "processed": endpoint}
