from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.posh import DeadlineType


class CallbackPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CaseAnalysisComplete(CallbackPayload):
    case_id: UUID
    analysis: dict[str, Any] = Field(default_factory=dict)


class EvidenceAnalysisComplete(CallbackPayload):
    evidence_id: UUID
    analysis: dict[str, Any] = Field(default_factory=dict)
    score: int | None = Field(default=None, ge=0, le=100)


class InvestigationTaskCreated(CallbackPayload):
    case_id: UUID
    assignee_id: str = Field(min_length=1)
    task_id: str | None = None


class DeadlineAlertSent(CallbackPayload):
    case_id: UUID
    deadline_type: DeadlineType


class NotificationSent(CallbackPayload):
    case_id: UUID | None = None
    notification_type: str
    recipient: str | None = None


class AnalysisResults(CallbackPayload):
    case_id: UUID
    analysis_type: Literal["evidence", "case_summary", "witness_evaluation"]
    results: dict[str, Any] = Field(default_factory=dict)


# Shapes of ``AnalysisResults.results`` per analysis type.


class EvidenceItemAnalysis(CallbackPayload):
    evidence_id: UUID
    strength_score: int | None = Field(default=None, ge=0, le=100)
    content_analysis: Any = None
    key_findings: list[Any] | None = None
    confidence_level: Any = None


class EvidenceAnalysisResults(CallbackPayload):
    evidence_items: list[EvidenceItemAnalysis] = Field(default_factory=list)
    overall_evidence_score: int | None = Field(default=None, ge=0, le=100)


class CaseSummaryResults(CallbackPayload):
    executive_summary: str | None = None
    key_points: list[Any] | None = None
    evidence_strength: str | None = None
    recommended_path: str | None = None
    urgency_level: str | None = None
    risk_assessment: Any = None
    confidence_score: float | None = None


class WitnessEvaluationResults(CallbackPayload):
    reliability: Any = None
    availability: Any = None
    contact_recommendations: Any = None


class CallbackResult(BaseModel):
    success: bool = True
    processed: str
