from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.posh import WebhookLogStatus


class WebhookEventType(enum.Enum):
    case_created = "case_created"
    evidence_uploaded = "evidence_uploaded"
    human_review_submitted = "human_review_submitted"
    case_status_changed = "case_status_changed"
    deadline_approaching = "deadline_approaching"

    @property
    def slug(self) -> str:
        return self.value.replace("_", "-")


# ---------------------------------------------------------------------------
# Outbound event payloads (serialized with camelCase keys)
# ---------------------------------------------------------------------------


class EventPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PartySummary(EventPayload):
    id: str | None = None
    name: str | None = None
    department: str | None = None
    manager: str | None = None
    anonymous: bool = False


class CaseCreatedPayload(EventPayload):
    event: Literal["case_created"] = "case_created"
    case_id: UUID
    case_number: str
    status: str = "new"
    priority: str
    evidence_score: int
    needs_human_review: bool
    submission_date: datetime
    deadline: datetime
    complainant: PartySummary
    respondent: PartySummary
    department: str | None = None
    incident_type: str | None = None
    description: str | None = None
    uploaded_files: int = 0


class EvidenceUploadedPayload(EventPayload):
    event: Literal["evidence_uploaded"] = "evidence_uploaded"
    case_id: UUID
    evidence_id: UUID
    type: str
    description: str
    ai_analysis_score: int
    credibility_rating: int | None = None
    needs_processing: bool
    metadata: dict[str, Any] = Field(default_factory=dict)


class HumanReviewSubmittedPayload(EventPayload):
    event: Literal["human_review_submitted"] = "human_review_submitted"
    case_id: UUID
    reviewer_id: str
    reviewer_role: str
    pathway: str
    credibility_score: int
    mediation_recommended: bool = False
    rationale: str
    review_date: datetime
    next_action: str


class CaseStatusChangedPayload(EventPayload):
    event: Literal["case_status_changed"] = "case_status_changed"
    case_id: UUID
    old_status: str
    new_status: str
    assigned_to: str | None = None
    updated_by: str = "system"
    requires_notification: bool = True


class DeadlineApproachingPayload(EventPayload):
    event: Literal["deadline_approaching"] = "deadline_approaching"
    case_id: UUID
    case_number: str | None = None
    case_title: str | None = None
    deadline_id: UUID
    deadline_type: str
    due_date: datetime
    days_remaining: int
    urgency: str
    requires_immediate_action: bool


EVENT_PAYLOADS: dict[WebhookEventType, type[EventPayload]] = {
    WebhookEventType.case_created: CaseCreatedPayload,
    WebhookEventType.evidence_uploaded: EvidenceUploadedPayload,
    WebhookEventType.human_review_submitted: HumanReviewSubmittedPayload,
    WebhookEventType.case_status_changed: CaseStatusChangedPayload,
    WebhookEventType.deadline_approaching: DeadlineApproachingPayload,
}


# ---------------------------------------------------------------------------
# API schemas
# ---------------------------------------------------------------------------


class WebhookLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    webhook_type: str
    case_id: UUID | None = None
    payload: dict[str, Any]
    response: dict[str, Any] | None = None
    status: WebhookLogStatus
    error_message: str | None = None
    execution_time_ms: int | None = None
    created_at: datetime


class WebhookTestRequest(BaseModel):
    case_id: UUID | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class DispatchResultRead(BaseModel):
    success: bool
    response: dict[str, Any] | None = None
    executionId: str | None = None
    error: str | None = None


class WebhookHealthRead(BaseModel):
    healthy: bool
    base_url: str
