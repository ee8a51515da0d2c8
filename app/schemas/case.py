from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.posh import (
    CasePriority,
    CaseStatus,
    EvidenceType,
    InvestigationPathway,
    ReviewerRole,
)


# ---------------------------------------------------------------------------
# Case
# ---------------------------------------------------------------------------


class PartyInfo(BaseModel):
    id: str | None = None
    name: str | None = Field(default=None, max_length=255)
    department: str | None = None
    manager: str | None = None


class EvidenceItem(BaseModel):
    type: EvidenceType
    description: str = ""


class CaseCreate(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    incident_type: str | None = None
    description: str = ""
    complainant: PartyInfo | None = None
    respondent: PartyInfo | None = None
    is_anonymous: bool = False
    evidence: list[EvidenceItem] = Field(default_factory=list)
    uploaded_files: int = Field(default=0, ge=0)


class CaseStatusUpdate(BaseModel):
    status: CaseStatus
    assigned_to: str | None = None


class CaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    case_number: str
    title: str
    description: str
    complainant_name: str
    respondent_name: str
    status: CaseStatus
    priority: CasePriority
    evidence_score: int
    assigned_to: str | None = None
    resolution_date: datetime | None = None
    ai_analysis: dict[str, Any] | None = None
    metadata_: dict[str, Any] | None = Field(
        default=None, serialization_alias="metadata"
    )
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Evidence
# ---------------------------------------------------------------------------


class EvidenceCreate(BaseModel):
    type: EvidenceType
    description: str = Field(min_length=1)
    file_url: str | None = Field(default=None, max_length=2048)
    score: int = Field(default=0, ge=0, le=100)
    credibility_rating: int | None = Field(default=None, ge=0, le=10)
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata")

    model_config = ConfigDict(populate_by_name=True)


class EvidenceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    type: EvidenceType
    description: str
    file_url: str | None = None
    score: int
    credibility_rating: int | None = None
    ai_analysis: dict[str, Any] | None = None
    metadata_: dict[str, Any] | None = Field(
        default=None, serialization_alias="metadata"
    )
    created_at: datetime


class EvidenceUploadUrlRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    mime_type: str = "application/octet-stream"


class EvidenceUploadUrlRead(BaseModel):
    storage_key: str
    upload_url: str


# ---------------------------------------------------------------------------
# Human review
# ---------------------------------------------------------------------------


class CaseReviewCreate(BaseModel):
    case_id: UUID | None = None
    reviewer_id: str = Field(min_length=1, max_length=120)
    reviewer_role: ReviewerRole
    credibility_assessment: int = Field(ge=1, le=5)
    investigation_pathway: InvestigationPathway
    mediation_recommended: bool = False
    rationale: str = Field(min_length=1)


class CaseReviewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    reviewer_id: str
    reviewer_role: ReviewerRole
    credibility_assessment: int
    investigation_pathway: InvestigationPathway
    mediation_recommended: bool
    rationale: str
    created_at: datetime
