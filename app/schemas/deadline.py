from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.posh import (
    CasePriority,
    CaseStatus,
    DeadlineStatus,
    DeadlineType,
    UrgencyLevel,
)


class CaseSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_number: str
    title: str
    status: CaseStatus
    priority: CasePriority


class ComplianceDeadlineCreate(BaseModel):
    case_id: UUID
    deadline_type: DeadlineType
    days_from_now: int = Field(ge=0, le=3650)
    description: str = ""


class ComplianceDeadlineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    deadline_type: DeadlineType
    deadline_date: datetime
    description: str
    status: DeadlineStatus
    urgency_level: UrgencyLevel | None = None
    alert_sent_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ComplianceDeadlineWithCase(ComplianceDeadlineRead):
    case: CaseSummary | None = None


class DeadlineListRead(BaseModel):
    success: bool = True
    deadlines: list[ComplianceDeadlineWithCase]
    count: int


class UpcomingDeadlineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    deadline: ComplianceDeadlineWithCase
    days_until_deadline: int


class UpcomingDeadlineListRead(BaseModel):
    success: bool = True
    deadlines: list[UpcomingDeadlineRead]
    count: int


class DeadlineScanRead(BaseModel):
    scanned: int
    alerted: int
    overdue: int
    failed: int
    skipped: int


class ReconcileRead(BaseModel):
    created: int
