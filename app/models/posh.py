import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


# ---------------------------------------------------------------------------
# Enums: cases
# ---------------------------------------------------------------------------


class CaseStatus(enum.Enum):
    pending = "pending"
    under_review = "under_review"
    investigating = "investigating"
    mediation = "mediation"
    closed = "closed"
    escalated = "escalated"


class CasePriority(enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class EvidenceType(enum.Enum):
    document = "document"
    witness = "witness"
    physical = "physical"
    digital = "digital"


class ReviewerRole(enum.Enum):
    icc_primary = "icc_primary"
    icc_secondary = "icc_secondary"
    hr_manager = "hr_manager"


class InvestigationPathway(enum.Enum):
    formal = "formal"
    mediation = "mediation"
    alternative = "alternative"
    dismiss = "dismiss"


# ---------------------------------------------------------------------------
# Enums: deadlines
# ---------------------------------------------------------------------------


class DeadlineType(enum.Enum):
    filing = "filing"
    investigation = "investigation"
    resolution = "resolution"
    reporting = "reporting"


class DeadlineStatus(enum.Enum):
    pending = "pending"
    alert_sent = "alert_sent"
    overdue = "overdue"
    completed = "completed"


class UrgencyLevel(enum.Enum):
    medium = "medium"
    high = "high"
    critical = "critical"


# ---------------------------------------------------------------------------
# Enums: webhooks
# ---------------------------------------------------------------------------


class WebhookLogStatus(enum.Enum):
    pending = "pending"
    success = "success"
    error = "error"


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


class Case(Base):
    __tablename__ = "cases"
    __table_args__ = (
        Index("ix_cases_status", "status"),
        Index("ix_cases_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    complainant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    respondent_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[CaseStatus] = mapped_column(
        Enum(CaseStatus), nullable=False, default=CaseStatus.pending
    )
    priority: Mapped[CasePriority] = mapped_column(
        Enum(CasePriority), nullable=False, default=CasePriority.medium
    )
    evidence_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assigned_to: Mapped[str | None] = mapped_column(String(120))
    resolution_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    ai_analysis: Mapped[dict | None] = mapped_column(JSON)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    evidence = relationship("Evidence", back_populates="case")
    deadlines = relationship(
        "ComplianceDeadline",
        back_populates="case",
        order_by="ComplianceDeadline.deadline_date",
    )
    reviews = relationship("CaseReview", back_populates="case")


class Evidence(Base):
    __tablename__ = "evidence"
    __table_args__ = (Index("ix_evidence_case_id", "case_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id"), nullable=False
    )
    type: Mapped[EvidenceType] = mapped_column(Enum(EvidenceType), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    file_url: Mapped[str | None] = mapped_column(String(2048))
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    credibility_rating: Mapped[int | None] = mapped_column(Integer)
    ai_analysis: Mapped[dict | None] = mapped_column(JSON)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    case = relationship("Case", back_populates="evidence")


class CaseReview(Base):
    __tablename__ = "case_reviews"
    __table_args__ = (Index("ix_case_reviews_case_id", "case_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id"), nullable=False
    )
    reviewer_id: Mapped[str] = mapped_column(String(120), nullable=False)
    reviewer_role: Mapped[ReviewerRole] = mapped_column(
        Enum(ReviewerRole), nullable=False
    )
    credibility_assessment: Mapped[int] = mapped_column(Integer, nullable=False)
    investigation_pathway: Mapped[InvestigationPathway] = mapped_column(
        Enum(InvestigationPathway), nullable=False
    )
    mediation_recommended: Mapped[bool] = mapped_column(Boolean, default=False)
    rationale: Mapped[str] = mapped_column(Text, nullable=False)
    review_type: Mapped[str] = mapped_column(
        String(40), nullable=False, default="human_review"
    )
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    case = relationship("Case", back_populates="reviews")


# ---------------------------------------------------------------------------
# Compliance deadlines
# ---------------------------------------------------------------------------


class ComplianceDeadline(Base):
    __tablename__ = "compliance_deadlines"
    __table_args__ = (
        Index("ix_compliance_deadlines_case_id", "case_id"),
        Index("ix_compliance_deadlines_status_date", "status", "deadline_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id"), nullable=False
    )
    deadline_type: Mapped[DeadlineType] = mapped_column(
        Enum(DeadlineType), nullable=False
    )
    deadline_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[DeadlineStatus] = mapped_column(
        Enum(DeadlineStatus), nullable=False, default=DeadlineStatus.pending
    )
    urgency_level: Mapped[UrgencyLevel | None] = mapped_column(Enum(UrgencyLevel))
    alert_sent_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    case = relationship("Case", back_populates="deadlines")


# ---------------------------------------------------------------------------
# Webhook audit log
# ---------------------------------------------------------------------------


class WebhookLog(Base):
    __tablename__ = "webhook_logs"
    __table_args__ = (
        Index("ix_webhook_logs_webhook_type", "webhook_type"),
        Index("ix_webhook_logs_status", "status"),
        Index("ix_webhook_logs_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    webhook_type: Mapped[str] = mapped_column(String(100), nullable=False)
    # No FK: test dispatches and deleted fixtures may reference unknown cases.
    case_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    response: Mapped[dict | None] = mapped_column(JSON)
    status: Mapped[WebhookLogStatus] = mapped_column(
        Enum(WebhookLogStatus), nullable=False, default=WebhookLogStatus.pending
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    execution_time_ms: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
