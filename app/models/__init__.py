from app.models.posh import (  # noqa: F401
    Case,
    CasePriority,
    CaseReview,
    CaseStatus,
    ComplianceDeadline,
    DeadlineStatus,
    DeadlineType,
    Evidence,
    EvidenceType,
    InvestigationPathway,
    ReviewerRole,
    UrgencyLevel,
    WebhookLog,
    WebhookLogStatus,
)
