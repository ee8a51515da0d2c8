"""initial case schema

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "3f1c9a7d2b10"
down_revision = None
branch_labels = None
depends_on = None

ENUMS = {
    "casestatus": (
        "pending",
        "under_review",
        "investigating",
        "mediation",
        "closed",
        "escalated",
    ),
    "casepriority": ("low", "medium", "high", "critical"),
    "evidencetype": ("document", "witness", "physical", "digital"),
    "reviewerrole": ("icc_primary", "icc_secondary", "hr_manager"),
    "investigationpathway": ("formal", "mediation", "alternative", "dismiss"),
    "deadlinetype": ("filing", "investigation", "resolution", "reporting"),
    "deadlinestatus": ("pending", "alert_sent", "overdue", "completed"),
    "urgencylevel": ("medium", "high", "critical"),
    "webhooklogstatus": ("pending", "success", "error"),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "cases",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("case_number", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("complainant_name", sa.String(length=255), nullable=False),
        sa.Column("respondent_name", sa.String(length=255), nullable=False),
        sa.Column("status", _enum("casestatus"), nullable=False),
        sa.Column("priority", _enum("casepriority"), nullable=False),
        sa.Column("evidence_score", sa.Integer(), nullable=False),
        sa.Column("assigned_to", sa.String(length=120), nullable=True),
        sa.Column("resolution_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_analysis", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("case_number", name="uq_cases_case_number"),
    )
    op.create_index("ix_cases_status", "cases", ["status"])
    op.create_index("ix_cases_created_at", "cases", ["created_at"])

    op.create_table(
        "evidence",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("case_id", sa.Uuid(), nullable=False),
        sa.Column("type", _enum("evidencetype"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("file_url", sa.String(length=2048), nullable=True),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("credibility_rating", sa.Integer(), nullable=True),
        sa.Column("ai_analysis", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_evidence_case_id", "evidence", ["case_id"])

    op.create_table(
        "case_reviews",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("case_id", sa.Uuid(), nullable=False),
        sa.Column("reviewer_id", sa.String(length=120), nullable=False),
        sa.Column("reviewer_role", _enum("reviewerrole"), nullable=False),
        sa.Column("credibility_assessment", sa.Integer(), nullable=False),
        sa.Column(
            "investigation_pathway", _enum("investigationpathway"), nullable=False
        ),
        sa.Column("mediation_recommended", sa.Boolean(), nullable=True),
        sa.Column("rationale", sa.Text(), nullable=False),
        sa.Column("review_type", sa.String(length=40), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_case_reviews_case_id", "case_reviews", ["case_id"])

    op.create_table(
        "compliance_deadlines",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("case_id", sa.Uuid(), nullable=False),
        sa.Column("deadline_type", _enum("deadlinetype"), nullable=False),
        sa.Column("deadline_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", _enum("deadlinestatus"), nullable=False),
        sa.Column("urgency_level", _enum("urgencylevel"), nullable=True),
        sa.Column("alert_sent_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_compliance_deadlines_case_id", "compliance_deadlines", ["case_id"]
    )
    op.create_index(
        "ix_compliance_deadlines_status_date",
        "compliance_deadlines",
        ["status", "deadline_date"],
    )

    op.create_table(
        "webhook_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("webhook_type", sa.String(length=100), nullable=False),
        sa.Column("case_id", sa.Uuid(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("response", sa.JSON(), nullable=True),
        sa.Column("status", _enum("webhooklogstatus"), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("execution_time_ms", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_webhook_logs_webhook_type", "webhook_logs", ["webhook_type"])
    op.create_index("ix_webhook_logs_status", "webhook_logs", ["status"])
    op.create_index("ix_webhook_logs_created_at", "webhook_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("webhook_logs")
    op.drop_table("compliance_deadlines")
    op.drop_table("case_reviews")
    op.drop_table("evidence")
    op.drop_table("cases")
    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        sa.Enum(name=name).drop(bind, checkfirst=True)
