"""Initial schema: organizations, users, risks, acceptance workflow, audit, C2M2, webhooks

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18

Enumerations are stored as VARCHAR holding the enum value.
approval_workflows carries a partial unique index allowing one pending
request per risk.
"""
from alembic import op
import sqlalchemy as sa

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    ]


def upgrade() -> None:
    # ── organizations / users ──
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_organization_id", "users", ["organization_id"])
    op.create_index("ix_users_is_active", "users", ["is_active"])

    # ── risks ──
    op.create_table(
        "risks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("category", sa.String(50)),
        sa.Column("impact", sa.String(20)),
        sa.Column("probability", sa.String(20)),
        sa.Column("risk_level", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("owner_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_risks_organization_id", "risks", ["organization_id"])
    op.create_index("ix_risks_status", "risks", ["status"])

    op.create_table(
        "risk_stakeholders",
        sa.Column("risk_id", sa.Integer, sa.ForeignKey("risks.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "approval_workflows",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("risk_id", sa.Integer, sa.ForeignKey("risks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("requester_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("approver_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("comments", sa.Text),
        sa.Column("decided_at", sa.DateTime),
        *_timestamps(),
    )
    op.create_index(
        "uq_approval_workflows_pending_risk",
        "approval_workflows",
        ["risk_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    # ── audit frameworks ──
    op.create_table(
        "audit_frameworks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        *_timestamps(),
    )
    op.create_table(
        "audit_controls",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("framework_id", sa.Integer, sa.ForeignKey("audit_frameworks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("control_id", sa.String(50), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("family", sa.String(100)),
        *_timestamps(),
    )
    op.create_index("ix_audit_controls_framework_id", "audit_controls", ["framework_id"])

    op.create_table(
        "audit_assessments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("audit_control_id", sa.Integer, sa.ForeignKey("audit_controls.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("score", sa.Integer),
        sa.Column("evidence_url", sa.String(500)),
        sa.Column("assessment_date", sa.Date),
        sa.Column("comments", sa.Text),
        sa.Column("c2m2_assessment_date", sa.Date),
        sa.Column("c2m2_comments", sa.Text),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "audit_control_id", name="uq_audit_assessment_org_control"),
    )
    op.create_index("ix_audit_assessments_organization_id", "audit_assessments", ["organization_id"])
    op.create_index("ix_audit_assessments_audit_control_id", "audit_assessments", ["audit_control_id"])

    # ── C2M2 ──
    op.create_table(
        "c2m2_domains",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("code", sa.String(10), nullable=False, unique=True),
        *_timestamps(),
    )
    op.create_table(
        "c2m2_practices",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("domain_id", sa.Integer, sa.ForeignKey("c2m2_domains.id", ondelete="CASCADE"), nullable=False),
        sa.Column("code", sa.String(20), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("target_mil", sa.Integer, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_c2m2_practices_domain_id", "c2m2_practices", ["domain_id"])

    op.create_table(
        "c2m2_practice_evaluations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("audit_assessment_id", sa.Integer, sa.ForeignKey("audit_assessments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("practice_id", sa.Integer, sa.ForeignKey("c2m2_practices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("audit_assessment_id", "practice_id", name="uq_c2m2_eval_assessment_practice"),
    )
    op.create_index("ix_c2m2_practice_evaluations_audit_assessment_id", "c2m2_practice_evaluations", ["audit_assessment_id"])
    op.create_index("ix_c2m2_practice_evaluations_practice_id", "c2m2_practice_evaluations", ["practice_id"])

    # ── webhooks ──
    op.create_table(
        "webhook_configurations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("event_types", sa.JSON, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_webhook_configurations_organization_id", "webhook_configurations", ["organization_id"])


def downgrade() -> None:
    op.drop_table("webhook_configurations")
    op.drop_table("c2m2_practice_evaluations")
    op.drop_table("c2m2_practices")
    op.drop_table("c2m2_domains")
    op.drop_table("audit_assessments")
    op.drop_table("audit_controls")
    op.drop_table("audit_frameworks")
    op.drop_index("uq_approval_workflows_pending_risk", table_name="approval_workflows")
    op.drop_table("approval_workflows")
    op.drop_table("risk_stakeholders")
    op.drop_table("risks")
    op.drop_table("users")
    op.drop_table("organizations")
