"""Initial ATS schema.

Revision ID: 001_ats_initial
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_ats_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(bind, name: str) -> bool:
    return sa.inspect(bind).has_table(name)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()

    if not _has_table(bind, "job"):
        op.create_table(
            "job",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("company_id", sa.String(length=100), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("location", sa.String(length=200), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("fee_percentage", sa.Float(), nullable=False, server_default="20"),
            sa.Column("guarantee_days", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_job_company_id", "job", ["company_id"], unique=False)

    if not _has_table(bind, "candidate"):
        op.create_table(
            "candidate",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("linkedin_url", sa.String(length=500), nullable=True),
            sa.Column("location", sa.String(length=200), nullable=True),
            sa.Column("current_title", sa.String(length=200), nullable=True),
            sa.Column("user_id", sa.String(length=100), nullable=True),
            sa.Column("current_sourcer_id", sa.Uuid(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_candidate_email", "candidate", ["email"], unique=False)
        op.create_index("ix_candidate_user_id", "candidate", ["user_id"], unique=False)

    if not _has_table(bind, "recruiter"):
        op.create_table(
            "recruiter",
            sa.Column("id", sa.String(length=100), nullable=False),
            sa.Column("user_id", sa.String(length=100), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=True),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_recruiter_user_id", "recruiter", ["user_id"], unique=True)

    if not _has_table(bind, "candidate_sourcer"):
        op.create_table(
            "candidate_sourcer",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("candidate_id", sa.Uuid(), nullable=False),
            sa.Column("sourcer_id", sa.String(length=100), nullable=False),
            sa.Column("sourcer_type", sa.String(length=20), nullable=False, server_default="recruiter"),
            sa.Column("sourced_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("protection_window_days", sa.Integer(), nullable=False, server_default="365"),
            sa.Column("protection_expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["candidate_id"], ["candidate.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_candidate_sourcer_candidate_id", "candidate_sourcer", ["candidate_id"], unique=False)
        op.create_index("ix_candidate_sourcer_sourcer_id", "candidate_sourcer", ["sourcer_id"], unique=False)
        op.create_index(
            "ix_candidate_sourcer_protection_expires_at",
            "candidate_sourcer",
            ["protection_expires_at"],
            unique=False,
        )

    if not _has_table(bind, "candidate_outreach"):
        op.create_table(
            "candidate_outreach",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("candidate_id", sa.Uuid(), nullable=False),
            sa.Column("recruiter_id", sa.String(length=100), nullable=False),
            sa.Column("job_id", sa.Uuid(), nullable=True),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("email_subject", sa.String(length=500), nullable=False),
            sa.Column("email_body", sa.Text(), nullable=False),
            sa.Column("opened_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("clicked_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("replied_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("unsubscribed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("bounced", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["candidate_id"], ["candidate.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["job_id"], ["job.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_candidate_outreach_candidate_id", "candidate_outreach", ["candidate_id"], unique=False)
        op.create_index("ix_candidate_outreach_recruiter_id", "candidate_outreach", ["recruiter_id"], unique=False)

    if not _has_table(bind, "recruiter_candidate"):
        op.create_table(
            "recruiter_candidate",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("recruiter_id", sa.String(length=100), nullable=False),
            sa.Column("candidate_id", sa.Uuid(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("relationship_start_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("relationship_end_date", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["recruiter_id"], ["recruiter.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["candidate_id"], ["candidate.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_recruiter_candidate_recruiter_id", "recruiter_candidate", ["recruiter_id"], unique=False)
        op.create_index("ix_recruiter_candidate_candidate_id", "recruiter_candidate", ["candidate_id"], unique=False)

    if not _has_table(bind, "application"):
        op.create_table(
            "application",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("candidate_id", sa.Uuid(), nullable=False),
            sa.Column("job_id", sa.Uuid(), nullable=False),
            sa.Column("company_id", sa.String(length=100), nullable=True),
            sa.Column("recruiter_id", sa.String(length=100), nullable=True),
            sa.Column("stage", sa.String(length=30), nullable=False, server_default="draft"),
            sa.Column("accepted_by_company", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("recruiter_notes", sa.Text(), nullable=True),
            sa.Column("ai_reviewed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("ai_fit_score", sa.Float(), nullable=True),
            sa.Column("action_due_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("decline_reason", sa.String(length=100), nullable=True),
            sa.Column("decline_notes", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["candidate_id"], ["candidate.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["job_id"], ["job.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        for column in ("candidate_id", "job_id", "company_id", "recruiter_id", "stage"):
            op.create_index(f"ix_application_{column}", "application", [column], unique=False)

    if not _has_table(bind, "application_audit_log"):
        op.create_table(
            "application_audit_log",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("application_id", sa.Uuid(), nullable=False),
            sa.Column("action", sa.String(length=50), nullable=False),
            sa.Column("performed_by_user_id", sa.String(length=100), nullable=True),
            sa.Column("performed_by_role", sa.String(length=30), nullable=True),
            sa.Column("company_id", sa.String(length=100), nullable=True),
            sa.Column("old_value", sa.JSON(), nullable=True),
            sa.Column("new_value", sa.JSON(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["application_id"], ["application.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_application_audit_log_application_id",
            "application_audit_log",
            ["application_id"],
            unique=False,
        )

    if not _has_table(bind, "placement"):
        op.create_table(
            "placement",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("application_id", sa.Uuid(), nullable=False),
            sa.Column("job_id", sa.Uuid(), nullable=False),
            sa.Column("candidate_id", sa.Uuid(), nullable=False),
            sa.Column("company_id", sa.String(length=100), nullable=False),
            sa.Column("recruiter_id", sa.String(length=100), nullable=False),
            sa.Column("state", sa.String(length=20), nullable=False, server_default="hired"),
            sa.Column("salary", sa.Float(), nullable=False, server_default="0"),
            sa.Column("fee_percentage", sa.Float(), nullable=False, server_default="0"),
            sa.Column("fee_amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("recruiter_share", sa.Float(), nullable=False, server_default="0"),
            sa.Column("platform_share", sa.Float(), nullable=False, server_default="0"),
            sa.Column("hired_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("guarantee_days", sa.Integer(), nullable=False, server_default="90"),
            sa.Column("guarantee_expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("failure_reason", sa.Text(), nullable=True),
            sa.Column("replacement_placement_id", sa.Uuid(), nullable=True),
            sa.Column("allocated_split_percentage", sa.Float(), nullable=False, server_default="0"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["application_id"], ["application.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["job_id"], ["job.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["candidate_id"], ["candidate.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["replacement_placement_id"], ["placement.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("application_id"),
        )
        for column in ("candidate_id", "company_id", "recruiter_id", "state", "guarantee_expires_at"):
            op.create_index(f"ix_placement_{column}", "placement", [column], unique=False)

    if not _has_table(bind, "placement_collaborator"):
        op.create_table(
            "placement_collaborator",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("placement_id", sa.Uuid(), nullable=False),
            sa.Column("recruiter_id", sa.String(length=100), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("split_percentage", sa.Float(), nullable=False),
            sa.Column("split_amount", sa.Float(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["placement_id"], ["placement.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_placement_collaborator_placement_id", "placement_collaborator", ["placement_id"], unique=False
        )
        op.create_index(
            "ix_placement_collaborator_recruiter_id", "placement_collaborator", ["recruiter_id"], unique=False
        )


def downgrade() -> None:
    bind = op.get_bind()
    for table in (
        "placement_collaborator",
        "placement",
        "application_audit_log",
        "application",
        "recruiter_candidate",
        "candidate_outreach",
        "candidate_sourcer",
        "recruiter",
        "candidate",
        "job",
    ):
        if _has_table(bind, table):
            op.drop_table(table)
