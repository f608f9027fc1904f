"""Create reference, session and response tables.

Creates the tenant-scoped reference tables (professionals, patients,
activities with instructions, assessments with tasks and scoring levels),
the two session tables, and their response ledgers.

Each session table gets a partial unique index on
(patient_id, professional_id) restricted to ``status = 'in_progress'`` so
that at most one in-progress session per pair can exist, even under
concurrent starts.

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


def _session_columns(target_column: str, target_table: str) -> list[sa.Column]:
    """Columns shared by both session tables."""
    return [
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "patient_id", UUID(as_uuid=True),
            sa.ForeignKey("patients.id"), nullable=False, index=True,
        ),
        sa.Column(
            "professional_id", UUID(as_uuid=True),
            sa.ForeignKey("professionals.id"), nullable=False, index=True,
        ),
        sa.Column(
            target_column, UUID(as_uuid=True),
            sa.ForeignKey(f"{target_table}.id"), nullable=False, index=True,
        ),
        sa.Column(
            "status", sa.String(20), nullable=False, index=True,
            server_default=sa.text("'in_progress'"),
        ),
        sa.Column("started_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("finalized_at", TIMESTAMP(timezone=True), nullable=True),
        sa.Column("general_notes", sa.Text, nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # --- Reference tables ---
    op.create_table(
        "professionals",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", sa.Text, nullable=False, index=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("specialty", sa.Text, nullable=True),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("user_id", sa.Text, nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_professional_tenant_user", "professionals", ["tenant_id", "user_id"],
    )

    op.create_table(
        "patients",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", sa.Text, nullable=False, index=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column(
            "professional_id", UUID(as_uuid=True),
            sa.ForeignKey("professionals.id"), nullable=True,
        ),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "activities",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", sa.Text, nullable=False, index=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.text("true")),
    )
    op.create_table(
        "activity_instructions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "activity_id", UUID(as_uuid=True),
            sa.ForeignKey("activities.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column("position", sa.SmallInteger, nullable=False),
        sa.Column("text", sa.Text, nullable=False),
    )

    op.create_table(
        "assessments",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", sa.Text, nullable=False, index=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.text("true")),
    )
    op.create_table(
        "assessment_tasks",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "assessment_id", UUID(as_uuid=True),
            sa.ForeignKey("assessments.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column("position", sa.SmallInteger, nullable=False),
        sa.Column("question", sa.Text, nullable=False),
    )
    op.create_table(
        "scoring_levels",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "assessment_id", UUID(as_uuid=True),
            sa.ForeignKey("assessments.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column("position", sa.SmallInteger, nullable=False),
        sa.Column("label", sa.Text, nullable=False),
        sa.Column("value", JSONB, nullable=True),
    )

    # --- Session tables ---
    for table, target_column, target_table in (
        ("activity_sessions", "activity_id", "activities"),
        ("assessment_sessions", "assessment_id", "assessments"),
    ):
        prefix = table[: -len("_sessions")]
        op.create_table(
            table,
            *_session_columns(target_column, target_table),
            sa.CheckConstraint(
                "status IN ('in_progress', 'finalized')",
                name=f"ck_{prefix}_session_status",
            ),
            sa.CheckConstraint(
                "status != 'finalized' OR finalized_at IS NOT NULL",
                name=f"ck_{prefix}_session_finalized_at",
            ),
        )
        op.create_index(f"ix_{table}_started_at", table, ["started_at"])
        # At most one in-progress session per (patient, professional)
        op.create_index(
            f"uq_{table}_in_progress",
            table,
            ["patient_id", "professional_id"],
            unique=True,
            postgresql_where=sa.text("status = 'in_progress'"),
        )

    # --- Response ledgers ---
    op.create_table(
        "instruction_responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id", UUID(as_uuid=True),
            sa.ForeignKey("activity_sessions.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column(
            "instruction_id", UUID(as_uuid=True),
            sa.ForeignKey("activity_instructions.id"), nullable=False,
        ),
        sa.Column("score", JSONB, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column(
            "help_types", ARRAY(sa.Text), nullable=False,
            server_default=sa.text("'{}'::text[]"),
        ),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "session_id", "instruction_id", name="uq_instruction_response",
        ),
    )
    op.create_table(
        "task_responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id", UUID(as_uuid=True),
            sa.ForeignKey("assessment_sessions.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column(
            "task_id", UUID(as_uuid=True),
            sa.ForeignKey("assessment_tasks.id"), nullable=False,
        ),
        sa.Column("score", JSONB, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("session_id", "task_id", name="uq_task_response"),
    )


def downgrade() -> None:
    op.drop_table("task_responses")
    op.drop_table("instruction_responses")
    for table in ("assessment_sessions", "activity_sessions"):
        op.drop_index(f"uq_{table}_in_progress", table_name=table)
        op.drop_index(f"ix_{table}_started_at", table_name=table)
        op.drop_table(table)
    op.drop_table("scoring_levels")
    op.drop_table("assessment_tasks")
    op.drop_table("assessments")
    op.drop_table("activity_instructions")
    op.drop_table("activities")
    op.drop_table("patients")
    op.drop_index("ix_professional_tenant_user", table_name="professionals")
    op.drop_table("professionals")
