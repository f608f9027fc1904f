"""Session and response ORM models — one table pair per session variant.

Activity sessions and assessment sessions share the same shape (see
``SessionRecordMixin``) but live in separate tables because they reference
different catalogues.  Each session owns its responses; a response is unique
per (session, task) so scoring the same task twice overwrites the row.

The "one in-progress session per (patient, professional)" rule is backed by
a partial unique index on each session table, so a concurrent double start
fails at flush time instead of slipping past the pre-insert check.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from clinic_db.models.base import Base
from clinic_db.models.enums import SessionStatus
from clinic_db.models.reference import (
    Activity,
    Assessment,
    Patient,
    Professional,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionRecordMixin:
    """Columns shared by both session variants."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    @declared_attr
    def patient_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            UUID(as_uuid=True),
            ForeignKey("patients.id"),
            nullable=False,
            index=True,
        )

    @declared_attr
    def professional_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            UUID(as_uuid=True),
            ForeignKey("professionals.id"),
            nullable=False,
            index=True,
        )

    @declared_attr
    def patient(cls) -> Mapped[Patient]:
        return relationship(Patient)

    @declared_attr
    def professional(cls) -> Mapped[Professional]:
        return relationship(Professional)

    # --- Lifecycle ---
    status: Mapped[SessionStatus] = mapped_column(
        # Store as the lowercase string value, not the Python name
        String(20),
        nullable=False,
        default=SessionStatus.IN_PROGRESS,
        index=True,
    )
    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    # Set exactly once, by finalize
    finalized_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True,
    )
    general_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # --- Bookkeeping ---
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )


# ======================================================================
# Activity variant
# ======================================================================

class ActivitySession(SessionRecordMixin, Base):
    """One professional administering one activity to one patient."""

    __tablename__ = "activity_sessions"

    activity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("activities.id"),
        nullable=False,
        index=True,
    )
    activity: Mapped[Activity] = relationship(Activity)

    responses: Mapped[list["InstructionResponse"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('in_progress', 'finalized')",
            name="ck_activity_session_status",
        ),
        # Finalized sessions must carry their completion timestamp
        CheckConstraint(
            "status != 'finalized' OR finalized_at IS NOT NULL",
            name="ck_activity_session_finalized_at",
        ),
        Index("ix_activity_sessions_started_at", "started_at"),
        # At most one in-progress session per (patient, professional)
        Index(
            "uq_activity_sessions_in_progress",
            "patient_id",
            "professional_id",
            unique=True,
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    @property
    def target_id(self) -> uuid.UUID:
        return self.activity_id

    @property
    def target(self) -> Activity:
        return self.activity

    def __repr__(self) -> str:
        return (
            f"<ActivitySession(id={self.id!s}, patient={self.patient_id!s}, "
            f"professional={self.professional_id!s}, status={self.status!r})>"
        )


class InstructionResponse(Base):
    """Score recorded for one activity instruction within a session."""

    __tablename__ = "instruction_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("activity_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    instruction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("activity_instructions.id"),
        nullable=False,
    )
    score: Mapped[Any] = mapped_column(JSONB, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Prompting levels the patient needed ("AFT", "AI", ...)
    help_types: Mapped[list[str]] = mapped_column(
        ARRAY(Text),
        nullable=False,
        default=list,
        server_default=text("'{}'::text[]"),
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    session: Mapped[ActivitySession] = relationship(back_populates="responses")

    __table_args__ = (
        UniqueConstraint("session_id", "instruction_id", name="uq_instruction_response"),
    )

    @property
    def task_id(self) -> uuid.UUID:
        return self.instruction_id


# ======================================================================
# Assessment variant
# ======================================================================

class AssessmentSession(SessionRecordMixin, Base):
    """One professional administering one assessment to one patient."""

    __tablename__ = "assessment_sessions"

    assessment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assessments.id"),
        nullable=False,
        index=True,
    )
    assessment: Mapped[Assessment] = relationship(Assessment)

    responses: Mapped[list["TaskResponse"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('in_progress', 'finalized')",
            name="ck_assessment_session_status",
        ),
        CheckConstraint(
            "status != 'finalized' OR finalized_at IS NOT NULL",
            name="ck_assessment_session_finalized_at",
        ),
        Index("ix_assessment_sessions_started_at", "started_at"),
        Index(
            "uq_assessment_sessions_in_progress",
            "patient_id",
            "professional_id",
            unique=True,
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    @property
    def target_id(self) -> uuid.UUID:
        return self.assessment_id

    @property
    def target(self) -> Assessment:
        return self.assessment

    def __repr__(self) -> str:
        return (
            f"<AssessmentSession(id={self.id!s}, patient={self.patient_id!s}, "
            f"professional={self.professional_id!s}, status={self.status!r})>"
        )


class TaskResponse(Base):
    """Score recorded for one assessment task within a session."""

    __tablename__ = "task_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assessment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assessment_tasks.id"),
        nullable=False,
    )
    score: Mapped[Any] = mapped_column(JSONB, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    session: Mapped[AssessmentSession] = relationship(back_populates="responses")

    __table_args__ = (
        UniqueConstraint("session_id", "task_id", name="uq_task_response"),
    )

    @property
    def help_types(self) -> list[str]:
        return []


# Either variant; code that handles both should accept this alias.
SessionRecord = ActivitySession | AssessmentSession
