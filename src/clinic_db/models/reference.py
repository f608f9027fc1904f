"""Reference records consumed by the session lifecycle.

Patients, professionals, activities and assessments are owned by other
parts of the clinic application; the session core only resolves them by id
and always scopes the lookup by ``tenant_id``.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Boolean, ForeignKey, Index, SmallInteger, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_db.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Professional(Base):
    """A clinic staff member who can own sessions."""

    __tablename__ = "professionals"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    specialty: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true"),
    )
    # Login-user id from the identity provider, when the account is linked
    user_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow,
    )

    __table_args__ = (
        Index("ix_professional_tenant_user", "tenant_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Professional(id={self.id!s}, tenant={self.tenant_id!r})>"


class Patient(Base):
    """A patient of one clinic, optionally assigned a default professional."""

    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true"),
    )
    professional_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("professionals.id"), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow,
    )

    def __repr__(self) -> str:
        return f"<Patient(id={self.id!s}, tenant={self.tenant_id!r})>"


# ----------------------------------------------------------------------
# Activities
# ----------------------------------------------------------------------

class Activity(Base):
    """A therapy activity made of ordered instructions."""

    __tablename__ = "activities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true"),
    )

    instructions: Mapped[list["ActivityInstruction"]] = relationship(
        order_by="ActivityInstruction.position",
        cascade="all, delete-orphan",
    )

    @property
    def tasks(self) -> list["ActivityInstruction"]:
        return self.instructions

    @property
    def scoring_levels(self) -> list["ScoringLevel"]:
        # Activities score on a fixed scale and carry no scale rows
        return []


class ActivityInstruction(Base):
    """One scorable step of an activity."""

    __tablename__ = "activity_instructions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    activity_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)


# ----------------------------------------------------------------------
# Assessments
# ----------------------------------------------------------------------

class Assessment(Base):
    """A standardised assessment made of ordered tasks and a scoring scale."""

    __tablename__ = "assessments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true"),
    )

    tasks: Mapped[list["AssessmentTask"]] = relationship(
        order_by="AssessmentTask.position",
        cascade="all, delete-orphan",
    )
    scoring_levels: Mapped[list["ScoringLevel"]] = relationship(
        order_by="ScoringLevel.position",
        cascade="all, delete-orphan",
    )


class AssessmentTask(Base):
    """One scorable question of an assessment."""

    __tablename__ = "assessment_tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)

    @property
    def text(self) -> str:
        return self.question


class ScoringLevel(Base):
    """One entry of an assessment's scoring scale (e.g. 0 / 0.5 / 1)."""

    __tablename__ = "scoring_levels"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    # Numeric value or categorical code, kept as JSON so both round-trip
    value: Mapped[Any] = mapped_column(JSONB, nullable=True)
