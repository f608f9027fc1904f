"""Async repositories for reference records and sessions.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Methods ``flush()`` but never ``commit()``; the
request-scoped dependency in the server commits once the whole operation
succeeded.

Business-logic validation lives in the ``clinic_sessions`` SDK.  Every
lookup here is scoped by tenant, either directly or through the session's
patient.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from clinic_db.models.enums import SessionKind, SessionStatus
from clinic_db.models.reference import Activity, Assessment, Patient, Professional
from clinic_db.models.session import (
    ActivitySession,
    AssessmentSession,
    InstructionResponse,
    SessionRecord,
    TaskResponse,
)


# ======================================================================
# Reference lookups
# ======================================================================

class ReferenceRepository:
    """Tenant-scoped reads on patients, professionals and catalogues."""

    async def get_patient(
        self, db: AsyncSession, tenant_id: str, patient_id: uuid.UUID
    ) -> Patient | None:
        """Fetch an active patient of the tenant."""
        stmt = select(Patient).where(
            Patient.id == patient_id,
            Patient.tenant_id == tenant_id,
            Patient.active.is_(True),
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_professional(
        self, db: AsyncSession, tenant_id: str, professional_id: uuid.UUID
    ) -> Professional | None:
        """Fetch an active professional of the tenant by id."""
        stmt = select(Professional).where(
            Professional.id == professional_id,
            Professional.tenant_id == tenant_id,
            Professional.active.is_(True),
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_professional_for_user(
        self, db: AsyncSession, tenant_id: str, user_id: str
    ) -> Professional | None:
        """Fetch the active professional linked to a login user."""
        stmt = (
            select(Professional)
            .where(
                Professional.user_id == user_id,
                Professional.tenant_id == tenant_id,
                Professional.active.is_(True),
            )
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_any_professional(
        self, db: AsyncSession, tenant_id: str
    ) -> Professional | None:
        """Fetch any active professional of the tenant (store order)."""
        stmt = (
            select(Professional)
            .where(
                Professional.tenant_id == tenant_id,
                Professional.active.is_(True),
            )
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_activity(
        self, db: AsyncSession, tenant_id: str, activity_id: uuid.UUID
    ) -> Activity | None:
        """Fetch an active activity with its ordered instructions."""
        stmt = (
            select(Activity)
            .where(
                Activity.id == activity_id,
                Activity.tenant_id == tenant_id,
                Activity.active.is_(True),
            )
            .options(selectinload(Activity.instructions))
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_assessment(
        self, db: AsyncSession, tenant_id: str, assessment_id: uuid.UUID
    ) -> Assessment | None:
        """Fetch an active assessment with ordered tasks and scoring scale."""
        stmt = (
            select(Assessment)
            .where(
                Assessment.id == assessment_id,
                Assessment.tenant_id == tenant_id,
                Assessment.active.is_(True),
            )
            .options(
                selectinload(Assessment.tasks),
                selectinload(Assessment.scoring_levels),
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_target(
        self,
        db: AsyncSession,
        kind: SessionKind,
        tenant_id: str,
        target_id: uuid.UUID,
    ) -> Activity | Assessment | None:
        """Fetch the activity or assessment a new session will administer."""
        if kind == SessionKind.ACTIVITY:
            return await self.get_activity(db, tenant_id, target_id)
        return await self.get_assessment(db, tenant_id, target_id)


# ======================================================================
# Sessions & responses
# ======================================================================

@dataclass(frozen=True)
class _Variant:
    """Table mapping for one session variant."""

    session_model: type
    response_model: type
    target_attr: str
    target_relationship: Any
    target_loader: tuple
    task_column: str


_VARIANTS: dict[SessionKind, _Variant] = {
    SessionKind.ACTIVITY: _Variant(
        session_model=ActivitySession,
        response_model=InstructionResponse,
        target_attr="activity_id",
        target_relationship=ActivitySession.activity,
        target_loader=(Activity.instructions,),
        task_column="instruction_id",
    ),
    SessionKind.ASSESSMENT: _Variant(
        session_model=AssessmentSession,
        response_model=TaskResponse,
        target_attr="assessment_id",
        target_relationship=AssessmentSession.assessment,
        target_loader=(Assessment.tasks, Assessment.scoring_levels),
        task_column="task_id",
    ),
}


class SessionRepository:
    """Async read/write operations on both session variants."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_session(
        self,
        db: AsyncSession,
        kind: SessionKind,
        *,
        patient_id: uuid.UUID,
        professional_id: uuid.UUID,
        target_id: uuid.UUID,
    ) -> SessionRecord:
        """Insert a new in-progress session row and return it.

        The insert runs inside a SAVEPOINT so that a violation of the
        in-progress partial unique index surfaces as ``IntegrityError``
        without poisoning the outer transaction.  The caller must
        ``await db.commit()`` to persist.
        """
        variant = _VARIANTS[kind]
        now = datetime.now(timezone.utc)
        row = variant.session_model(
            patient_id=patient_id,
            professional_id=professional_id,
            status=SessionStatus.IN_PROGRESS,
            started_at=now,
            finalized_at=None,
            general_notes=None,
            created_at=now,
            updated_at=now,
            **{variant.target_attr: target_id},
        )
        async with db.begin_nested():
            db.add(row)
            await db.flush()
        return row

    # ------------------------------------------------------------------
    # Read: single row
    # ------------------------------------------------------------------

    async def find_in_progress(
        self,
        db: AsyncSession,
        kind: SessionKind,
        *,
        patient_id: uuid.UUID,
        professional_id: uuid.UUID,
    ) -> SessionRecord | None:
        """Return the in-progress session for (patient, professional), if any."""
        model = _VARIANTS[kind].session_model
        stmt = (
            select(model)
            .where(
                model.patient_id == patient_id,
                model.professional_id == professional_id,
                model.status == SessionStatus.IN_PROGRESS,
            )
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_tenant(
        self,
        db: AsyncSession,
        kind: SessionKind,
        session_id: uuid.UUID,
        tenant_id: str,
        *,
        with_detail: bool = False,
    ) -> SessionRecord | None:
        """Fetch a session whose patient belongs to ``tenant_id``.

        With ``with_detail`` the patient, professional, target catalogue
        (tasks, scoring scale) and responses are eagerly loaded.
        """
        variant = _VARIANTS[kind]
        model = variant.session_model
        stmt = (
            select(model)
            .join(Patient, model.patient_id == Patient.id)
            .where(model.id == session_id, Patient.tenant_id == tenant_id)
        )
        if with_detail:
            stmt = stmt.options(*self._detail_options(variant))
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Read: multiple rows
    # ------------------------------------------------------------------

    async def list_sessions(
        self,
        db: AsyncSession,
        kind: SessionKind,
        tenant_id: str,
        *,
        patient_id: uuid.UUID | None = None,
        professional_id: uuid.UUID | None = None,
        status: SessionStatus | None = None,
        order_by_finalized: bool = False,
        limit: int = 50,
    ) -> list[SessionRecord]:
        """List sessions of one variant for a tenant, newest first.

        Ordered by ``started_at`` unless ``order_by_finalized`` is set, in
        which case ``finalized_at`` is used (dashboard "recently finished").
        """
        variant = _VARIANTS[kind]
        model = variant.session_model
        order_col = model.finalized_at if order_by_finalized else model.started_at
        stmt = (
            select(model)
            .join(Patient, model.patient_id == Patient.id)
            .where(Patient.tenant_id == tenant_id)
            .options(*self._detail_options(variant))
            .order_by(order_col.desc())
            .limit(limit)
        )
        if patient_id is not None:
            stmt = stmt.where(model.patient_id == patient_id)
        if professional_id is not None:
            stmt = stmt.where(model.professional_id == professional_id)
        if status is not None:
            stmt = stmt.where(model.status == status)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Update: response ledger
    # ------------------------------------------------------------------

    async def upsert_response(
        self,
        db: AsyncSession,
        kind: SessionKind,
        session: SessionRecord,
        task_id: uuid.UUID,
        *,
        score: Any,
        note: str | None,
        help_types: list[str] | None = None,
    ) -> None:
        """Create or overwrite the response keyed by (session, task).

        Uses ``INSERT ... ON CONFLICT DO UPDATE`` on the composite unique
        constraint so two concurrent submissions never produce two rows.
        """
        variant = _VARIANTS[kind]
        model = variant.response_model
        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {
            "id": uuid.uuid4(),
            "session_id": session.id,
            variant.task_column: task_id,
            "score": score,
            "note": note,
            "created_at": now,
            "updated_at": now,
        }
        updates: dict[str, Any] = {"score": score, "note": note, "updated_at": now}
        if kind == SessionKind.ACTIVITY:
            values["help_types"] = list(help_types or [])
            updates["help_types"] = values["help_types"]

        stmt = insert(model).values(**values).on_conflict_do_update(
            index_elements=["session_id", variant.task_column],
            set_=updates,
        )
        await db.execute(stmt)
        session.updated_at = now
        await db.flush()

    # ------------------------------------------------------------------
    # Update: terminal state
    # ------------------------------------------------------------------

    async def finalize_session(
        self,
        db: AsyncSession,
        session: SessionRecord,
        *,
        general_notes: str | None,
    ) -> SessionRecord:
        """Mark a session as finalized and stamp ``finalized_at``.

        ``finalized_at`` is written only on the first finalization; a repeat
        call refreshes ``general_notes`` but keeps the original stamp.  The
        CHECK constraint on each session table enforces that a finalized
        row always carries its timestamp.
        """
        now = datetime.now(timezone.utc)
        session.status = SessionStatus.FINALIZED
        if session.finalized_at is None:
            session.finalized_at = now
        session.general_notes = general_notes
        session.updated_at = now
        await db.flush()
        return session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _detail_options(variant: _Variant) -> list:
        model = variant.session_model
        target_load = selectinload(variant.target_relationship)
        return [
            selectinload(model.patient),
            selectinload(model.professional),
            selectinload(model.responses),
            *[target_load.selectinload(rel) for rel in variant.target_loader],
        ]
