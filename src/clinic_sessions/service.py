"""SessionService — lifecycle of activity and assessment sessions.

Stateless service pattern: each call loads what it needs from the database,
applies one lifecycle rule, persists through the repository, and returns a
pydantic model.  No in-memory state is kept between calls.

The service accepts an ``AsyncSession`` from the caller so that the caller
(typically a FastAPI endpoint) controls transaction boundaries.

Lifecycle::

    start ──► in_progress ──(submit_response)*──► finalize ──► finalized

``start`` is guarded (one in-progress session per patient/professional pair
and variant); ``finalize`` is terminal and accepts partially scored
sessions.  Response writes are upserts keyed by (session, task).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_db.models.enums import SessionKind, SessionStatus
from clinic_db.models.reference import Patient
from clinic_db.models.session import SessionRecord
from clinic_db.repository import ReferenceRepository, SessionRepository

from clinic_sessions.constants import (
    DASHBOARD_RECENT_LIMIT,
    HELP_TYPES,
    SESSION_LIST_LIMIT,
    UNASSISTED_HELP_TYPES,
)
from clinic_sessions.context import CallerContext
from clinic_sessions.errors import ConflictError, NotFoundError, ValidationError
from clinic_sessions.models.session import (
    DashboardOverview,
    OperationResult,
    PatientSummary,
    ProfessionalSummary,
    ResponseItem,
    ScoringLevelItem,
    SessionDetail,
    SessionListItem,
    SessionSummary,
    StartedSession,
    TaskItem,
)
from clinic_sessions.resolution import find_linked_professional, resolve_professional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _KindText:
    """User-facing wording that differs between the two variants."""

    missing_ids: str
    target_not_found: str
    task_not_found: str
    conflict: str
    task_noun: str


_TEXT: dict[SessionKind, _KindText] = {
    SessionKind.ACTIVITY: _KindText(
        missing_ids="ID do paciente e ID da atividade são obrigatórios",
        target_not_found="Atividade não encontrada ou não pertence a esta clínica",
        task_not_found="Instrução não encontrada ou não pertence a esta atividade",
        conflict=(
            "Já existe uma sessão em andamento com este paciente. "
            "Finalize a sessão atual antes de iniciar outra."
        ),
        task_noun="instruções",
    ),
    SessionKind.ASSESSMENT: _KindText(
        missing_ids="ID do paciente e ID da avaliação são obrigatórios",
        target_not_found="Avaliação não encontrada ou não pertence a esta clínica",
        task_not_found="Tarefa não encontrada ou não pertence a esta avaliação",
        conflict=(
            "Já existe uma sessão de avaliação em andamento com este paciente. "
            "Finalize a sessão atual antes de iniciar outra."
        ),
        task_noun="tarefas",
    ),
}

PATIENT_NOT_FOUND = "Paciente não encontrado ou não pertence a esta clínica"
SESSION_ID_REQUIRED = "ID da sessão é obrigatório"
TASK_ID_REQUIRED = "ID da tarefa é obrigatório"
SESSION_NOT_IN_TENANT = "Sessão não encontrada ou não pertence a esta clínica"
SESSION_NOT_FOUND = "Sessão não encontrada"
INVALID_HELP_TYPE = (
    "Tipo de ajuda inválido. Valores permitidos: " + ", ".join(HELP_TYPES)
)


def _coerce_id(value: Any) -> uuid.UUID | None:
    """Parse an opaque id; malformed ids resolve to None (never found)."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class SessionService:
    """Starts, scores, finalizes and looks up clinical sessions."""

    def __init__(self) -> None:
        self._repo = SessionRepository()
        self._refs = ReferenceRepository()

    # ==================================================================
    # Lifecycle
    # ==================================================================

    async def start_session(
        self,
        db: AsyncSession,
        caller: CallerContext,
        *,
        kind: SessionKind,
        patient_id: Any,
        target_id: Any,
    ) -> StartedSession:
        """Start a new in-progress session.

        Preconditions are checked in order and the first failure is raised
        before anything is written:

          1. both ids present                      → ValidationError
          2. patient active in the caller's tenant → NotFoundError
          3. activity/assessment active in tenant  → NotFoundError
          4. owning professional resolvable        → NotFoundError
          5. no in-progress session for the pair   → ConflictError

        A concurrent start that slips past step 5 trips the partial unique
        index at flush time and is reported as the same ConflictError.
        """
        kind = SessionKind(kind)
        text = _TEXT[kind]
        if not patient_id or not target_id:
            raise ValidationError(text.missing_ids)

        patient = await self._load_patient(db, caller, patient_id)

        target_uuid = _coerce_id(target_id)
        target = None
        if target_uuid is not None:
            target = await self._refs.get_target(db, kind, caller.tenant_id, target_uuid)
        if target is None:
            raise NotFoundError(text.target_not_found)

        professional = await resolve_professional(db, self._refs, caller, patient)

        existing = await self._repo.find_in_progress(
            db, kind, patient_id=patient.id, professional_id=professional.id,
        )
        if existing is not None:
            logger.warning(
                "Start refused: %s session %s already in progress "
                "(patient=%s, professional=%s)",
                kind.value, existing.id, patient.id, professional.id,
            )
            raise ConflictError(text.conflict)

        try:
            row = await self._repo.create_session(
                db,
                kind,
                patient_id=patient.id,
                professional_id=professional.id,
                target_id=target.id,
            )
        except IntegrityError as exc:
            logger.warning(
                "Start refused by in-progress index: %s session "
                "(patient=%s, professional=%s)",
                kind.value, patient.id, professional.id,
            )
            raise ConflictError(text.conflict) from exc

        task_count = len(target.tasks)
        logger.info(
            "Started %s session %s (patient=%s, professional=%s, target=%s, "
            "tasks=%d) by user %s (%s)",
            kind.value, row.id, patient.id, professional.id, target.id,
            task_count, caller.user_id, caller.role,
        )
        detail = self._to_detail(
            kind, row,
            patient=patient,
            professional=professional,
            target=target,
            responses=[],
        )
        return StartedSession(
            session=detail,
            task_count=task_count,
            message=f"Sessão iniciada com {task_count} {text.task_noun}",
        )

    async def submit_response(
        self,
        db: AsyncSession,
        caller: CallerContext,
        *,
        kind: SessionKind,
        session_id: Any,
        task_id: Any,
        score: Any = None,
        note: str | None = None,
        help_types: list[str] | None = None,
    ) -> OperationResult:
        """Record the score for one task, overwriting any earlier score.

        The score is stored as given; it is not checked against the
        assessment's scoring scale.  Writes to a finalized session are
        accepted.  ``help_types`` only applies to activity sessions and is
        ignored for assessments.
        """
        kind = SessionKind(kind)
        if not session_id:
            raise ValidationError(SESSION_ID_REQUIRED)
        if not task_id:
            raise ValidationError(TASK_ID_REQUIRED)
        if kind == SessionKind.ACTIVITY and help_types:
            self._validate_help_types(help_types)

        row = await self._load_session(db, caller, kind, session_id)

        task_uuid = _coerce_id(task_id)
        task_ids = {task.id for task in row.target.tasks}
        if task_uuid is None or task_uuid not in task_ids:
            raise NotFoundError(_TEXT[kind].task_not_found)

        await self._repo.upsert_response(
            db,
            kind,
            row,
            task_uuid,
            score=score,
            note=note or None,
            help_types=help_types if kind == SessionKind.ACTIVITY else None,
        )
        logger.info(
            "Response saved: %s session %s task %s", kind.value, row.id, task_uuid,
        )
        return OperationResult(message="Resposta salva com sucesso")

    async def finalize_session(
        self,
        db: AsyncSession,
        caller: CallerContext,
        *,
        kind: SessionKind,
        session_id: Any,
        general_notes: str | None = None,
    ) -> OperationResult:
        """Close a session for further scoring.

        Succeeds regardless of the current status or how many tasks were
        scored; incomplete sessions are only logged.
        """
        kind = SessionKind(kind)
        if not session_id:
            raise ValidationError(SESSION_ID_REQUIRED)

        row = await self._load_session(db, caller, kind, session_id)
        task_count = len(row.target.tasks)
        scored = len(row.responses)

        await self._repo.finalize_session(db, row, general_notes=general_notes)

        if scored < task_count:
            logger.warning(
                "Finalized %s session %s with %d/%d tasks scored",
                kind.value, row.id, scored, task_count,
            )
        else:
            logger.info("Finalized %s session %s", kind.value, row.id)
        return OperationResult(message="Sessão finalizada com sucesso")

    # ==================================================================
    # Lookup & listing
    # ==================================================================

    async def get_session(
        self, db: AsyncSession, caller: CallerContext, session_id: Any
    ) -> SessionDetail:
        """Return the full session graph, trying activity then assessment."""
        kind, row = await self._find_any(db, caller, session_id)
        return self._to_detail(
            kind, row,
            patient=row.patient,
            professional=row.professional,
            target=row.target,
            responses=row.responses,
        )

    async def list_sessions(
        self,
        db: AsyncSession,
        caller: CallerContext,
        *,
        patient_id: Any = None,
        status: str | None = None,
    ) -> list[SessionListItem]:
        """List sessions of both variants, newest first.

        Each variant is queried with the list limit, the results are merged
        and sorted by ``started_at`` descending, then truncated to the same
        limit.  Non-admin callers only see sessions owned by their own
        professional record, and an empty list if they have none.
        """
        status_filter = self._parse_status(status)

        patient_uuid = None
        if patient_id:
            patient = await self._load_patient(db, caller, patient_id)
            patient_uuid = patient.id

        professional_uuid = None
        if not caller.is_admin:
            professional = await find_linked_professional(db, self._refs, caller)
            if professional is None:
                logger.info(
                    "User %s has no linked professional; empty session list",
                    caller.user_id,
                )
                return []
            professional_uuid = professional.id

        items: list[SessionListItem] = []
        for kind in SessionKind:
            rows = await self._repo.list_sessions(
                db,
                kind,
                caller.tenant_id,
                patient_id=patient_uuid,
                professional_id=professional_uuid,
                status=status_filter,
                limit=SESSION_LIST_LIMIT,
            )
            items.extend(self._to_list_item(kind, row) for row in rows)

        items.sort(key=lambda item: item.started_at, reverse=True)
        return items[:SESSION_LIST_LIMIT]

    async def summarize_session(
        self, db: AsyncSession, caller: CallerContext, session_id: Any
    ) -> SessionSummary:
        """Compute scoring statistics for one session."""
        kind, row = await self._find_any(db, caller, session_id)
        responses = list(row.responses)
        task_count = len(row.target.tasks)
        scored_count = len(responses)
        numeric = [r.score for r in responses if _is_number(r.score)]

        summary = SessionSummary(
            session_id=row.id,
            kind=kind.value,
            status=self._status_value(row.status),
            task_count=task_count,
            scored_count=scored_count,
            pending_count=max(task_count - scored_count, 0),
        )
        if numeric:
            summary.mean_score = round(sum(numeric) / len(numeric), 2)
            summary.max_score = max(numeric)
            summary.min_score = min(numeric)
        if kind == SessionKind.ACTIVITY:
            assisted = sum(
                1 for r in responses
                if any(h not in UNASSISTED_HELP_TYPES for h in (r.help_types or []))
            )
            summary.assisted_count = assisted
            if scored_count:
                summary.assisted_percent = round(assisted / scored_count * 100, 1)
        return summary

    async def dashboard_overview(
        self, db: AsyncSession, caller: CallerContext
    ) -> DashboardOverview:
        """Most recent in-progress and finalized sessions of the clinic."""
        in_progress: list[SessionListItem] = []
        finalized: list[SessionListItem] = []
        for kind in SessionKind:
            rows = await self._repo.list_sessions(
                db, kind, caller.tenant_id,
                status=SessionStatus.IN_PROGRESS,
                limit=DASHBOARD_RECENT_LIMIT,
            )
            in_progress.extend(self._to_list_item(kind, row) for row in rows)
            rows = await self._repo.list_sessions(
                db, kind, caller.tenant_id,
                status=SessionStatus.FINALIZED,
                order_by_finalized=True,
                limit=DASHBOARD_RECENT_LIMIT,
            )
            finalized.extend(self._to_list_item(kind, row) for row in rows)

        in_progress.sort(key=lambda item: item.started_at, reverse=True)
        finalized.sort(key=lambda item: item.finalized_at, reverse=True)
        return DashboardOverview(
            in_progress=in_progress[:DASHBOARD_RECENT_LIMIT],
            recently_finalized=finalized[:DASHBOARD_RECENT_LIMIT],
        )

    # ==================================================================
    # Internal helpers
    # ==================================================================

    async def _load_patient(
        self, db: AsyncSession, caller: CallerContext, patient_id: Any
    ) -> Patient:
        """Load an active patient of the caller's tenant or raise NotFoundError."""
        patient_uuid = _coerce_id(patient_id)
        patient = None
        if patient_uuid is not None:
            patient = await self._refs.get_patient(db, caller.tenant_id, patient_uuid)
        if patient is None:
            raise NotFoundError(PATIENT_NOT_FOUND)
        return patient

    async def _load_session(
        self,
        db: AsyncSession,
        caller: CallerContext,
        kind: SessionKind,
        session_id: Any,
    ) -> SessionRecord:
        """Load a session of ``kind`` within the caller's tenant or raise."""
        session_uuid = _coerce_id(session_id)
        row = None
        if session_uuid is not None:
            row = await self._repo.get_for_tenant(
                db, kind, session_uuid, caller.tenant_id, with_detail=True,
            )
        if row is None:
            raise NotFoundError(SESSION_NOT_IN_TENANT)
        return row

    async def _find_any(
        self, db: AsyncSession, caller: CallerContext, session_id: Any
    ) -> tuple[SessionKind, SessionRecord]:
        """Resolve an id against the activity table, then the assessment table."""
        session_uuid = _coerce_id(session_id)
        if session_uuid is not None:
            for kind in (SessionKind.ACTIVITY, SessionKind.ASSESSMENT):
                row = await self._repo.get_for_tenant(
                    db, kind, session_uuid, caller.tenant_id, with_detail=True,
                )
                if row is not None:
                    return kind, row
        raise NotFoundError(SESSION_NOT_FOUND)

    @staticmethod
    def _validate_help_types(help_types: Any) -> None:
        if not isinstance(help_types, list):
            raise ValidationError("tipos de ajuda deve ser uma lista")
        if any(h not in HELP_TYPES for h in help_types):
            raise ValidationError(INVALID_HELP_TYPE)

    @staticmethod
    def _parse_status(status: str | None) -> SessionStatus | None:
        if not status:
            return None
        try:
            return SessionStatus(status.lower())
        except ValueError:
            raise ValidationError(f"Status inválido: {status}") from None

    @staticmethod
    def _status_value(status: Any) -> str:
        return status.value if isinstance(status, SessionStatus) else str(status)

    def _info_fields(self, kind: SessionKind, row: SessionRecord) -> dict[str, Any]:
        return {
            "id": row.id,
            "kind": kind.value,
            "status": self._status_value(row.status),
            "patient_id": row.patient_id,
            "professional_id": row.professional_id,
            "target_id": row.target_id,
            "started_at": row.started_at,
            "finalized_at": row.finalized_at,
            "general_notes": row.general_notes,
        }

    def _to_detail(
        self,
        kind: SessionKind,
        row: SessionRecord,
        *,
        patient: Any,
        professional: Any,
        target: Any,
        responses: list,
    ) -> SessionDetail:
        """Convert a session and its related records into a SessionDetail."""
        tasks = [
            TaskItem(id=t.id, position=t.position, text=t.text) for t in target.tasks
        ]
        positions = {t.id: t.position for t in tasks}
        ordered = sorted(
            responses,
            key=lambda r: positions.get(r.task_id, len(positions)),
        )
        return SessionDetail(
            **self._info_fields(kind, row),
            patient=PatientSummary(id=patient.id, name=patient.name),
            professional=ProfessionalSummary(
                id=professional.id,
                name=professional.name,
                specialty=professional.specialty,
            ),
            target_name=target.name,
            tasks=tasks,
            scoring_levels=[
                ScoringLevelItem(
                    id=level.id,
                    position=level.position,
                    label=level.label,
                    value=level.value,
                )
                for level in target.scoring_levels
            ],
            responses=[
                ResponseItem(
                    task_id=r.task_id,
                    position=positions.get(r.task_id),
                    score=r.score,
                    note=r.note,
                    help_types=list(r.help_types or []),
                    updated_at=r.updated_at,
                )
                for r in ordered
            ],
        )

    def _to_list_item(self, kind: SessionKind, row: SessionRecord) -> SessionListItem:
        """Convert an eagerly loaded session row into a listing entry."""
        patient = row.patient
        professional = row.professional
        return SessionListItem(
            **self._info_fields(kind, row),
            patient=PatientSummary(id=patient.id, name=patient.name),
            professional=ProfessionalSummary(
                id=professional.id,
                name=professional.name,
                specialty=professional.specialty,
            ),
            target_name=row.target.name,
            response_count=len(row.responses),
        )
