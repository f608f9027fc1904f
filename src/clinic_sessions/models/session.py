"""Session models — the contract between the SDK and API callers.

These models are decoupled from the ORM models in
``clinic_db`` so that API consumers never see database internals.  Every
session-shaped model carries ``kind`` (``activity`` or ``assessment``) so
callers can tell the two variants apart after a merged listing.
"""

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

SessionKindLiteral = Literal["activity", "assessment"]


class PatientSummary(BaseModel):
    id: uuid.UUID
    name: str


class ProfessionalSummary(BaseModel):
    id: uuid.UUID
    name: str
    specialty: str | None = None


class TaskItem(BaseModel):
    """An instruction (activity) or task (assessment), in administration order."""

    id: uuid.UUID
    position: int
    text: str


class ScoringLevelItem(BaseModel):
    """One entry of an assessment's scoring scale."""

    id: uuid.UUID
    position: int
    label: str
    value: Any = None


class ResponseItem(BaseModel):
    """A recorded score for one task of the session."""

    task_id: uuid.UUID
    position: int | None = None
    score: Any = None
    note: str | None = None
    # Prompting levels; always empty for assessment responses
    help_types: list[str] = []
    updated_at: datetime | None = None


class SessionInfo(BaseModel):
    """Public view of a session record."""

    id: uuid.UUID
    kind: SessionKindLiteral
    status: str
    patient_id: uuid.UUID
    professional_id: uuid.UUID
    # activity_id or assessment_id depending on ``kind``
    target_id: uuid.UUID
    started_at: datetime
    finalized_at: datetime | None = None
    general_notes: str | None = None


class SessionListItem(SessionInfo):
    """Row of the merged session listing."""

    patient: PatientSummary | None = None
    professional: ProfessionalSummary | None = None
    target_name: str | None = None
    response_count: int = 0


class SessionDetail(SessionInfo):
    """Full session graph: who, what, and every response recorded so far."""

    patient: PatientSummary
    professional: ProfessionalSummary
    target_name: str
    tasks: list[TaskItem]
    scoring_levels: list[ScoringLevelItem] = []
    responses: list[ResponseItem] = []


class StartedSession(BaseModel):
    """Result of starting a session — enough to render the first task."""

    session: SessionDetail
    task_count: int
    message: str


class OperationResult(BaseModel):
    """Acknowledgement for writes that do not echo stored values."""

    ok: bool = True
    message: str


class SessionSummary(BaseModel):
    """Scoring statistics for one session.

    Numeric aggregates consider only numeric scores and are ``None`` when
    none has been recorded.  ``assisted_*`` is only meaningful for activity
    sessions and stays ``None`` for assessments.
    """

    session_id: uuid.UUID
    kind: SessionKindLiteral
    status: str
    task_count: int
    scored_count: int
    pending_count: int
    mean_score: float | None = None
    max_score: float | None = None
    min_score: float | None = None
    assisted_count: int | None = None
    assisted_percent: float | None = None


class DashboardOverview(BaseModel):
    """Recent sessions for the clinic dashboard."""

    in_progress: list[SessionListItem]
    recently_finalized: list[SessionListItem]
