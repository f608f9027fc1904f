"""Assessment session endpoints — start, score tasks, finalize.

Same lifecycle as activity sessions; the start response additionally
carries the assessment's scoring scale so the first task can be rendered
without another round trip.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_db.models.enums import SessionKind
from clinic_sessions.context import CallerContext
from clinic_sessions.models.session import OperationResult, StartedSession
from clinic_sessions.service import SessionService

from clinic_server.dependencies import get_db, get_service, require_permission

router = APIRouter(prefix="/assessment-sessions", tags=["assessment-sessions"])


class StartAssessmentSessionRequest(BaseModel):
    """Body for POST /assessment-sessions."""
    patient_id: str | None = None
    assessment_id: str | None = None


class ScoreTaskRequest(BaseModel):
    """Body for POST /assessment-sessions/{session_id}/responses."""
    task_id: str | None = None
    score: Any = None
    note: str | None = None


class FinalizeSessionRequest(BaseModel):
    """Body for POST /assessment-sessions/{session_id}/finalize."""
    general_notes: str | None = None


@router.post("", status_code=201)
async def start_assessment_session(
    body: StartAssessmentSessionRequest,
    caller: CallerContext = Depends(
        require_permission("create_sessions", "Sem permissão para criar sessões"),
    ),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> StartedSession:
    """Start an assessment session for a patient (201, or 409 on conflict)."""
    return await service.start_session(
        db,
        caller,
        kind=SessionKind.ASSESSMENT,
        patient_id=body.patient_id,
        target_id=body.assessment_id,
    )


@router.post("/{session_id}/responses")
async def score_task(
    session_id: str,
    body: ScoreTaskRequest,
    caller: CallerContext = Depends(
        require_permission("edit_sessions", "Sem permissão para editar sessões"),
    ),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> OperationResult:
    """Create or overwrite the score for one task."""
    return await service.submit_response(
        db,
        caller,
        kind=SessionKind.ASSESSMENT,
        session_id=session_id,
        task_id=body.task_id,
        score=body.score,
        note=body.note,
    )


@router.post("/{session_id}/finalize")
async def finalize_assessment_session(
    session_id: str,
    body: FinalizeSessionRequest | None = None,
    caller: CallerContext = Depends(
        require_permission("edit_sessions", "Sem permissão para editar sessões"),
    ),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> OperationResult:
    return await service.finalize_session(
        db,
        caller,
        kind=SessionKind.ASSESSMENT,
        session_id=session_id,
        general_notes=body.general_notes if body else None,
    )
