"""Activity session endpoints — start, score instructions, finalize.

All endpoints require the gateway-injected ``X-User-Data`` header.  Starting
needs the ``create_sessions`` capability; scoring and finalizing need
``edit_sessions``.
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

router = APIRouter(prefix="/activity-sessions", tags=["activity-sessions"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class StartActivitySessionRequest(BaseModel):
    """Body for POST /activity-sessions."""
    patient_id: str | None = None
    activity_id: str | None = None


class ScoreInstructionRequest(BaseModel):
    """Body for POST /activity-sessions/{session_id}/responses.

    ``task_id`` is the instruction id.  ``help_types`` lists the prompting
    levels used (``-``, ``AFT``, ``AFP``, ``AI``, ``AG``, ``AVE``, ``AVG``,
    ``+``).
    """
    task_id: str | None = None
    score: Any = None
    note: str | None = None
    help_types: list[str] | None = None


class FinalizeSessionRequest(BaseModel):
    """Body for POST /activity-sessions/{session_id}/finalize."""
    general_notes: str | None = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("", status_code=201)
async def start_activity_session(
    body: StartActivitySessionRequest,
    caller: CallerContext = Depends(
        require_permission("create_sessions", "Sem permissão para criar sessões"),
    ),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> StartedSession:
    """Start an activity session for a patient.

    Returns 201 with the session and its ordered instructions.  Raises 409
    if the patient already has an in-progress activity session with the
    resolved professional.
    """
    return await service.start_session(
        db,
        caller,
        kind=SessionKind.ACTIVITY,
        patient_id=body.patient_id,
        target_id=body.activity_id,
    )


@router.post("/{session_id}/responses")
async def score_instruction(
    session_id: str,
    body: ScoreInstructionRequest,
    caller: CallerContext = Depends(
        require_permission("edit_sessions", "Sem permissão para avaliar sessões"),
    ),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> OperationResult:
    """Create or overwrite the score for one instruction."""
    return await service.submit_response(
        db,
        caller,
        kind=SessionKind.ACTIVITY,
        session_id=session_id,
        task_id=body.task_id,
        score=body.score,
        note=body.note,
        help_types=body.help_types,
    )


@router.post("/{session_id}/finalize")
async def finalize_activity_session(
    session_id: str,
    body: FinalizeSessionRequest | None = None,
    caller: CallerContext = Depends(
        require_permission("edit_sessions", "Sem permissão para finalizar sessões"),
    ),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> OperationResult:
    """Finalize the session; partially scored sessions are accepted."""
    return await service.finalize_session(
        db,
        caller,
        kind=SessionKind.ACTIVITY,
        session_id=session_id,
        general_notes=body.general_notes if body else None,
    )
