"""Session lookup endpoints — merged listing, single lookup, summary.

These endpoints work across both variants: listings are tagged with
``kind`` and a lookup by id tries the activity table before the assessment
table.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_sessions.context import CallerContext
from clinic_sessions.models.session import SessionDetail, SessionListItem, SessionSummary
from clinic_sessions.service import SessionService

from clinic_server.dependencies import get_db, get_service, require_permission

router = APIRouter(tags=["sessions"])

_can_view = require_permission("view_sessions", "Sem permissão para visualizar sessões")


@router.get("/sessions")
async def list_sessions(
    patient_id: str | None = Query(None),
    status: str | None = Query(None),
    caller: CallerContext = Depends(_can_view),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> list[SessionListItem]:
    """List up to 50 sessions of both variants, most recent first.

    Therapists only see their own sessions; a therapist whose login is not
    linked to a professional gets an empty list.
    """
    return await service.list_sessions(
        db, caller, patient_id=patient_id, status=status,
    )


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    caller: CallerContext = Depends(_can_view),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> SessionDetail:
    """Return the session with patient, professional, tasks and responses.

    Raises 404 if the id matches no session in the caller's clinic.
    """
    return await service.get_session(db, caller, session_id)


@router.get("/sessions/{session_id}/summary")
async def get_session_summary(
    session_id: str,
    caller: CallerContext = Depends(_can_view),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> SessionSummary:
    """Scoring statistics: scored/pending counts, mean/min/max, assistance."""
    return await service.summarize_session(db, caller, session_id)
