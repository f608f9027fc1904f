"""Dashboard endpoint — recent in-progress and finalized sessions."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_sessions.context import CallerContext
from clinic_sessions.models.session import DashboardOverview
from clinic_sessions.service import SessionService

from clinic_server.dependencies import get_db, get_service, require_permission

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/recent-sessions")
async def recent_sessions(
    caller: CallerContext = Depends(
        require_permission("view_sessions", "Sem permissão para visualizar sessões"),
    ),
    db: AsyncSession = Depends(get_db),
    service: SessionService = Depends(get_service),
) -> DashboardOverview:
    """Five newest in-progress sessions and five most recently finalized."""
    return await service.dashboard_overview(db, caller)
