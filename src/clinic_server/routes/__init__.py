"""Route registration — mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from clinic_server.routes.activity_sessions import router as activity_sessions_router
from clinic_server.routes.assessment_sessions import router as assessment_sessions_router
from clinic_server.routes.dashboard import router as dashboard_router
from clinic_server.routes.sessions import router as sessions_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(activity_sessions_router, prefix=API_PREFIX)
    app.include_router(assessment_sessions_router, prefix=API_PREFIX)
    app.include_router(sessions_router, prefix=API_PREFIX)
    app.include_router(dashboard_router, prefix=API_PREFIX)
