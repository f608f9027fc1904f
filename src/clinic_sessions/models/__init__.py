"""Pydantic models returned by the session SDK."""

from clinic_sessions.models.session import (
    DashboardOverview,
    OperationResult,
    PatientSummary,
    ProfessionalSummary,
    ResponseItem,
    ScoringLevelItem,
    SessionDetail,
    SessionInfo,
    SessionListItem,
    SessionSummary,
    StartedSession,
    TaskItem,
)

__all__ = [
    "DashboardOverview",
    "OperationResult",
    "PatientSummary",
    "ProfessionalSummary",
    "ResponseItem",
    "ScoringLevelItem",
    "SessionDetail",
    "SessionInfo",
    "SessionListItem",
    "SessionSummary",
    "StartedSession",
    "TaskItem",
]
