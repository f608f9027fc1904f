"""clinic_sessions — session & response lifecycle SDK.

Public API:
    SessionService   — start, score, finalize, look up and list sessions
    CallerContext    — authenticated caller threaded through every call
    has_permission   — pure role → capability check

Error taxonomy (all subclass ``ClinicError``, itself a ``ValueError``):
    UnauthenticatedError, ForbiddenError, ValidationError,
    NotFoundError, ConflictError

Result models:
    StartedSession, SessionDetail, SessionListItem, SessionSummary,
    DashboardOverview, OperationResult
"""

from clinic_sessions.context import CallerContext
from clinic_sessions.errors import (
    ClinicError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from clinic_sessions.models.session import (
    DashboardOverview,
    OperationResult,
    SessionDetail,
    SessionInfo,
    SessionListItem,
    SessionSummary,
    StartedSession,
)
from clinic_sessions.permissions import has_permission
from clinic_sessions.service import SessionService

__all__ = [
    # Service & context
    "SessionService",
    "CallerContext",
    "has_permission",
    # Errors
    "ClinicError",
    "ConflictError",
    "ForbiddenError",
    "NotFoundError",
    "UnauthenticatedError",
    "ValidationError",
    # Models
    "DashboardOverview",
    "OperationResult",
    "SessionDetail",
    "SessionInfo",
    "SessionListItem",
    "SessionSummary",
    "StartedSession",
]
