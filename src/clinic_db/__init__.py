"""clinic_db — PostgreSQL persistence layer for clinical sessions.

This package provides the ORM models, async engine factory, and repositories
for starting, scoring, finalizing, and querying activity and assessment
sessions.  It is designed to be consumed by the ``clinic_sessions`` SDK and
the FastAPI server.
"""

from clinic_db.engine import get_engine, get_session_factory
from clinic_db.models.enums import SessionKind, SessionStatus
from clinic_db.models.reference import (
    Activity,
    ActivityInstruction,
    Assessment,
    AssessmentTask,
    Patient,
    Professional,
    ScoringLevel,
)
from clinic_db.models.session import (
    ActivitySession,
    AssessmentSession,
    InstructionResponse,
    TaskResponse,
)
from clinic_db.repository import ReferenceRepository, SessionRepository

__all__ = [
    "Activity",
    "ActivityInstruction",
    "ActivitySession",
    "Assessment",
    "AssessmentSession",
    "AssessmentTask",
    "InstructionResponse",
    "Patient",
    "Professional",
    "ScoringLevel",
    "SessionKind",
    "SessionStatus",
    "TaskResponse",
    "get_engine",
    "get_session_factory",
    "ReferenceRepository",
    "SessionRepository",
]
