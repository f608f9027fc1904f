"""ORM models for clinic_db."""

from clinic_db.models.base import Base
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

__all__ = [
    "Base",
    "SessionKind",
    "SessionStatus",
    "Activity",
    "ActivityInstruction",
    "Assessment",
    "AssessmentTask",
    "Patient",
    "Professional",
    "ScoringLevel",
    "ActivitySession",
    "AssessmentSession",
    "InstructionResponse",
    "TaskResponse",
]
