"""Database-level enumerations for clinical sessions."""

import enum


class SessionStatus(str, enum.Enum):
    """Lifecycle states for an activity or assessment session.

    Transitions:
        in_progress -> finalized  (finalize; terminal, stamps finalized_at)

    There is no way back from ``finalized`` and no cancel/expiry state.
    """

    IN_PROGRESS = "in_progress"
    FINALIZED = "finalized"


class SessionKind(str, enum.Enum):
    """Which of the two parallel session tables a record lives in."""

    ACTIVITY = "activity"
    ASSESSMENT = "assessment"
