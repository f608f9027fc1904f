"""Role → capability matrix.

``has_permission`` is a pure function of (role, capability); unknown
capabilities are always denied.
"""

from clinic_sessions.constants import ADMIN_ROLES, THERAPIST_ROLES

# Capabilities every therapist-level role holds.
_THERAPIST_CAPABILITIES: frozenset[str] = frozenset({
    "view_patients",
    "create_patients",
    "edit_patients",
    "view_professionals",
    "view_medical_records",
    "create_medical_records",
    "edit_medical_records",
    "delete_medical_records",
    "view_activities",
    "create_activities",
    "edit_activities",
    "view_sessions",
    "create_sessions",
    "edit_sessions",
    "view_anamneses",
    "create_anamneses",
    "edit_anamneses",
})

# Capabilities reserved to clinic administrators.
_ADMIN_CAPABILITIES: frozenset[str] = frozenset({
    "delete_patients",
    "create_professionals",
    "edit_professionals",
    "delete_professionals",
    "delete_activities",
    "delete_anamneses",
    "manage_users",
})


def has_permission(role: str, capability: str) -> bool:
    """Return True if ``role`` may perform ``capability``."""
    if capability in _THERAPIST_CAPABILITIES:
        return role in THERAPIST_ROLES
    if capability in _ADMIN_CAPABILITIES:
        return role in ADMIN_ROLES
    return False
