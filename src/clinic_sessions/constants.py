"""Constants shared across the session SDK.

Limits can be overridden via environment variables so deployments can tune
list sizes without code changes.
"""

import os

# Roles that act on behalf of the whole clinic.
ADMIN_ROLES: frozenset[str] = frozenset({"ADMIN", "SUPER_ADMIN"})

# Roles allowed to run sessions.  "USER" is the identity provider's
# default role for therapists.
THERAPIST_ROLES: frozenset[str] = frozenset({"USER", "TERAPEUTA"}) | ADMIN_ROLES

# Prompting levels recorded alongside an activity score.
# "-" means the patient did not respond and "+" means independent success;
# the remaining codes name the kind of help given.
HELP_TYPES: tuple[str, ...] = ("-", "AFT", "AFP", "AI", "AG", "AVE", "AVG", "+")
UNASSISTED_HELP_TYPES: frozenset[str] = frozenset({"-", "+"})

# Merged session listing is capped after both variants are combined.
SESSION_LIST_LIMIT = int(os.getenv("SESSION_LIST_LIMIT", "50"))

# Entries per column on the dashboard "recent sessions" card.
DASHBOARD_RECENT_LIMIT = int(os.getenv("DASHBOARD_RECENT_LIMIT", "5"))
