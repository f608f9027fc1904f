"""Caller identity threaded explicitly through every SDK call."""

from dataclasses import dataclass

from clinic_sessions.constants import ADMIN_ROLES


@dataclass(frozen=True)
class CallerContext:
    """Authenticated caller as resolved by the identity gateway.

    Attributes:
        user_id: login-user id from the identity provider
        tenant_id: clinic the caller belongs to; scopes every query
        role: identity-provider role (``ADMIN``, ``TERAPEUTA``, ...)
        email: informational, used in log lines only
    """

    user_id: str
    tenant_id: str
    role: str
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
