"""Professional resolution — who owns a session the caller is starting.

Lookup order:
  1. the active professional linked to the caller's login user;
  2. for administrators only:
       a. the patient's default professional (active, same tenant),
       b. any active professional of the tenant;
  3. otherwise fail with ``NotFoundError``.

Read-only: no rows are written here.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_db.models.reference import Patient, Professional
from clinic_db.repository import ReferenceRepository

from clinic_sessions.context import CallerContext
from clinic_sessions.errors import NotFoundError

logger = logging.getLogger(__name__)

PROFESSIONAL_NOT_FOUND = (
    "Profissional não encontrado. Verifique se seu usuário está vinculado a "
    "um profissional ou se há profissionais cadastrados na clínica."
)


async def find_linked_professional(
    db: AsyncSession,
    refs: ReferenceRepository,
    caller: CallerContext,
) -> Professional | None:
    """Return the caller's own active professional record, if linked."""
    return await refs.get_professional_for_user(db, caller.tenant_id, caller.user_id)


async def resolve_professional(
    db: AsyncSession,
    refs: ReferenceRepository,
    caller: CallerContext,
    patient: Patient,
) -> Professional:
    """Resolve the professional a new session for ``patient`` belongs to.

    Raises:
        NotFoundError: non-admin caller without a linked professional, or
            an admin in a tenant with no active professional at all.
    """
    professional = await find_linked_professional(db, refs, caller)
    if professional is not None:
        return professional

    if caller.is_admin:
        if patient.professional_id is not None:
            professional = await refs.get_professional(
                db, caller.tenant_id, patient.professional_id,
            )
        if professional is None:
            professional = await refs.get_any_professional(db, caller.tenant_id)
        if professional is not None:
            logger.info(
                "Admin %s acting for professional %s",
                caller.user_id, professional.id,
            )
            return professional

    raise NotFoundError(PROFESSIONAL_NOT_FOUND)
