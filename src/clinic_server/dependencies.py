"""FastAPI dependency injection — provides DB sessions, the service, and caller identity.

Each request that touches the database gets a fresh ``AsyncSession`` via
``get_db()``.  The session is committed on success and rolled back on error,
matching the SDK convention where repositories call ``flush()`` but never
``commit()``.
"""

import base64
import hmac
import json
from typing import AsyncGenerator, Callable

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_db.engine import get_session_factory
from clinic_sessions.context import CallerContext
from clinic_sessions.errors import ForbiddenError, UnauthenticatedError
from clinic_sessions.permissions import has_permission
from clinic_sessions.service import SessionService


# ------------------------------------------------------------------
# Database session: transaction boundary lives here
# ------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ------------------------------------------------------------------
# Service: stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_service(request: Request) -> SessionService:
    """Return the SessionService singleton from ``app.state``."""
    return request.app.state.service


# ------------------------------------------------------------------
# Caller identity: injected by the SSO gateway as X-User-Data
# ------------------------------------------------------------------

def _decode_user_data(raw: str) -> dict:
    """Decode the base64 JSON user payload, or raise UnauthenticatedError.

    Browsers build the header with ``btoa(JSON.stringify(user))``, which
    yields Latin-1 bytes for accented names; UTF-8 is tried first and
    Latin-1 is the fallback.
    """
    try:
        data = base64.b64decode(raw, validate=True)
    except ValueError:
        raise UnauthenticatedError("Usuário não autenticado") from None
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        text = data.decode("latin-1")
    try:
        payload = json.loads(text)
    except ValueError:
        raise UnauthenticatedError("Usuário não autenticado") from None
    if not isinstance(payload, dict):
        raise UnauthenticatedError("Usuário não autenticado")
    return payload


async def get_caller(
    request: Request,
    x_user_data: str | None = Header(None, alias="X-User-Data"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> CallerContext:
    """Build the ``CallerContext`` from the gateway-injected headers.

    ``X-User-Data`` is a base64-encoded JSON object with at least ``id``,
    ``role`` and ``tenant.id``.  Missing or undecodable payloads are 401;
    a caller without a tenant is 403.

    When ``TRUSTED_PROXY_SECRET`` is configured, the request must also
    carry a matching ``X-Proxy-Secret`` header.
    """
    if not x_user_data:
        raise UnauthenticatedError("Usuário não autenticado")

    # --- Proxy-secret validation (opt-in via TRUSTED_PROXY_SECRET) ---
    expected_secret: str | None = request.app.state.settings.trusted_proxy_secret
    if expected_secret:
        if not x_proxy_secret:
            raise ForbiddenError("Cabeçalho X-Proxy-Secret é obrigatório")
        # Constant-time comparison
        if not hmac.compare_digest(x_proxy_secret, expected_secret):
            raise ForbiddenError("Segredo de proxy inválido")

    payload = _decode_user_data(x_user_data)
    user_id = payload.get("id")
    role = payload.get("role")
    if not user_id or not role:
        raise UnauthenticatedError("Usuário não autenticado")

    tenant = payload.get("tenant")
    tenant_id = tenant.get("id") if isinstance(tenant, dict) else None
    if not tenant_id:
        raise ForbiddenError("Usuário não está associado a uma clínica")

    return CallerContext(
        user_id=str(user_id),
        tenant_id=str(tenant_id),
        role=str(role),
        email=payload.get("email"),
    )


def require_permission(
    capability: str, message: str
) -> Callable[..., CallerContext]:
    """Dependency factory: resolve the caller and check one capability."""

    async def _check(caller: CallerContext = Depends(get_caller)) -> CallerContext:
        if not has_permission(caller.role, capability):
            raise ForbiddenError(message)
        return caller

    return _check
