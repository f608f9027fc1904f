"""Global exception handlers — map SDK exceptions to HTTP responses.

The SDK raises ``ClinicError`` subclasses that already carry their HTTP
status and a user-facing message, so routes never catch them.  Anything else
is unexpected: it is logged with its traceback and surfaced as a generic 500
without leaking internals.

Every error body has the same shape::

    {"success": false, "error": "<message>", "kind": "<taxonomy kind>"}
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from clinic_sessions.errors import ClinicError

logger = logging.getLogger(__name__)


def _error_body(message: str, kind: str) -> dict:
    return {"success": False, "error": message, "kind": kind}


async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
    """Return the SDK error's own status and message."""
    logger.warning(
        "%s [%d] at %s: %s", exc.kind, exc.status_code, request.url.path, exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.kind),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies/queries are VALIDATION errors (400), not 422."""
    logger.warning("Invalid request at %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content=_error_body("Dados da requisição inválidos", "validation"),
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content=_error_body("Erro interno do servidor", "internal"),
    )
