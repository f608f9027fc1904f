"""Error taxonomy for the session SDK.

Every failure the SDK reports on purpose is a ``ClinicError``.  Each subclass
carries a ``kind`` (stable machine-readable tag) and the HTTP status the
server maps it to; the message is user-facing and written in Portuguese,
the product's working language.

``ClinicError`` subclasses ``ValueError`` so callers that only know the
plain SDK convention (``ValueError`` for bad input / missing records) still
handle it.
"""


class ClinicError(ValueError):
    """Base class for expected, user-recoverable failures."""

    kind: str = "error"
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthenticatedError(ClinicError):
    """No valid caller identity."""

    kind = "unauthenticated"
    status_code = 401


class ForbiddenError(ClinicError):
    """Caller lacks a tenant association or the required capability."""

    kind = "forbidden"
    status_code = 403


class ValidationError(ClinicError):
    """A required field is missing or malformed."""

    kind = "validation"
    status_code = 400


class NotFoundError(ClinicError):
    """Referenced record does not exist within the caller's tenant."""

    kind = "not_found"
    status_code = 404


class ConflictError(ClinicError):
    """An in-progress session already exists for the (patient, professional) pair."""

    kind = "conflict"
    status_code = 409
