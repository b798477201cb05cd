"""Service error taxonomy.

Each error carries the HTTP status the API layer renders it with, so services
stay free of FastAPI types.
"""


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Malformed or missing input."""

    status_code = 400


class InvalidState(ServiceError):
    """Operation not allowed in the current order/item state."""

    status_code = 400


class SignatureInvalid(ServiceError):
    """HMAC signature mismatch."""

    status_code = 400


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    """Duplicate completion, ownership violation, or concurrent state change."""

    status_code = 409


class ServiceUnavailable(ServiceError):
    """Payment gateway unreachable or not configured."""

    status_code = 503


class InternalError(ServiceError):
    status_code = 500
