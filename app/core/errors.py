from enum import Enum


class ErrorKind(Enum):
    LOCKED = "LOCKED"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    FORBIDDEN = "FORBIDDEN"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"


class BillingError(Exception):
    """Base class for every failure the billing core reports to its callers."""

    kind: ErrorKind = ErrorKind.VALIDATION
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PeriodLockedError(BillingError):
    kind = ErrorKind.LOCKED
    status_code = 423

    def __init__(self, project_id: str, year: int, month: int):
        super().__init__(f"Period {year}-{month:02d} is locked for project {project_id}")
        self.project_id = project_id
        self.year = year
        self.month = month


class NotFoundError(BillingError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class ValidationError(BillingError):
    kind = ErrorKind.VALIDATION
    status_code = 422


class ConflictError(BillingError):
    kind = ErrorKind.CONFLICT
    status_code = 409


class ForbiddenError(BillingError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403


class ExternalServiceError(BillingError):
    """Renderer, file store or e-signature provider failure."""

    kind = ErrorKind.EXTERNAL_SERVICE
    status_code = 502

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service
