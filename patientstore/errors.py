"""Error hierarchy for the Patient store.

Error categories:
- not-found: identifier absent or soft-deleted (404)
- invalid: malformed document or search value, identifier mismatch (400)
- conflict: identifier collision under create-only semantics (409)
- internal: storage/transaction failure or broken version history (500)

The boundary layer renders every error as a FHIR OperationOutcome
(see patientstore.schemas.outcome).
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """Coded error categories exposed to the boundary layer."""

    NOT_FOUND = "not-found"
    INVALID = "invalid"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class PatientStoreError(Exception):
    """Base class for all Patient store errors."""

    category: ErrorCategory = ErrorCategory.INTERNAL
    http_status: int = 500
    severity: str = "error"

    def __init__(self, message: str, location: str | None = None) -> None:
        self.message = message
        self.location = location
        super().__init__(message)


class ResourceNotFoundError(PatientStoreError):
    """Resource does not exist or has been soft-deleted."""

    category = ErrorCategory.NOT_FOUND
    http_status = 404


class InvalidResourceError(PatientStoreError):
    """Document or request failed validation."""

    category = ErrorCategory.INVALID
    http_status = 400


class ResourceConflictError(PatientStoreError):
    """Identifier already in use where create-only semantics apply."""

    category = ErrorCategory.CONFLICT
    http_status = 409


class InternalStoreError(PatientStoreError):
    """Storage or transaction failure not attributable to the caller."""

    category = ErrorCategory.INTERNAL
    http_status = 500
    severity = "fatal"


class HistoryIntegrityError(InternalStoreError):
    """Version numbering for a resource is not gapless."""
