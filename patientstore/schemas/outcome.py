"""FHIR OperationOutcome schema used as the error carrier."""

from pydantic import BaseModel

from patientstore.errors import ErrorCategory, PatientStoreError

ISSUE_TYPE_SYSTEM = "http://hl7.org/fhir/issue-type"

# FHIR issue-type codes per error category
ISSUE_CODES: dict[ErrorCategory, str] = {
    ErrorCategory.NOT_FOUND: "not-found",
    ErrorCategory.INVALID: "invalid",
    ErrorCategory.CONFLICT: "conflict",
    ErrorCategory.INTERNAL: "exception",
}

GENERIC_INTERNAL_MESSAGE = "An internal error occurred while processing the request"


class Coding(BaseModel):
    system: str | None = None
    code: str | None = None
    display: str | None = None


class CodeableConcept(BaseModel):
    coding: list[Coding] | None = None
    text: str | None = None


class OperationOutcomeIssue(BaseModel):
    """A single issue: severity, coded category, diagnostics and location."""

    severity: str
    code: str
    details: CodeableConcept | None = None
    diagnostics: str | None = None
    location: list[str] | None = None


class OperationOutcome(BaseModel):
    """Structured error outcome returned to the boundary layer."""

    resourceType: str = "OperationOutcome"
    issue: list[OperationOutcomeIssue]

    @classmethod
    def from_error(cls, error: PatientStoreError) -> "OperationOutcome":
        """Build an outcome from a store error.

        Internal errors never expose their diagnostic text.
        """
        code = ISSUE_CODES[error.category]
        diagnostics = (
            GENERIC_INTERNAL_MESSAGE
            if error.category is ErrorCategory.INTERNAL
            else error.message
        )
        return cls(
            issue=[
                OperationOutcomeIssue(
                    severity=error.severity,
                    code=code,
                    details=CodeableConcept(
                        coding=[Coding(system=ISSUE_TYPE_SYSTEM, code=code)],
                        text=error.category.value,
                    ),
                    diagnostics=diagnostics,
                    location=[error.location] if error.location else None,
                )
            ]
        )
