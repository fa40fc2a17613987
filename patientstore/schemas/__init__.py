"""Pydantic schemas."""

from patientstore.schemas.bundle import (
    Bundle,
    BundleEntry,
    BundleEntryRequest,
    BundleEntryResponse,
    BundleLink,
)
from patientstore.schemas.outcome import OperationOutcome, OperationOutcomeIssue
from patientstore.schemas.patient import PatientDocument, validate_patient_document

__all__ = [
    "Bundle",
    "BundleEntry",
    "BundleEntryRequest",
    "BundleEntryResponse",
    "BundleLink",
    "OperationOutcome",
    "OperationOutcomeIssue",
    "PatientDocument",
    "validate_patient_document",
]
