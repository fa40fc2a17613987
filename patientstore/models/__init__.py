"""SQLAlchemy models."""

from patientstore.models.patient import PatientHistory, PatientResource
from patientstore.models.search_index import (
    PatientAddressIndex,
    PatientIdentifierIndex,
    PatientNameIndex,
    PatientTelecomIndex,
)

__all__ = [
    "PatientAddressIndex",
    "PatientHistory",
    "PatientIdentifierIndex",
    "PatientNameIndex",
    "PatientResource",
    "PatientTelecomIndex",
]
