"""Pydantic schema for validating incoming Patient documents.

Only the fields the engine indexes or relies on are modelled; everything
else (extensions, contact, photo, ...) is carried through untouched.
"""

import re
import uuid
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError, field_validator

from patientstore.constants import RESOURCE_TYPE
from patientstore.errors import InvalidResourceError

GenderCode = Literal["male", "female", "other", "unknown"]
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


class PatientDocument(BaseModel):
    """Structural checks for a FHIR Patient body."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    resource_type: StrictStr = Field(alias="resourceType")
    id: StrictStr | None = None
    gender: GenderCode | None = None
    birth_date: StrictStr | None = Field(default=None, alias="birthDate")
    active: StrictBool | None = None
    name: list[dict[str, Any]] | None = None
    identifier: list[dict[str, Any]] | None = None
    telecom: list[dict[str, Any]] | None = None
    address: list[dict[str, Any]] | None = None

    @field_validator("id")
    @classmethod
    def id_is_uuid(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                uuid.UUID(value)
            except ValueError:
                raise ValueError("must be a UUID") from None
        return value

    @field_validator("birth_date")
    @classmethod
    def birth_date_is_calendar_date(cls, value: str | None) -> str | None:
        # Fixed-width YYYY-MM-DD keeps string comparison in search valid
        if value is not None:
            if not DATE_PATTERN.fullmatch(value):
                raise ValueError("must be a date in YYYY-MM-DD format")
            try:
                date.fromisoformat(value)
            except ValueError:
                raise ValueError("must be a date in YYYY-MM-DD format") from None
        return value


def validate_patient_document(data: Any, resource_type: str = RESOURCE_TYPE) -> PatientDocument:
    """Validate a document before it is written.

    Args:
        data: Caller-supplied document.
        resource_type: Type the document is being stored as.

    Returns:
        The parsed document.

    Raises:
        InvalidResourceError: With the offending field as location.
    """
    if not isinstance(data, dict):
        raise InvalidResourceError("Resource must be a JSON object", location="$")

    try:
        document = PatientDocument.model_validate(data)
    except ValidationError as e:
        error = e.errors()[0]
        location = ".".join(str(part) for part in error["loc"]) or "$"
        raise InvalidResourceError(f"{location}: {error['msg']}", location=location) from e

    if document.resource_type != resource_type:
        raise InvalidResourceError(
            f"Resource type must be '{resource_type}'", location="resourceType"
        )
    return document
