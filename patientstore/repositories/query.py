"""Patient search.

Translates search parameters into lookups on the patient row and the
denormalized index tables. Results are identifier pages in a stable order
plus the size of the full matching set.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Iterable, Mapping

from sqlalchemy import ColumnElement, Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from patientstore.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, STATUS_CREATED
from patientstore.errors import InvalidResourceError
from patientstore.models.patient import PatientResource
from patientstore.models.search_index import (
    PatientAddressIndex,
    PatientIdentifierIndex,
    PatientNameIndex,
    PatientTelecomIndex,
)
from patientstore.schemas.patient import DATE_PATTERN
from patientstore.utils.fhir_helpers import parse_resource_id

logger = logging.getLogger(__name__)

SearchParameters = Mapping[str, str] | Iterable[tuple[str, str]]

DATE_PREFIXES = ("eq", "ge", "le")


def clamp_page(limit: int | None, offset: int | None) -> tuple[int, int]:
    """Resolve a page window: default size, hard cap, no negatives."""
    if limit is None:
        limit = DEFAULT_PAGE_SIZE
    limit = min(max(limit, 0), MAX_PAGE_SIZE)
    offset = max(offset or 0, 0)
    return limit, offset


def _search_value(value) -> str:
    """Render a parameter value the way it is stored (JSON booleans)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def _split(parameters: SearchParameters) -> list[tuple[str, str | None, str]]:
    """Split ``name:modifier`` keys, dropping blank values."""
    items = parameters.items() if isinstance(parameters, Mapping) else parameters
    parsed = []
    for key, value in items:
        if value is None:
            continue
        value = _search_value(value)
        if value == "":
            continue
        name, _, modifier = key.partition(":")
        parsed.append((name, modifier or None, value))
    return parsed


def _owned_by(model, *criteria: ColumnElement[bool]) -> ColumnElement[bool]:
    """Patients owning at least one index row matching all ``criteria``."""
    return PatientResource.id.in_(select(model.patient_id).where(*criteria))


def _name(modifier: str | None, value: str) -> ColumnElement[bool] | None:
    columns = (
        PatientNameIndex.family_name,
        PatientNameIndex.given_name,
        PatientNameIndex.name_text,
    )
    if modifier in (None, "contains"):
        return _owned_by(
            PatientNameIndex,
            or_(*(column.icontains(value, autoescape=True) for column in columns)),
        )
    if modifier == "exact":
        return _owned_by(PatientNameIndex, or_(*(column == value for column in columns)))
    return None


def _name_part(column):
    def criterion(modifier: str | None, value: str) -> ColumnElement[bool] | None:
        if modifier not in (None, "contains"):
            return None
        return _owned_by(PatientNameIndex, column.icontains(value, autoescape=True))

    return criterion


def _gender(modifier: str | None, value: str) -> ColumnElement[bool] | None:
    if modifier is not None:
        return None
    return PatientResource.gender == value


def _active(modifier: str | None, value: str) -> ColumnElement[bool] | None:
    if modifier is not None:
        return None
    return PatientResource.active == value


def _birth_date(modifier: str | None, value: str) -> ColumnElement[bool] | None:
    if modifier is not None and modifier not in DATE_PREFIXES:
        return None
    operator = modifier or "eq"
    if modifier is None and value[:2] in DATE_PREFIXES:
        operator, value = value[:2], value[2:]

    # YYYY-MM-DD is fixed width, so string order is date order
    if not DATE_PATTERN.fullmatch(value):
        raise InvalidResourceError(
            f"Invalid birthdate search value '{value}'", location="birthdate"
        )
    try:
        date.fromisoformat(value)
    except ValueError:
        raise InvalidResourceError(
            f"Invalid birthdate search value '{value}'", location="birthdate"
        ) from None

    if operator == "ge":
        return PatientResource.birth_date >= value
    if operator == "le":
        return PatientResource.birth_date <= value
    return PatientResource.birth_date == value


def _identifier(modifier: str | None, value: str) -> ColumnElement[bool] | None:
    if modifier is not None:
        return None
    if "|" in value:
        system, _, value = value.partition("|")
        if system:
            return _owned_by(
                PatientIdentifierIndex,
                PatientIdentifierIndex.identifier_system == system,
                PatientIdentifierIndex.identifier_value == value,
            )
    return _owned_by(PatientIdentifierIndex, PatientIdentifierIndex.identifier_value == value)


def _telecom(system: str | None):
    def criterion(modifier: str | None, value: str) -> ColumnElement[bool] | None:
        if modifier is not None:
            return None
        criteria = [PatientTelecomIndex.telecom_value == value]
        if system:
            criteria.append(PatientTelecomIndex.telecom_system == system)
        return _owned_by(PatientTelecomIndex, *criteria)

    return criterion


def _address(*columns):
    def criterion(modifier: str | None, value: str) -> ColumnElement[bool] | None:
        if modifier not in (None, "contains"):
            return None
        return _owned_by(
            PatientAddressIndex,
            or_(*(column.icontains(value, autoescape=True) for column in columns)),
        )

    return criterion


def _logical_id(modifier: str | None, value: str) -> ColumnElement[bool] | None:
    if modifier is not None:
        return None
    return PatientResource.id == parse_resource_id(value, location="_id")


# Search parameter name -> builder(modifier, value) returning a criterion,
# or None when the modifier is not supported
SEARCH_PARAMETERS = {
    "name": _name,
    "family": _name_part(PatientNameIndex.family_name),
    "given": _name_part(PatientNameIndex.given_name),
    "gender": _gender,
    "birthDate": _birth_date,
    "birthdate": _birth_date,
    "active": _active,
    "identifier": _identifier,
    "telecom": _telecom(None),
    "phone": _telecom("phone"),
    "email": _telecom("email"),
    "address": _address(
        PatientAddressIndex.city,
        PatientAddressIndex.country,
        PatientAddressIndex.postal_code,
        PatientAddressIndex.address_text,
    ),
    "address-city": _address(PatientAddressIndex.city),
    "address-country": _address(PatientAddressIndex.country),
    "address-postalcode": _address(PatientAddressIndex.postal_code),
    "_id": _logical_id,
}


class QueryEngine:
    """Runs Patient searches against the index tables."""

    def __init__(self, db: AsyncSession):
        """Initialize query engine with database session.

        Args:
            db: Async SQLAlchemy session.
        """
        self.db = db

    def build_query(
        self, resource_type: str, parameters: SearchParameters
    ) -> Select[tuple[uuid.UUID]]:
        """Build the filtered (unwindowed) identifier query.

        Parameters combine with AND; unknown parameters and unsupported
        modifiers are ignored.

        Raises:
            InvalidResourceError: If a recognized parameter has a malformed value.
        """
        criteria = [
            PatientResource.resource_type == resource_type,
            PatientResource.status == STATUS_CREATED,
        ]
        for name, modifier, value in _split(parameters):
            builder = SEARCH_PARAMETERS.get(name)
            if builder is None:
                logger.debug("Ignoring unknown search parameter %r", name)
                continue
            criterion = builder(modifier, value)
            if criterion is None:
                logger.debug("Ignoring unsupported modifier %s:%s", name, modifier)
                continue
            criteria.append(criterion)

        return select(PatientResource.id).where(and_(*criteria))

    async def search(
        self,
        resource_type: str,
        parameters: SearchParameters,
        limit: int | None = None,
        offset: int | None = None,
    ) -> tuple[list[uuid.UUID], int]:
        """Search for matching documents.

        Args:
            resource_type: Resource type to search.
            parameters: Search parameters as a mapping or (name, value) pairs.
                Repeated names are all applied.
            limit: Page size; defaults to 20, capped at 100.
            offset: Number of matches to skip.

        Returns:
            Tuple of (identifiers on this page ordered ascending, total matches).
        """
        limit, offset = clamp_page(limit, offset)
        query = self.build_query(resource_type, parameters)

        # Count and page share one filtered query so they cannot disagree
        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        result = await self.db.execute(
            query.order_by(PatientResource.id).offset(offset).limit(limit)
        )
        ids = list(result.scalars().all())
        return ids, total or 0
