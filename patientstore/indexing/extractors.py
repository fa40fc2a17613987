"""Field extractors for Patient documents.

Pure functions that pull the searchable values out of a FHIR Patient
document. This is the only place that knows where indexed fields live in
the document body; the index maintainer and the document store both go
through these helpers.
"""

from typing import Any


def _elements(data: dict, key: str) -> list[dict]:
    """Return the object elements of a list-valued field, skipping junk."""
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [element for element in value if isinstance(element, dict)]


def _text(value: Any) -> str | None:
    """Return a non-empty string or None."""
    if isinstance(value, str) and value:
        return value
    return None


def extract_names(data: dict) -> list[dict[str, str | None]]:
    """Extract name index rows.

    Only the first given name is indexed, matching the name search
    semantics. Elements with neither family, given nor text are skipped.

    Args:
        data: FHIR Patient JSON.

    Returns:
        Column mappings for patient_name_index.
    """
    rows = []
    for name in _elements(data, "name"):
        given = name.get("given")
        first_given = _text(given[0]) if isinstance(given, list) and given else None
        row = {
            "family_name": _text(name.get("family")),
            "given_name": first_given,
            "name_text": _text(name.get("text")),
            "name_use": _text(name.get("use")),
        }
        if row["family_name"] or row["given_name"] or row["name_text"]:
            rows.append(row)
    return rows


def extract_identifiers(data: dict) -> list[dict[str, str | None]]:
    """Extract identifier index rows; elements without a value are skipped."""
    rows = []
    for identifier in _elements(data, "identifier"):
        value = _text(identifier.get("value"))
        if value is None:
            continue
        type_code = None
        identifier_type = identifier.get("type")
        if isinstance(identifier_type, dict):
            codings = identifier_type.get("coding")
            if isinstance(codings, list) and codings and isinstance(codings[0], dict):
                type_code = _text(codings[0].get("code"))
        rows.append(
            {
                "identifier_value": value,
                "identifier_type": type_code,
                "identifier_system": _text(identifier.get("system")),
            }
        )
    return rows


def extract_telecoms(data: dict) -> list[dict[str, str | None]]:
    """Extract contact point index rows; elements without a value are skipped."""
    rows = []
    for telecom in _elements(data, "telecom"):
        value = _text(telecom.get("value"))
        if value is None:
            continue
        rows.append(
            {
                "telecom_value": value,
                "telecom_system": _text(telecom.get("system")),
                "telecom_use": _text(telecom.get("use")),
            }
        )
    return rows


def extract_addresses(data: dict) -> list[dict[str, str | None]]:
    """Extract address index rows.

    Elements with no city, country or free text are skipped.
    """
    rows = []
    for address in _elements(data, "address"):
        row = {
            "city": _text(address.get("city")),
            "country": _text(address.get("country")),
            "postal_code": _text(address.get("postalCode")),
            "address_text": _text(address.get("text")),
        }
        if row["city"] or row["country"] or row["address_text"]:
            rows.append(row)
    return rows


def extract_search_columns(data: dict) -> dict[str, str | None]:
    """Extract the scalar search columns stored on the patient row.

    ``active`` is stored as its JSON spelling ("true"/"false") so that
    search can compare it as a string.
    """
    active = data.get("active")
    return {
        "gender": _text(data.get("gender")),
        "birth_date": _text(data.get("birthDate")),
        "active": ("true" if active else "false") if isinstance(active, bool) else None,
    }
