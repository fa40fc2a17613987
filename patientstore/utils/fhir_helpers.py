"""Shared FHIR document utilities.

Helpers for turning stored rows into caller-facing documents. All
functions are pure and never mutate their inputs.
"""

import copy
import uuid
from datetime import datetime, timezone
from typing import Any

from patientstore.errors import InvalidResourceError

# meta elements owned by the server; caller-supplied values are discarded
SERVER_META_KEYS = ("versionId", "lastUpdated")


def format_instant(ts: datetime) -> str:
    """Format a timestamp as an ISO-8601 UTC instant.

    Naive values (SQLite drops the offset) are taken to be UTC.

    Args:
        ts: Row timestamp.

    Returns:
        ISO-8601 string with an explicit +00:00 offset.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()


def parse_resource_id(value: Any, location: str = "id") -> uuid.UUID:
    """Parse a logical identifier.

    Args:
        value: Identifier as supplied by the caller.
        location: Field path reported when the value is malformed.

    Returns:
        The identifier as a UUID.

    Raises:
        InvalidResourceError: If the value is not a UUID string.
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidResourceError(
            f"Resource id '{value}' is not a valid UUID", location=location
        ) from None


def normalize_document(resource_type: str, resource_id: uuid.UUID, data: dict) -> dict:
    """Return a copy of ``data`` whose id and resourceType match the row.

    Server-owned meta elements are dropped; an emptied meta is removed.
    """
    body = copy.deepcopy(data)
    body["resourceType"] = resource_type
    body["id"] = str(resource_id)

    meta = body.get("meta")
    if isinstance(meta, dict):
        for key in SERVER_META_KEYS:
            meta.pop(key, None)
        if not meta:
            del body["meta"]
    return body


def with_meta(resource: dict, version_id: int, ts: datetime) -> dict:
    """Return a copy of a stored body with versionId/lastUpdated meta."""
    document = copy.deepcopy(resource)
    meta = document.get("meta") if isinstance(document.get("meta"), dict) else {}
    meta["versionId"] = str(version_id)
    meta["lastUpdated"] = format_instant(ts)
    document["meta"] = meta
    return document
