"""FHIR Bundle schemas for search and history responses."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class BundleLink(BaseModel):
    relation: str
    url: str


class BundleEntryRequest(BaseModel):
    method: str
    url: str


class BundleEntryResponse(BaseModel):
    status: str
    lastModified: str | None = None


class BundleEntry(BaseModel):
    fullUrl: str | None = None
    resource: dict[str, Any]
    request: BundleEntryRequest | None = None
    response: BundleEntryResponse | None = None


class Bundle(BaseModel):
    """Searchset or history Bundle.

    ``total`` is the size of the full matching set, independent of the
    page carried in ``entry``.
    """

    resourceType: str = "Bundle"
    type: Literal["searchset", "history"]
    total: int
    link: list[BundleLink] = Field(default_factory=list)
    entry: list[BundleEntry] = Field(default_factory=list)
