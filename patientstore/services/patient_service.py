"""Patient resource service.

Composes the document store, history log and query engine into the
operations the HTTP layer exposes. Each operation is one unit of work:
committed on success, rolled back on any failure.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from patientstore.constants import RESOURCE_TYPE
from patientstore.errors import InternalStoreError, PatientStoreError, ResourceNotFoundError
from patientstore.repositories import (
    HistoryEntry,
    HistoryLog,
    PatientStore,
    QueryEngine,
    SearchIndexMaintainer,
)
from patientstore.repositories.query import SearchParameters, clamp_page

logger = logging.getLogger(__name__)


@dataclass
class SearchPage:
    """One page of search results.

    ``count`` and ``offset`` are the window actually applied after defaults
    and the page-size cap.
    """

    entries: list[dict]
    total: int
    count: int
    offset: int


class PatientService:
    """Facade over Patient persistence for a single session."""

    def __init__(self, db: AsyncSession, resource_type: str = RESOURCE_TYPE):
        self.db = db
        self.resource_type = resource_type
        self.history_log = HistoryLog(db)
        self.store = PatientStore(db, self.history_log, SearchIndexMaintainer(db))
        self.query = QueryEngine(db)

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        """Commit on success; roll back and surface a store error otherwise."""
        try:
            yield
            await self.db.commit()
        except PatientStoreError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Database error during %s operation", self.resource_type)
            raise InternalStoreError("Database operation failed") from e

    def _not_found(self, resource_id: uuid.UUID) -> ResourceNotFoundError:
        return ResourceNotFoundError(
            f"{self.resource_type} with ID {resource_id} not found",
            location=f"{self.resource_type}/{resource_id}",
        )

    async def create(self, document: dict) -> dict:
        """Store a document, generating its identifier if absent.

        Returns:
            The stored document with version metadata.
        """
        async with self._unit_of_work():
            resource_id = await self.store.put(self.resource_type, document)
            created = await self.store.get(self.resource_type, resource_id)
        return created

    async def read(self, resource_id: uuid.UUID) -> dict:
        """Read the current document.

        Raises:
            ResourceNotFoundError: If absent or soft-deleted.
        """
        async with self._unit_of_work():
            document = await self.store.get(self.resource_type, resource_id)
        if document is None:
            raise self._not_found(resource_id)
        return document

    async def update(self, resource_id: uuid.UUID, document: dict) -> dict:
        """Replace an existing document.

        Raises:
            InvalidResourceError: If the body is malformed or its id mismatches.
            ResourceNotFoundError: If absent or soft-deleted.
        """
        async with self._unit_of_work():
            await self.store.update(self.resource_type, resource_id, document)
            updated = await self.store.get(self.resource_type, resource_id)
        return updated

    async def delete(self, resource_id: uuid.UUID) -> None:
        """Soft-delete a document.

        Raises:
            ResourceNotFoundError: If absent or already deleted.
        """
        async with self._unit_of_work():
            if not await self.store.delete(resource_id):
                raise self._not_found(resource_id)

    async def search(
        self,
        parameters: SearchParameters,
        count: int | None = None,
        offset: int | None = None,
    ) -> SearchPage:
        """Search and materialize one page of documents.

        Args:
            parameters: Search parameters as a mapping or (name, value) pairs.
            count: Requested page size.
            offset: Number of matches to skip.

        Returns:
            SearchPage with documents ordered by identifier.
        """
        count, offset = clamp_page(count, offset)
        async with self._unit_of_work():
            ids, total = await self.query.search(
                self.resource_type, parameters, limit=count, offset=offset
            )
            entries = await self.store.get_many(self.resource_type, ids)
        return SearchPage(entries=entries, total=total, count=count, offset=offset)

    async def history(self, resource_id: uuid.UUID) -> list[HistoryEntry]:
        """List all versions of a document, newest first.

        Soft-deleted documents keep answering.

        Raises:
            ResourceNotFoundError: If the identifier was never stored.
        """
        async with self._unit_of_work():
            entries = await self.history_log.list(resource_id)
        if not entries:
            raise self._not_found(resource_id)
        return entries

    async def read_version(self, resource_id: uuid.UUID, version_id: int) -> HistoryEntry:
        """Read one specific version of a document.

        Raises:
            ResourceNotFoundError: If that version does not exist.
        """
        async with self._unit_of_work():
            entry = await self.history_log.get_version(resource_id, version_id)
        if entry is None:
            raise ResourceNotFoundError(
                f"{self.resource_type} with ID {resource_id} has no version {version_id}",
                location=f"{self.resource_type}/{resource_id}/_history/{version_id}",
            )
        return entry
