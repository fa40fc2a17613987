"""Patient document store.

Single entry point for Patient persistence. Every write runs the same
ordered steps inside the caller's transaction:

    validate -> upsert -> append history -> rebuild search index

so a document, its history and its index entries always change together.
Committing or rolling back is the caller's job (see PatientService).
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from patientstore.constants import BASE_VERSION, STATUS_CREATED, STATUS_DELETED
from patientstore.errors import (
    HistoryIntegrityError,
    InternalStoreError,
    InvalidResourceError,
    ResourceNotFoundError,
)
from patientstore.indexing.extractors import extract_search_columns
from patientstore.models.patient import PatientResource
from patientstore.repositories.history import HistoryLog
from patientstore.repositories.search_index import SearchIndexMaintainer
from patientstore.schemas.patient import validate_patient_document
from patientstore.utils.fhir_helpers import normalize_document, parse_resource_id, with_meta

logger = logging.getLogger(__name__)


class PatientStore:
    """Repository for current Patient documents.

    Writes fan out to the history log and the search index maintainer;
    reads only ever see documents whose status is ``created``.
    """

    def __init__(
        self,
        db: AsyncSession,
        history: HistoryLog | None = None,
        index: SearchIndexMaintainer | None = None,
    ):
        """Initialize store with database session.

        Args:
            db: Async SQLAlchemy session.
            history: History log sharing the session.
            index: Index maintainer sharing the session.
        """
        self.db = db
        self.history = history or HistoryLog(db)
        self.index = index or SearchIndexMaintainer(db)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put(self, resource_type: str, document: dict) -> uuid.UUID:
        """Create or replace a document.

        Documents carrying an ``id`` are upserted by that identifier,
        otherwise a new identifier is generated. Replacing a soft-deleted
        document brings it back with status ``created``.

        Args:
            resource_type: Resource type the document is stored as.
            document: Full document body.

        Returns:
            The document's logical identifier.
        """
        validate_patient_document(document, resource_type)
        if document.get("id") is not None:
            resource_id = parse_resource_id(document["id"])
        else:
            resource_id = uuid.uuid4()
        body = normalize_document(resource_type, resource_id, document)

        current = await self._lock(resource_id)
        if current is None:
            if await self._insert_if_absent(resource_type, resource_id, body):
                await self.index.rebuild(resource_id, body)
                logger.info("Created Patient/%s", resource_id)
                return resource_id
            # A concurrent writer created the row first; replace its version
            current = await self._lock(resource_id)
            if current is None:
                raise InternalStoreError(f"Patient/{resource_id} vanished during upsert")

        await self._replace(current, body, STATUS_CREATED)
        return resource_id

    async def update(
        self, resource_type: str, resource_id: uuid.UUID, document: dict
    ) -> uuid.UUID:
        """Replace an existing document.

        Unlike ``put`` this never creates: the identifier must belong to a
        live (not soft-deleted) document.

        Args:
            resource_type: Resource type the document is stored as.
            resource_id: Target identifier.
            document: Full replacement body.

        Returns:
            The document's logical identifier.

        Raises:
            InvalidResourceError: If the body's id differs from the target.
            ResourceNotFoundError: If no live document has that identifier.
        """
        validate_patient_document(document, resource_type)
        body_id = document.get("id")
        if body_id is not None and parse_resource_id(body_id) != resource_id:
            raise InvalidResourceError(
                "Resource ID in URL does not match resource ID in body", location="id"
            )

        current = await self._lock(resource_id)
        if current is None or current.status != STATUS_CREATED:
            raise ResourceNotFoundError(
                f"{resource_type} with ID {resource_id} not found",
                location=f"{resource_type}/{resource_id}",
            )

        body = normalize_document(resource_type, resource_id, document)
        await self._replace(current, body, STATUS_CREATED)
        return resource_id

    async def delete(self, resource_id: uuid.UUID) -> bool:
        """Soft-delete a document.

        The row and its history stay; the new version carries status
        ``deleted`` so reads and searches no longer see it.

        Returns:
            True if a live document was deleted, False otherwise.
        """
        current = await self._lock(resource_id)
        if current is None or current.status != STATUS_CREATED:
            return False

        await self._replace(current, current.resource, STATUS_DELETED)
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, resource_type: str, resource_id: uuid.UUID) -> dict | None:
        """Get the current document.

        Soft-deleted and unknown identifiers both return None.

        Returns:
            The document with versionId/lastUpdated meta, or None.
        """
        result = await self.db.execute(
            select(PatientResource).where(
                PatientResource.id == resource_id,
                PatientResource.resource_type == resource_type,
                PatientResource.status == STATUS_CREATED,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return with_meta(row.resource, row.version_id, row.ts)

    async def get_many(
        self, resource_type: str, resource_ids: Iterable[uuid.UUID]
    ) -> list[dict]:
        """Get several current documents in one query.

        Args:
            resource_type: Resource type to fetch.
            resource_ids: Identifiers in the order the caller wants them.

        Returns:
            Documents in the order of ``resource_ids``, skipping misses.
        """
        ids = list(resource_ids)
        if not ids:
            return []

        result = await self.db.execute(
            select(PatientResource).where(
                PatientResource.id.in_(ids),
                PatientResource.resource_type == resource_type,
                PatientResource.status == STATUS_CREATED,
            )
        )
        rows = {row.id: row for row in result.scalars().all()}
        return [
            with_meta(rows[rid].resource, rows[rid].version_id, rows[rid].ts)
            for rid in ids
            if rid in rows
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _lock(self, resource_id: uuid.UUID) -> PatientResource | None:
        """Load a row for writing, holding its row lock until commit."""
        result = await self.db.execute(
            select(PatientResource)
            .where(PatientResource.id == resource_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _insert_if_absent(
        self, resource_type: str, resource_id: uuid.UUID, body: dict
    ) -> bool:
        """Insert a first version unless the identifier already exists."""
        dialect = self._dialect_name()
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = (
            insert(PatientResource)
            .values(
                id=resource_id,
                resource_type=resource_type,
                resource=body,
                version_id=BASE_VERSION,
                txid=await self._transaction_marker(),
                ts=datetime.now(timezone.utc),
                status=STATUS_CREATED,
                **extract_search_columns(body),
            )
            .on_conflict_do_nothing(index_elements=[PatientResource.id])
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def _replace(self, current: PatientResource, body: dict, status: str) -> None:
        """Archive the current version, then write the next one."""
        archived = await self.history.append(
            current.id, current.resource, current.txid, current.ts, current.status
        )
        if archived != current.version_id:
            logger.error(
                "History for Patient/%s archived version %d but row is at %d",
                current.id,
                archived,
                current.version_id,
            )
            raise HistoryIntegrityError(
                f"Version history for Patient/{current.id} is inconsistent"
            )

        current.resource = body
        current.version_id = archived + 1
        current.status = status
        current.ts = datetime.now(timezone.utc)
        current.txid = await self._transaction_marker()
        for column, value in extract_search_columns(body).items():
            setattr(current, column, value)
        await self.db.flush()

        await self.index.rebuild(current.id, body)
        logger.info(
            "Stored Patient/%s version %d (%s)", current.id, current.version_id, status
        )

    def _dialect_name(self) -> str:
        return self.db.get_bind().dialect.name

    async def _transaction_marker(self) -> int:
        """Marker shared by all writes of the current transaction.

        PostgreSQL exposes the transaction id; other dialects fall back to a
        nanosecond clock reading.
        """
        if self._dialect_name() == "postgresql":
            return await self.db.scalar(select(func.txid_current()))
        return time.time_ns()
