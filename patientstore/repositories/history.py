"""Patient history log.

Append-only record of every prior version of a Patient document. Entries
are written by the document store as part of each write; callers never
create them directly.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from patientstore.constants import BASE_VERSION, STATUS_DELETED
from patientstore.errors import HistoryIntegrityError
from patientstore.models.patient import PatientHistory, PatientResource
from patientstore.utils.fhir_helpers import with_meta

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """One version of a Patient document."""

    version_id: int
    resource: dict
    ts: datetime
    status: str

    @property
    def method(self) -> str:
        """HTTP method that produced this version."""
        if self.status == STATUS_DELETED:
            return "DELETE"
        if self.version_id == BASE_VERSION:
            return "POST"
        return "PUT"


def _entry(row: PatientResource | PatientHistory) -> HistoryEntry:
    return HistoryEntry(
        version_id=row.version_id,
        resource=with_meta(row.resource, row.version_id, row.ts),
        ts=row.ts,
        status=row.status,
    )


class HistoryLog:
    """Repository for the patient_history table."""

    def __init__(self, db: AsyncSession):
        """Initialize history log with database session.

        Args:
            db: Async SQLAlchemy session.
        """
        self.db = db

    async def append(
        self,
        resource_id: uuid.UUID,
        resource: dict,
        txid: int,
        ts: datetime,
        status: str,
    ) -> int:
        """Archive a version of a document.

        The version number is the highest archived version plus one, or the
        base version when nothing has been archived yet. Existing rows are
        never touched.

        Args:
            resource_id: Logical identifier of the document.
            resource: Document body of the archived version.
            txid: Transaction marker of the archived version.
            ts: Timestamp of the archived version.
            status: Status the document had at that version.

        Returns:
            The version number assigned to the archived row.
        """
        latest = await self.db.scalar(
            select(func.max(PatientHistory.version_id)).where(
                PatientHistory.id == resource_id
            )
        )
        version_id = BASE_VERSION if latest is None else latest + 1

        self.db.add(
            PatientHistory(
                id=resource_id,
                version_id=version_id,
                resource=resource,
                txid=txid,
                ts=ts,
                status=status,
            )
        )
        await self.db.flush()
        logger.debug("Archived Patient/%s version %d", resource_id, version_id)
        return version_id

    async def list(self, resource_id: uuid.UUID) -> list[HistoryEntry]:
        """List every version of a document, newest first.

        The current row is reported as the highest version, followed by the
        archived rows. Soft-deleted documents keep their full history.

        Args:
            resource_id: Logical identifier of the document.

        Returns:
            History entries ordered by version descending; empty if the
            identifier was never stored.

        Raises:
            HistoryIntegrityError: If version numbers are not gapless.
        """
        current = await self.db.scalar(
            select(PatientResource).where(PatientResource.id == resource_id)
        )
        if current is None:
            return []

        result = await self.db.execute(
            select(PatientHistory)
            .where(PatientHistory.id == resource_id)
            .order_by(PatientHistory.version_id.desc())
        )
        entries = [_entry(current)] + [_entry(row) for row in result.scalars().all()]

        versions = [entry.version_id for entry in entries]
        expected = list(range(current.version_id, BASE_VERSION - 1, -1))
        if versions != expected:
            logger.error(
                "Version history for Patient/%s is not gapless: %s", resource_id, versions
            )
            raise HistoryIntegrityError(
                f"Version history for Patient/{resource_id} is inconsistent"
            )
        return entries

    async def get_version(
        self, resource_id: uuid.UUID, version_id: int
    ) -> HistoryEntry | None:
        """Get a single version of a document.

        Args:
            resource_id: Logical identifier of the document.
            version_id: Version number to fetch.

        Returns:
            The entry if that version exists, None otherwise.
        """
        current = await self.db.scalar(
            select(PatientResource).where(PatientResource.id == resource_id)
        )
        if current is None:
            return None
        if current.version_id == version_id:
            return _entry(current)

        archived = await self.db.get(PatientHistory, (resource_id, version_id))
        return _entry(archived) if archived else None
