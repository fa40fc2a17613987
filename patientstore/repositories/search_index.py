"""Search index maintainer.

Keeps the denormalized index tables in step with the document body. Each
family is fully replaced on every write (delete, then re-insert from the
current body) inside the caller's transaction.
"""

import logging
import uuid

from sqlalchemy import delete, insert
from sqlalchemy.ext.asyncio import AsyncSession

from patientstore.indexing.registry import INDEX_FAMILIES, IndexFamily

logger = logging.getLogger(__name__)


class SearchIndexMaintainer:
    """Rebuilds index families for a Patient document."""

    def __init__(self, db: AsyncSession, families: tuple[IndexFamily, ...] = INDEX_FAMILIES):
        self.db = db
        self.families = families

    async def rebuild(self, patient_id: uuid.UUID, data: dict) -> dict[str, int]:
        """Replace every index family entry owned by ``patient_id``.

        Args:
            patient_id: Owning document identifier.
            data: Current document body.

        Returns:
            Number of rows written per family.
        """
        written: dict[str, int] = {}
        for family in self.families:
            model = family.model_class
            await self.db.execute(delete(model).where(model.patient_id == patient_id))

            rows = family.rows_for(patient_id, data)
            if rows:
                await self.db.execute(insert(model), rows)
            written[family.name] = len(rows)

        logger.debug("Rebuilt search index for Patient/%s: %s", patient_id, written)
        return written
