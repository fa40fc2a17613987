"""Index family registry.

Maps each denormalized index table to the extractor that derives its rows
from a Patient document, so the maintainer can rebuild every family the
same way.
"""

from dataclasses import dataclass
from typing import Callable

from patientstore.indexing.extractors import (
    extract_addresses,
    extract_identifiers,
    extract_names,
    extract_telecoms,
)
from patientstore.models.search_index import (
    PatientAddressIndex,
    PatientIdentifierIndex,
    PatientNameIndex,
    PatientTelecomIndex,
)


@dataclass(frozen=True)
class IndexFamily:
    """Configuration for one index family.

    Args:
        name: Family name used in logs.
        model_class: Index table model; must have a ``patient_id`` column.
        extract: Function returning column mappings for a document.
    """

    name: str
    model_class: type
    extract: Callable[[dict], list[dict]]

    def rows_for(self, patient_id, data: dict) -> list[dict]:
        """Build insertable rows for ``patient_id`` from the document."""
        return [{"patient_id": patient_id, **row} for row in self.extract(data)]


INDEX_FAMILIES: tuple[IndexFamily, ...] = (
    IndexFamily("name", PatientNameIndex, extract_names),
    IndexFamily("identifier", PatientIdentifierIndex, extract_identifiers),
    IndexFamily("telecom", PatientTelecomIndex, extract_telecoms),
    IndexFamily("address", PatientAddressIndex, extract_addresses),
)
