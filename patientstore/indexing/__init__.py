"""Search index extraction for Patient documents."""

from patientstore.indexing.registry import INDEX_FAMILIES, IndexFamily

__all__ = ["INDEX_FAMILIES", "IndexFamily"]
