"""Repository layer for data access.

Repositories encapsulate database operations for Patient documents, their
version history and their search index. They share the caller's session
and never commit.
"""

from patientstore.repositories.document_store import PatientStore
from patientstore.repositories.history import HistoryEntry, HistoryLog
from patientstore.repositories.query import QueryEngine
from patientstore.repositories.search_index import SearchIndexMaintainer

__all__ = [
    "HistoryEntry",
    "HistoryLog",
    "PatientStore",
    "QueryEngine",
    "SearchIndexMaintainer",
]
