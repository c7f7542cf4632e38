"""Data management package.

Provides storage adapters and schemas for:
- Facts - reconciled, soft-deletable project facts
- Conflicts - disagreements between facts and their resolutions
- Records - documents, narratives, structured records, weather files, jobs

Components use ProjectRepository; the stores behind it are in-memory with
optional JSON persistence.
"""

from insight_system.data_management.base_store import StorageError
from insight_system.data_management.conflict_store import ConflictStore
from insight_system.data_management.fact_store import FactStore
from insight_system.data_management.record_store import RecordStore
from insight_system.data_management.repository import ProjectRepository, Storage

__all__ = [
    "StorageError",
    "ConflictStore",
    "FactStore",
    "RecordStore",
    "ProjectRepository",
    "Storage",
]
