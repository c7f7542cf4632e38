"""Storage for per-project records other than facts and conflicts.

Collections: documents, narratives (keyed by section), structured records
(performance parameters, financial data, location; one record each),
weather files and validation jobs.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from insight_system.data_management.base_store import JsonPersistedStore

M = TypeVar("M", bound=BaseModel)


class RecordStore(JsonPersistedStore):
    """Typed record storage keyed by (project, collection, record id)."""

    component = "RecordStore"

    async def put(self, project_id: str, collection: str, record_id: str, record: BaseModel) -> None:
        """Insert or overwrite one record."""
        async with self._lock:
            self._collection(project_id, collection)[record_id] = record.model_dump(mode="json")
            self._touch(project_id)

    async def get(
        self,
        project_id: str,
        collection: str,
        record_id: str,
        model: Type[M],
    ) -> Optional[M]:
        async with self._lock:
            data = self._storage.get(project_id, {}).get(collection, {}).get(record_id)
        return model.model_validate(data) if data else None

    async def list(self, project_id: str, collection: str, model: Type[M]) -> List[M]:
        """Records of a collection in insertion order."""
        async with self._lock:
            raw: List[Dict[str, Any]] = list(self._storage.get(project_id, {}).get(collection, {}).values())
        return [model.model_validate(data) for data in raw]

    async def count(self, project_id: str, collection: str) -> int:
        async with self._lock:
            return len(self._storage.get(project_id, {}).get(collection, {}))
