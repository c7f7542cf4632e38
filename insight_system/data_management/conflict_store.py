"""Conflict storage with pair lookup for idempotent conflict creation."""

from typing import List, Optional

from insight_system.data_management.base_store import JsonPersistedStore, StorageError
from insight_system.data_management.schemas.conflict_schema import Conflict, ResolutionStatus

CONFLICTS = "conflicts"


class ConflictStore(JsonPersistedStore):
    """Storage adapter for project conflicts."""

    component = "ConflictStore"

    async def add_conflict(self, conflict: Conflict) -> Conflict:
        async with self._lock:
            collection = self._collection(conflict.project_id, CONFLICTS)
            collection[conflict.id] = conflict.model_dump(mode="json")
            self._touch(conflict.project_id)
        return conflict

    async def get_conflict(self, project_id: str, conflict_id: str) -> Optional[Conflict]:
        async with self._lock:
            data = self._storage.get(project_id, {}).get(CONFLICTS, {}).get(conflict_id)
            return Conflict.model_validate(data) if data else None

    async def update_conflict(self, conflict: Conflict) -> Conflict:
        async with self._lock:
            collection = self._storage.get(conflict.project_id, {}).get(CONFLICTS, {})
            if conflict.id not in collection:
                raise StorageError(f"conflict {conflict.id} not found in project {conflict.project_id}")
            collection[conflict.id] = conflict.model_dump(mode="json")
            self._touch(conflict.project_id)
        return conflict

    async def list_conflicts(
        self,
        project_id: str,
        status: Optional[ResolutionStatus] = None,
    ) -> List[Conflict]:
        """Conflicts of a project, oldest first, optionally filtered by status."""
        async with self._lock:
            raw = list(self._storage.get(project_id, {}).get(CONFLICTS, {}).values())
        conflicts = [Conflict.model_validate(data) for data in raw]
        if status is not None:
            conflicts = [c for c in conflicts if c.resolution_status is status]
        return sorted(conflicts, key=lambda c: c.created_at)

    async def pending_for_fact(self, project_id: str, fact_id: str) -> List[Conflict]:
        """Pending conflicts naming fact_id on either side, oldest first."""
        pending = await self.list_conflicts(project_id, ResolutionStatus.PENDING)
        return [c for c in pending if fact_id in c.pair]

    async def find_between(self, project_id: str, fact_a_id: str, fact_b_id: str) -> Optional[Conflict]:
        """Any conflict (in any state) recorded between the two facts, in either order."""
        pair = frozenset((fact_a_id, fact_b_id))
        for conflict in await self.list_conflicts(project_id):
            if conflict.pair == pair:
                return conflict
        return None
