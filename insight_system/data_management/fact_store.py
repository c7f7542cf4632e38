"""Fact storage with project-scoped organization and soft deletion.

Features:
- In-memory storage with optional JSON persistence
- O(1) lookup by fact_id
- Canonical-key listing of live facts, oldest first
- Soft deletion: deleted facts stay readable for audit
"""

from typing import Any, Dict, List, Optional

from insight_system.data_management.base_store import JsonPersistedStore, StorageError
from insight_system.data_management.schemas.fact_schema import Fact, utc_now

FACTS = "facts"


class FactStore(JsonPersistedStore):
    """
    Storage adapter for project facts.

    Facts are stored in insertion order; listings sort by created_at so
    "oldest first" is stable even when timestamps tie.
    """

    component = "FactStore"

    async def add_facts(self, facts: List[Fact]) -> Dict[str, int]:
        """
        Insert new facts.

        Returns:
            Dictionary with save statistics: saved, skipped (id already present)
        """
        saved = 0
        skipped = 0
        async with self._lock:
            touched = set()
            for fact in facts:
                collection = self._collection(fact.project_id, FACTS)
                if fact.id in collection:
                    self.logger.debug(f"Fact {fact.id} already exists, skipping")
                    skipped += 1
                    continue
                collection[fact.id] = fact.model_dump(mode="json")
                touched.add(fact.project_id)
                saved += 1
            for project_id in touched:
                self._touch(project_id)

        self.logger.debug("Facts saved", saved=saved, skipped=skipped)
        return {"saved": saved, "skipped": skipped}

    async def add_fact(self, fact: Fact) -> Fact:
        await self.add_facts([fact])
        return fact

    async def get_fact(self, project_id: str, fact_id: str) -> Optional[Fact]:
        async with self._lock:
            data = self._storage.get(project_id, {}).get(FACTS, {}).get(fact_id)
            return Fact.model_validate(data) if data else None

    async def update_fact(self, fact: Fact) -> Fact:
        """
        Replace a stored fact.

        Raises:
            StorageError: If the fact does not exist
        """
        async with self._lock:
            collection = self._storage.get(fact.project_id, {}).get(FACTS, {})
            if fact.id not in collection:
                raise StorageError(f"fact {fact.id} not found in project {fact.project_id}")
            updated = fact.model_copy(update={"updated_at": utc_now()})
            collection[fact.id] = updated.model_dump(mode="json")
            self._touch(fact.project_id)
            return updated

    async def soft_delete(self, project_id: str, fact_id: str) -> Fact:
        """Mark a fact deleted; returns the deleted fact."""
        fact = await self.get_fact(project_id, fact_id)
        if fact is None:
            raise StorageError(f"fact {fact_id} not found in project {project_id}")
        if not fact.is_live:
            return fact
        return await self.update_fact(fact.model_copy(update={"deleted_at": utc_now()}))

    async def list_facts(self, project_id: str, include_deleted: bool = False) -> List[Fact]:
        """All facts of a project, oldest first."""
        async with self._lock:
            raw = list(self._storage.get(project_id, {}).get(FACTS, {}).values())
        facts = [Fact.model_validate(data) for data in raw]
        if not include_deleted:
            facts = [f for f in facts if f.is_live]
        return sorted(facts, key=lambda f: f.created_at)

    async def live_facts_by_key(self, project_id: str, canonical_key: str) -> List[Fact]:
        return [f for f in await self.list_facts(project_id) if f.canonical_key == canonical_key]

    async def get_stats(self, project_id: str) -> Dict[str, Any]:
        facts = await self.list_facts(project_id, include_deleted=True)
        live = [f for f in facts if f.is_live]
        return {
            "project_id": project_id,
            "total_facts": len(facts),
            "live_facts": len(live),
            "deleted_facts": len(facts) - len(live),
            "canonical_keys": len({f.canonical_key for f in live}),
            "in_conflict": sum(1 for f in live if f.conflict_id),
        }
