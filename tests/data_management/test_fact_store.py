"""Tests for FactStore: insertion, lookup, soft deletion and persistence."""

from datetime import timedelta

import pytest

from insight_system.data_management.base_store import StorageError
from insight_system.data_management.fact_store import FactStore
from insight_system.data_management.schemas.fact_schema import Fact, utc_now


def _fact(statement="50 MWac", project="proj-1", key="capacity", offset=0, **kwargs) -> Fact:
    return Fact(
        project_id=project,
        canonical_key=key,
        category="Technical_Design",
        statement=statement,
        confidence=80,
        source_document_ids=["doc-1"],
        created_at=utc_now() + timedelta(seconds=offset),
        **kwargs,
    )


@pytest.fixture
def store():
    return FactStore()


class TestAddAndGet:
    @pytest.mark.asyncio
    async def test_add_facts_skips_existing_ids(self, store):
        fact = _fact()

        first = await store.add_facts([fact])
        second = await store.add_facts([fact, _fact("62 MWp")])

        assert first == {"saved": 1, "skipped": 0}
        assert second == {"saved": 1, "skipped": 1}

    @pytest.mark.asyncio
    async def test_get_is_project_scoped(self, store):
        fact = await store.add_fact(_fact())

        assert (await store.get_fact("proj-1", fact.id)).statement == "50 MWac"
        assert await store.get_fact("proj-2", fact.id) is None
        assert await store.get_fact("proj-1", "missing") is None


class TestListing:
    @pytest.mark.asyncio
    async def test_oldest_first(self, store):
        newer = _fact("second", offset=10)
        older = _fact("first", offset=0)
        await store.add_facts([newer, older])

        assert [f.statement for f in await store.list_facts("proj-1")] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_live_facts_by_key(self, store):
        await store.add_facts([_fact("50 MWac"), _fact("COD 2025", key="cod"), _fact("60 MWac", offset=1)])

        facts = await store.live_facts_by_key("proj-1", "capacity")

        assert [f.statement for f in facts] == ["50 MWac", "60 MWac"]


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update_replaces_and_touches(self, store):
        fact = await store.add_fact(_fact())

        updated = await store.update_fact(fact.model_copy(update={"statement": "52 MWac"}))

        assert updated.updated_at >= fact.updated_at
        assert (await store.get_fact("proj-1", fact.id)).statement == "52 MWac"

    @pytest.mark.asyncio
    async def test_update_unknown_raises(self, store):
        with pytest.raises(StorageError):
            await store.update_fact(_fact())

    @pytest.mark.asyncio
    async def test_soft_delete_keeps_record(self, store):
        fact = await store.add_fact(_fact())

        deleted = await store.soft_delete("proj-1", fact.id)
        again = await store.soft_delete("proj-1", fact.id)

        assert deleted.deleted_at is not None
        assert again.deleted_at == deleted.deleted_at
        assert await store.list_facts("proj-1") == []
        assert len(await store.list_facts("proj-1", include_deleted=True)) == 1

    @pytest.mark.asyncio
    async def test_soft_delete_unknown_raises(self, store):
        with pytest.raises(StorageError):
            await store.soft_delete("proj-1", "missing")

    @pytest.mark.asyncio
    async def test_stats(self, store):
        await store.add_fact(_fact("50 MWac", conflict_id="c-1"))
        await store.add_fact(_fact("COD 2025", key="cod"))
        b = await store.add_fact(_fact("60 MWac"))
        await store.soft_delete("proj-1", b.id)

        stats = await store.get_stats("proj-1")

        assert stats["total_facts"] == 3
        assert stats["live_facts"] == 2
        assert stats["deleted_facts"] == 1
        assert stats["canonical_keys"] == 2
        assert stats["in_conflict"] == 1


class TestPersistence:
    @pytest.mark.asyncio
    async def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "facts.json"
        store = FactStore(str(path))
        fact = await store.add_fact(_fact())

        reloaded = FactStore(str(path))

        assert (await reloaded.get_fact("proj-1", fact.id)) == fact
        assert await reloaded.list_projects() == ["proj-1"]

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "facts.json"
        path.write_text("{not json")

        with pytest.raises(StorageError):
            FactStore(str(path))

    @pytest.mark.asyncio
    async def test_delete_project(self, store):
        await store.add_fact(_fact())

        assert await store.delete_project("proj-1") is True
        assert await store.delete_project("proj-1") is False
        assert await store.list_facts("proj-1") == []
