"""Tests for ProjectRepository and Storage wiring."""

import pytest

from insight_system.data_management.repository import Storage
from insight_system.data_management.schemas.conflict_schema import Conflict, ResolutionStatus
from insight_system.data_management.schemas.project_schema import (
    DocumentRecord,
    FinancialData,
    PerformanceParameters,
    ValidationJob,
    WeatherFile,
)


class TestNarratives:
    @pytest.mark.asyncio
    async def test_upsert_then_revise(self, repo):
        first = await repo.upsert_narrative("Technical_Design", "Version one.", fact_count=2)
        second = await repo.upsert_narrative("Technical_Design", "Version two.", fact_count=3)

        assert first.history == []
        assert second.text == "Version two."
        assert second.fact_count == 3
        assert [r.text for r in second.history] == ["Version one."]
        assert len(await repo.narratives()) == 1

    @pytest.mark.asyncio
    async def test_same_text_adds_no_history(self, repo):
        await repo.upsert_narrative("Dependencies", "Same.")
        narrative = await repo.upsert_narrative("Dependencies", "Same.", fact_count=4)

        assert narrative.history == []
        assert narrative.fact_count == 4


class TestConflicts:
    @pytest.mark.asyncio
    async def test_find_between_either_order(self, repo):
        conflict = await repo.add_conflict(Conflict(project_id=repo.project_id, fact_a_id="a", fact_b_id="b"))

        assert (await repo.find_conflict_between("b", "a")).id == conflict.id
        assert await repo.find_conflict_between("a", "c") is None

    @pytest.mark.asyncio
    async def test_status_filter(self, repo):
        pending = await repo.add_conflict(Conflict(project_id=repo.project_id, fact_a_id="a", fact_b_id="b"))
        resolved = await repo.add_conflict(
            Conflict(project_id=repo.project_id, fact_a_id="c", fact_b_id="d", resolution_status=ResolutionStatus.IGNORE)
        )

        assert [c.id for c in await repo.pending_conflicts()] == [pending.id]
        assert [c.id for c in await repo.conflicts(ResolutionStatus.IGNORE)] == [resolved.id]
        assert len(await repo.conflicts()) == 2


class TestStructuredRecords:
    @pytest.mark.asyncio
    async def test_single_record_per_project(self, repo):
        await repo.save_performance_parameters(PerformanceParameters(dc_capacity_mw="60"))
        saved = await repo.save_performance_parameters(PerformanceParameters(dc_capacity_mw="62.5"))

        stored = await repo.get_performance_parameters()
        assert stored.dc_capacity_mw == "62.5"
        assert stored.project_id == repo.project_id == saved.project_id

    @pytest.mark.asyncio
    async def test_financial_data(self, repo):
        assert await repo.get_financial_data() is None
        await repo.save_financial_data(FinancialData(total_capex_usd="45000000"))
        assert (await repo.get_financial_data()).total_capex_usd == "45000000"

    @pytest.mark.asyncio
    async def test_documents_weather_and_jobs(self, repo):
        await repo.add_document(DocumentRecord(id="doc-1", project_id=repo.project_id, text="abc"))
        await repo.add_weather_file(WeatherFile(project_id=repo.project_id, file_name="a.csv"))
        await repo.add_weather_file(WeatherFile(project_id=repo.project_id, file_name="b.csv", is_active=False))
        await repo.add_validation_job(ValidationJob(project_id=repo.project_id))

        assert (await repo.get_document("doc-1")).text == "abc"
        assert [w.file_name for w in await repo.weather_files()] == ["a.csv"]
        assert len(await repo.weather_files(active_only=False)) == 2
        assert len(await repo.validation_jobs()) == 1


class TestStorage:
    @pytest.mark.asyncio
    async def test_repositories_share_stores_but_not_data(self, storage):
        one = storage.repository("proj-1")
        two = storage.repository("proj-2")
        await one.upsert_narrative("Technical_Design", "Only in one.")

        assert await two.narratives() == []
        assert sorted(await storage.record_store.list_projects()) == ["proj-1"]

    @pytest.mark.asyncio
    async def test_open_persists_every_store(self, tmp_path):
        repo = Storage.open(str(tmp_path)).repository("proj-1")
        await repo.upsert_narrative("Technical_Design", "Persisted.")
        await repo.add_conflict(Conflict(project_id="proj-1", fact_a_id="a", fact_b_id="b"))

        reopened = Storage.open(str(tmp_path)).repository("proj-1")

        assert (await reopened.get_narrative("Technical_Design")).text == "Persisted."
        assert len(await reopened.pending_conflicts()) == 1
        assert (tmp_path / "records.json").exists()
        assert (tmp_path / "conflicts.json").exists()

    def test_open_without_directory_is_memory_only(self):
        storage = Storage.open(None)
        assert storage.fact_store.persistence_path is None
