"""Tests for IngestionPipeline raw-insert and reconcile-on-ingest paths."""

import pytest

from insight_system.agents.insight_reconciler import ReconciliationEngine
from insight_system.agents.sifters.fact_extraction_agent import FactExtractionAgent
from insight_system.agents.similarity_oracle import SimilarityOracle
from insight_system.pipelines.ingestion_pipeline import IngestionPipeline

DOC_1 = "The Hal Far solar plant has a capacity of 50 MWac."
DOC_2 = "Installed capacity: 50 MWac. Connection at 132 kV."


def _pipeline(repo, llm, reconcile=False) -> IngestionPipeline:
    engine = ReconciliationEngine(
        repo,
        oracle=SimilarityOracle(llm_client=llm, timeout=5.0),
        exact_threshold=0.95,
        near_threshold=0.70,
    )
    return IngestionPipeline(
        repo,
        extraction_agent=FactExtractionAgent(llm_client=llm),
        engine=engine,
        reconcile_on_ingest=reconcile,
    )


class TestRawInsert:
    @pytest.mark.asyncio
    async def test_stores_document_and_facts(self, repo, scripted_llm):
        llm = scripted_llm()

        stats = await _pipeline(repo, llm).process_document("doc-1", DOC_1, "FEASIBILITY_STUDY", "study.pdf")

        facts = await repo.live_facts()
        assert stats.candidates == len(facts) == stats.inserted
        assert stats.failed_passes == []
        assert {f.canonical_key for f in facts} >= {"capacity", "technology_type"}
        assert all(f.source_document_ids == ["doc-1"] for f in facts)
        document = await repo.get_document("doc-1")
        assert document.file_name == "study.pdf"
        assert document.document_type == "FEASIBILITY_STUDY"
        assert document.fact_count == stats.inserted
        assert llm.kinds() == ["extraction"] * 4

    @pytest.mark.asyncio
    async def test_raw_insert_does_not_reconcile(self, repo, scripted_llm):
        llm = scripted_llm()
        pipeline = _pipeline(repo, llm)

        await pipeline.process_document("doc-1", DOC_1)
        await pipeline.process_document("doc-2", DOC_2)

        capacity = [f for f in await repo.live_facts() if f.canonical_key == "capacity"]
        assert len(capacity) == 2
        assert "similarity" not in llm.kinds()

    @pytest.mark.asyncio
    async def test_reingesting_document_is_skipped(self, repo, scripted_llm):
        llm = scripted_llm()
        pipeline = _pipeline(repo, llm)

        first = await pipeline.process_document("doc-1", DOC_1)
        count = len(await repo.live_facts())
        second = await pipeline.process_document("doc-1", DOC_1)

        assert first.skipped is False
        assert second.skipped is True
        assert second.inserted == 0
        assert len(await repo.live_facts()) == count
        assert llm.kinds() == ["extraction"] * 4
        assert (await repo.get_document("doc-1")).fact_count == first.inserted

    @pytest.mark.asyncio
    async def test_failed_passes_reported(self, repo):
        class DownLLM:
            async def complete(self, messages, json_mode=False, temperature=0.2):
                raise RuntimeError("quota")

        stats = await _pipeline(repo, DownLLM()).process_document("doc-1", DOC_1)

        assert sorted(stats.failed_passes) == ["assumptions", "relationships", "risks", "structured"]
        assert stats.inserted > 0
        assert stats.to_dict()["document_id"] == "doc-1"


class TestReconcileOnIngest:
    @pytest.mark.asyncio
    async def test_second_document_enriches(self, repo, scripted_llm):
        pipeline = _pipeline(repo, scripted_llm(), reconcile=True)

        await pipeline.process_document("doc-1", DOC_1)
        stats = await pipeline.process_document("doc-2", DOC_2)

        capacity = [f for f in await repo.live_facts() if f.canonical_key == "capacity"]
        assert len(capacity) == 1
        assert capacity[0].source_document_ids == ["doc-1", "doc-2"]
        assert stats.updated >= 1
        assert stats.conflicts == 0

    @pytest.mark.asyncio
    async def test_contradiction_counted(self, repo, scripted_llm):
        pipeline = _pipeline(repo, scripted_llm(), reconcile=True)

        await pipeline.process_document("doc-1", "Capacity of 50 MWac.")
        stats = await pipeline.process_document("doc-2", "Capacity of 45 MWac.")

        assert stats.conflicts == 1
        assert stats.inserted == 1
        assert len(await repo.pending_conflicts()) == 1
