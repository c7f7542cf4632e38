"""Tests for the six-stage consolidation pipeline."""

from typing import Optional

import pytest

from insight_system.agents.insight_reconciler import ReconciliationEngine
from insight_system.agents.location_service import LocationService
from insight_system.agents.similarity_oracle import SimilarityOracle
from insight_system.data_management.schemas.project_schema import (
    ConsolidatedLocation,
    PerformanceParameters,
    WeatherFile,
)
from insight_system.pipelines.consolidation_pipeline import (
    STAGE_FAILED,
    STAGE_OK,
    STAGE_SKIPPED,
    ConsolidationPipeline,
)

PVGIS = """Latitude (decimal degrees):\t35.830
Longitude (decimal degrees):\t14.530
Elevation (m):\t40
time(UTC),T2m,G(h),Gb(n),Gd(h)
20120101:1200,14.0,500,700,100
20120601:1200,30.0,900,800,120
"""

PERFORMANCE = {
    "dc_capacity_mw": "62.5",
    "ac_capacity_mw": "50",
    "tracking_type": "single_axis",
    "latitude": "35.85",
    "longitude": "14.48",
    "site_name": "Hal Far",
}


class NoGeocoder:
    async def geocode(self, address: str) -> Optional[object]:
        return None


def _pipeline(repo, llm, events=None) -> ConsolidationPipeline:
    engine = ReconciliationEngine(
        repo,
        oracle=SimilarityOracle(llm_client=llm, timeout=5.0),
        exact_threshold=0.95,
        near_threshold=0.70,
        strategy="first_match",
    )
    return ConsolidationPipeline(
        repo,
        engine=engine,
        llm_client=llm,
        location_service=LocationService(llm, NoGeocoder()),
        progress_callback=events.append if events is not None else None,
    )


async def _seed_project(repo, make_fact):
    await make_fact("The plant is 50 MWac")
    await make_fact("The plant is 50 MWac", documents=("doc-2",))
    await make_fact("COD is 2025-06-30", key="cod", category="Dependencies")
    await make_fact("COD is 2025-09-30", documents=("doc-2",), key="cod", category="Dependencies")
    await repo.add_weather_file(WeatherFile(project_id=repo.project_id, file_name="tmy.csv", content=PVGIS))


class TestFullRun:
    @pytest.mark.asyncio
    async def test_all_stages(self, repo, make_fact, scripted_llm):
        await _seed_project(repo, make_fact)
        llm = scripted_llm(performance=PERFORMANCE)
        events = []

        report = await _pipeline(repo, llm, events).run()

        assert [s.status for s in report.stages] == [STAGE_OK] * 6
        assert not report.partial
        assert report.stage("reconciling").detail == {"comparisons": 2, "merges": 1, "conflicts": 1}

        live = await repo.live_facts()
        assert len(live) == 3
        capacity = [f for f in live if f.canonical_key == "capacity"][0]
        assert capacity.source_document_ids == ["doc-1", "doc-2"]
        assert capacity.enrichment_count == 2
        assert len(await repo.pending_conflicts()) == 1

        narratives = {n.section_key: n for n in await repo.narratives()}
        assert set(narratives) == {"Technical_Design", "Dependencies"}
        assert narratives["Dependencies"].fact_count == 2

        params = await repo.get_performance_parameters()
        assert params.dc_capacity_mw == "62.5"
        assert await repo.get_financial_data() is None

        [weather] = await repo.weather_files()
        assert weather.status == "parsed"
        assert weather.original_format == "pvgis"
        assert weather.latitude == pytest.approx(35.83)

        location = await repo.get_location()
        assert location.source == "document"
        assert (location.latitude, location.longitude) == (35.85, 14.48)
        assert location.address == "Hal Far"

        assert report.stage("validation").detail["triggered"] is True
        assert len(await repo.validation_jobs()) == 1

    @pytest.mark.asyncio
    async def test_progress_order(self, repo, make_fact, scripted_llm):
        await _seed_project(repo, make_fact)
        events = []

        await _pipeline(repo, scripted_llm(performance=PERFORMANCE), events).run()

        assert [(e.stage, e.percent) for e in events] == [
            ("starting", 0),
            ("reconciling", 10),
            ("narratives", 40),
            ("narratives", 40),
            ("narratives", 47),
            ("performance", 60),
            ("financial", 75),
            ("weather", 85),
            ("location", 90),
            ("validation", 95),
            ("complete", 100),
        ]
        percents = [e.percent for e in events]
        assert percents == sorted(percents)
        assert sum(1 for e in events if e.is_terminal) == 1

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, repo, make_fact, scripted_llm):
        await _seed_project(repo, make_fact)
        llm = scripted_llm(performance=PERFORMANCE)
        await _pipeline(repo, llm).run()
        facts_before = sorted(f.id for f in await repo.live_facts())

        report = await _pipeline(repo, llm).run()

        assert sorted(f.id for f in await repo.live_facts()) == facts_before
        assert len(await repo.conflicts()) == 1
        assert len(await repo.validation_jobs()) == 1
        assert report.stage("reconciling").detail["comparisons"] == 0
        assert report.stage("weather").status == STAGE_SKIPPED
        assert report.stage("location").status == STAGE_SKIPPED
        assert report.stage("validation").detail["reason"] == "Validation already exists"

    @pytest.mark.asyncio
    async def test_async_progress_callback(self, repo, scripted_llm):
        seen = []

        async def callback(event):
            seen.append(event.stage)

        pipeline = _pipeline(repo, scripted_llm())
        pipeline.progress_callback = callback
        await pipeline.run()

        assert seen[0] == "starting"
        assert seen[-1] == "complete"


class TestEmptyProject:
    @pytest.mark.asyncio
    async def test_stages_skip(self, repo, scripted_llm):
        events = []
        llm = scripted_llm()

        report = await _pipeline(repo, llm, events).run()

        statuses = {s.name: s.status for s in report.stages}
        assert statuses == {
            "reconciling": STAGE_SKIPPED,
            "narratives": STAGE_SKIPPED,
            "domain": STAGE_SKIPPED,
            "weather": STAGE_SKIPPED,
            "location": STAGE_SKIPPED,
            "validation": STAGE_OK,
        }
        assert llm.calls == []
        assert events[-1].stage == "complete"
        assert "financial" not in [e.stage for e in events]


class TestFailureTolerance:
    @pytest.mark.asyncio
    async def test_failed_stage_does_not_stop_run(self, repo, make_fact, scripted_llm):
        def broken_narrative(section):
            raise RuntimeError("model unavailable")

        await _seed_project(repo, make_fact)
        events = []
        llm = scripted_llm(narrative=broken_narrative, performance=PERFORMANCE)

        report = await _pipeline(repo, llm, events).run()

        assert report.failed_stages == ["narratives"]
        assert report.partial and not report.failed
        assert report.stage("narratives").error.startswith("No narrative could be generated")
        assert report.stage("domain").status == STAGE_OK
        assert report.stage("validation").status == STAGE_OK
        assert events[-1].stage == "complete"
        assert "narratives" in events[-1].message
        # performance falls back to fact statements without narratives
        assert "The plant is 50 MWac" in [u for k, u in llm.calls if k == "performance"][0]

    @pytest.mark.asyncio
    async def test_every_stage_failing_is_terminal_failure(self, scripted_llm):
        class BrokenRepository:
            project_id = "proj-broken"

            def __getattr__(self, name):
                async def fail(*args, **kwargs):
                    raise RuntimeError("storage offline")

                return fail

        events = []
        report = await _pipeline(BrokenRepository(), scripted_llm(), events).run()

        assert report.failed
        assert all(s.status == STAGE_FAILED for s in report.stages)
        assert (events[-1].stage, events[-1].percent) == ("failed", 100)
        assert report.to_dict()["status"] == "failed"


class TestReconcileStage:
    @pytest.mark.asyncio
    async def test_skipped_with_single_fact(self, repo, make_fact, scripted_llm):
        await make_fact("50 MWac")
        report = await _pipeline(repo, scripted_llm()).run()
        assert report.stage("reconciling").status == STAGE_SKIPPED

    @pytest.mark.asyncio
    async def test_same_document_pairs_not_compared(self, repo, make_fact, scripted_llm):
        await make_fact("Capacity is 50 MWac")
        await make_fact("Capacity is 60 MWac")
        await make_fact("Capacity is 70 MWac", documents=("doc-2",))

        detail = await _pipeline(repo, scripted_llm()).reconcile_insights()

        assert detail == {"comparisons": 2, "merges": 0, "conflicts": 2}

    @pytest.mark.asyncio
    async def test_newer_fact_in_conflict_is_not_merged(self, repo, make_fact, scripted_llm):
        await make_fact("Inverter is central")
        await make_fact("Inverter is string", documents=("doc-2",))
        await make_fact("Inverter is string", documents=("doc-3",))

        detail = await _pipeline(repo, scripted_llm()).reconcile_insights()

        assert detail == {"comparisons": 3, "merges": 0, "conflicts": 2}
        assert len(await repo.live_facts()) == 3

    @pytest.mark.asyncio
    async def test_near_duplicate_fuses_into_older(self, repo, make_fact, scripted_llm):
        older = await make_fact("Tracker is single-axis")
        newer = await make_fact("Single-axis tracker by Nextracker", documents=("doc-2",))
        llm = scripted_llm(similarity=lambda a, b: 80)

        await _pipeline(repo, llm).reconcile_insights()

        stored = await repo.get_fact(older.id)
        assert stored.statement == "Tracker is single-axis (Single-axis tracker by Nextracker)"
        assert stored.merged_from == [newer.id]
        assert not (await repo.get_fact(newer.id)).is_live


class TestWeatherStage:
    @pytest.mark.asyncio
    async def test_unparseable_file_marked_failed(self, repo, scripted_llm):
        await repo.add_weather_file(WeatherFile(project_id=repo.project_id, file_name="notes.csv", content="wind,speed\n1,2\n"))

        detail = await _pipeline(repo, scripted_llm()).process_weather_files()

        assert detail == {"parsed": 0, "failed": 1}
        [weather] = await repo.weather_files()
        assert weather.status == "failed"
        assert "GHI" in weather.error


class TestLocationStage:
    @pytest.mark.asyncio
    async def test_coordinates_from_facts_create_parameters(self, repo, make_fact, scripted_llm):
        await make_fact("Site is at 35.8N 14.5E", key="site_location", category="Project_Overview")
        llm = scripted_llm(location={"has_location": True, "latitude": 35.8, "longitude": 14.5, "confidence": 0.7})

        detail = await _pipeline(repo, llm).consolidate_location()

        assert detail["source"] == "document"
        assert detail["recorded"] is True
        params = await repo.get_performance_parameters()
        assert params.coordinates() == (35.8, 14.5)
        assert params.extraction_method == "location_consolidation"

    @pytest.mark.asyncio
    async def test_existing_location_fills_parameters_from_record(self, repo, make_fact, scripted_llm):
        await repo.save_location(
            ConsolidatedLocation(project_id=repo.project_id, latitude=51.5, longitude=-0.1, source="geocoded", confidence=0.8)
        )
        await repo.save_performance_parameters(PerformanceParameters(dc_capacity_mw="10"))
        await repo.add_weather_file(
            WeatherFile(project_id=repo.project_id, file_name="tmy.csv", latitude=35.83, longitude=14.53, status="parsed")
        )
        await make_fact("Site is near Cape Town", key="site_location", category="Project_Overview")
        llm = scripted_llm(location={"has_location": True, "latitude": -33.9, "longitude": 18.4, "confidence": 0.9})

        detail = await _pipeline(repo, llm).consolidate_location()

        assert detail["filled_from_record"] is True
        assert "recorded" not in detail
        assert "location" not in llm.kinds()
        location = await repo.get_location()
        params = await repo.get_performance_parameters()
        assert (location.latitude, location.longitude) == (51.5, -0.1)
        assert params.coordinates() == (51.5, -0.1)
        assert params.dc_capacity_mw == "10"

    @pytest.mark.asyncio
    async def test_existing_location_creates_parameters(self, repo, scripted_llm):
        await repo.save_location(
            ConsolidatedLocation(project_id=repo.project_id, latitude=1.0, longitude=2.0, source="weather_file", confidence=0.95)
        )

        await _pipeline(repo, scripted_llm()).consolidate_location()

        params = await repo.get_performance_parameters()
        assert params.coordinates() == (1.0, 2.0)
        assert params.extraction_method == "location_consolidation"
