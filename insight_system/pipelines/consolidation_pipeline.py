"""Consolidation pipeline: the on-demand, per-project batch.

Stages, strictly in order:
1. reconciling  (10)      cross-document reconciliation of live facts
2. narratives   (40-55)   one synthesized narrative per canonical section
3. domain       (60, 75)  performance parameters, then financial data
4. weather      (85)      parse uploaded weather files
5. location     (90)      rank candidate locations and record the winner
6. validation   (95)      readiness check and one-shot job creation

Each stage tolerates failure on its own: an exception is caught, logged as
a stage_failed event, and the next stage still runs. A stage with nothing
to work on is reported as skipped. The run ends with a terminal
"complete" (100) event, or "failed" when no stage succeeded.
"""

import inspect
import math
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from insight_system.agents.domain_extractor import PerformanceFinancialExtractor
from insight_system.agents.insight_reconciler import ReconciliationEngine, UpdateDecision
from insight_system.agents.location_service import LocationService
from insight_system.config.prompts.consolidation_prompts import (
    NARRATIVE_SYSTEM_PROMPT,
    NARRATIVE_USER_PROMPT,
)
from insight_system.config.sections import (
    CANONICAL_SECTIONS,
    OTHER,
    get_section_display_name,
    normalize_section,
)
from insight_system.data_management.repository import ProjectRepository
from insight_system.data_management.schemas.fact_schema import Fact
from insight_system.data_management.schemas.project_schema import (
    ConsolidatedLocation,
    LocationSource,
    PerformanceParameters,
    ProgressEvent,
)
from insight_system.llm.payloads import ChatMessage
from insight_system.parsers.weather_file import WeatherParseError, parse_weather_file
from insight_system.pipelines.validation_trigger import ValidationTrigger
from insight_system.utils.logging import get_structured_logger, new_run_id, run_context

ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]

STAGE_OK = "ok"
STAGE_FAILED = "failed"
STAGE_SKIPPED = "skipped"

WEATHER_FILE_CONFIDENCE = 0.95
PERFORMANCE_LOCATION_CONFIDENCE = 0.85
LOCATION_FACT_LIMIT = 100
DEFAULT_DOCUMENT_TYPE = "FEASIBILITY_STUDY"


class StageSkipped(Exception):
    """Raised by a stage that has nothing to work on."""


@dataclass
class StageResult:
    name: str
    status: str
    detail: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "detail": dict(self.detail),
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass
class ConsolidationReport:
    """Per-stage outcome of one consolidation run."""

    project_id: str
    run_id: str
    stages: List[StageResult] = field(default_factory=list)

    @property
    def failed_stages(self) -> List[str]:
        return [s.name for s in self.stages if s.status == STAGE_FAILED]

    @property
    def partial(self) -> bool:
        return bool(self.failed_stages)

    @property
    def failed(self) -> bool:
        return bool(self.stages) and all(s.status == STAGE_FAILED for s in self.stages)

    def stage(self, name: str) -> Optional[StageResult]:
        for result in self.stages:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "run_id": self.run_id,
            "status": "failed" if self.failed else "complete",
            "partial": self.partial,
            "failed_stages": self.failed_stages,
            "stages": [s.to_dict() for s in self.stages],
        }


class ConsolidationPipeline:
    """
    Runs the six consolidation stages for one project.

    Usage:
        pipeline = ConsolidationPipeline(repo, progress_callback=print)
        report = await pipeline.run()
        if report.partial:
            print(report.failed_stages)

    Attributes:
        repository: Project-scoped storage
        engine: ReconciliationEngine used by stage 1
        extractor: Performance/financial extractor used by stage 3
        location_service: Location extraction and ranking used by stage 5
        trigger: Readiness check used by stage 6
    """

    def __init__(
        self,
        repository: ProjectRepository,
        engine: Optional[ReconciliationEngine] = None,
        llm_client: Optional[Any] = None,
        extractor: Optional[PerformanceFinancialExtractor] = None,
        location_service: Optional[LocationService] = None,
        trigger: Optional[ValidationTrigger] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.repository = repository
        self._llm_client = llm_client
        self.engine = engine or ReconciliationEngine(repository)
        self.extractor = extractor or PerformanceFinancialExtractor(llm_client)
        self.location_service = location_service or LocationService(llm_client)
        self.trigger = trigger or ValidationTrigger(repository)
        self.progress_callback = progress_callback
        self.run_id = new_run_id()
        self._logger = get_structured_logger("consolidation")

    @property
    def llm_client(self):
        if self._llm_client is None:
            from insight_system.llm.gemini_client import get_llm_client

            self._llm_client = get_llm_client()
        return self._llm_client

    async def _emit(self, stage: str, percent: int, message: str) -> None:
        event = ProgressEvent(stage=stage, percent=percent, message=message)
        self._logger.info("progress", stage=stage, percent=percent, message=message)
        if self.progress_callback is None:
            return
        result = self.progress_callback(event)
        if inspect.isawaitable(result):
            await result

    async def run(self) -> ConsolidationReport:
        """
        Run every stage in order.

        Returns:
            ConsolidationReport listing each stage as ok, failed or skipped
        """
        with run_context(self.run_id, self.repository.project_id):
            return await self._run_stages()

    async def _run_stages(self) -> ConsolidationReport:
        report = ConsolidationReport(project_id=self.repository.project_id, run_id=self.run_id)
        await self._emit("starting", 0, "Starting consolidation...")

        stages = (
            ("reconciling", 10, "Reconciling insights...", self.reconcile_insights),
            ("narratives", 40, "Generating narratives...", self.generate_narratives),
            ("domain", 60, "Extracting performance parameters...", self.extract_domain_records),
            ("weather", 85, "Processing weather files...", self.process_weather_files),
            ("location", 90, "Consolidating project location...", self.consolidate_location),
            ("validation", 95, "Checking validation readiness...", self.check_validation_trigger),
        )

        for name, percent, message, stage in stages:
            # the domain stage reports its first checkpoint as "performance"
            await self._emit("performance" if name == "domain" else name, percent, message)
            report.stages.append(await self._run_stage(name, stage))

        if report.failed:
            await self._emit("failed", 100, "Consolidation failed: every stage failed")
        elif report.partial:
            await self._emit(
                "complete", 100, f"Consolidation complete with failed stages: {', '.join(report.failed_stages)}"
            )
        else:
            await self._emit("complete", 100, "Consolidation complete!")

        self._logger.info("consolidation_finished", **report.to_dict())
        return report

    async def _run_stage(
        self,
        name: str,
        stage: Callable[[], Awaitable[Dict[str, Any]]],
    ) -> StageResult:
        started = time.monotonic()
        try:
            detail = await stage()
            result = StageResult(name=name, status=STAGE_OK, detail=detail or {})
        except StageSkipped as e:
            self._logger.info("stage_skipped", stage=name, reason=str(e))
            result = StageResult(name=name, status=STAGE_SKIPPED, detail={"reason": str(e)})
        except Exception as e:
            self._logger.error("stage_failed", stage=name, error=str(e), exc_info=True)
            result = StageResult(name=name, status=STAGE_FAILED, error=str(e))
        result.duration_ms = int((time.monotonic() - started) * 1000)
        return result

    # ------------------------------------------------------------------
    # Stage 1: reconciliation
    # ------------------------------------------------------------------

    async def reconcile_insights(self) -> Dict[str, Any]:
        """
        Compare live facts sharing a canonical key across documents.

        Pairs are compared oldest first, the newer fact acting as the
        candidate. Duplicates and near duplicates enrich the older fact and
        soft-delete the newer one; contradictions open a conflict. Pairs
        sharing a source document, or already in a conflict, are skipped.
        """
        facts = await self.repository.live_facts()
        if len(facts) < 2:
            raise StageSkipped("Not enough facts to reconcile (need at least 2)")

        facts_by_key: Dict[str, List[Fact]] = defaultdict(list)
        for fact in facts:
            facts_by_key[fact.canonical_key].append(fact)

        merges = 0
        conflicts = 0
        comparisons = 0
        removed: set[str] = set()

        for key, key_facts in facts_by_key.items():
            if len(key_facts) < 2:
                continue
            documents = {doc for f in key_facts for doc in f.source_document_ids}
            if len(documents) < 2:
                continue

            for i in range(len(key_facts) - 1):
                for j in range(i + 1, len(key_facts)):
                    if key_facts[i].id in removed or key_facts[j].id in removed:
                        continue

                    # re-read both sides: earlier pairs may have enriched or linked them
                    older = await self.repository.get_fact(key_facts[i].id)
                    newer = await self.repository.get_fact(key_facts[j].id)
                    if older is None or newer is None or not (older.is_live and newer.is_live):
                        continue
                    if older.shares_source_with(newer):
                        continue
                    if await self.repository.find_conflict_between(older.id, newer.id):
                        continue

                    comparisons += 1
                    decision = await self.engine.compare_facts(older, newer)

                    if isinstance(decision, UpdateDecision):
                        if await self._has_pending_conflict(newer):
                            continue
                        await self.engine.enrich(
                            older,
                            decision.merged_value,
                            decision.new_confidence,
                            newer.source_document_ids,
                            merged_from=newer.id,
                        )
                        await self.repository.soft_delete_fact(newer.id)
                        removed.add(newer.id)
                        merges += 1
                    else:
                        await self.engine.ledger.open_conflict(older, newer)
                        conflicts += 1

        self._logger.info(
            "reconciliation_complete", comparisons=comparisons, merges=merges, conflicts=conflicts
        )
        return {"comparisons": comparisons, "merges": merges, "conflicts": conflicts}

    async def _has_pending_conflict(self, fact: Fact) -> bool:
        return bool(await self.repository.pending_conflicts_for(fact.id))

    # ------------------------------------------------------------------
    # Stage 2: narratives
    # ------------------------------------------------------------------

    async def generate_narratives(self) -> Dict[str, Any]:
        """Synthesize and upsert one narrative per non-empty section other than Other."""
        facts = await self.repository.live_facts()

        facts_by_section: Dict[str, List[Fact]] = defaultdict(list)
        for fact in facts:
            facts_by_section[normalize_section(fact.category)].append(fact)

        sections = [s for s in CANONICAL_SECTIONS if s != OTHER and facts_by_section.get(s)]
        if not sections:
            raise StageSkipped("No categorized facts to narrate")

        generated = 0
        failed = []
        total = len(sections)
        for i, section in enumerate(sections):
            display_name = get_section_display_name(section)
            section_facts = facts_by_section[section]
            await self._emit(
                "narratives",
                40 + math.floor(i / total * 15),
                f"Generating narrative for {display_name} ({i + 1}/{total})...",
            )

            facts_text = "\n".join(f"{n}. {f.statement}" for n, f in enumerate(section_facts, start=1))
            messages = [
                ChatMessage(role="system", content=NARRATIVE_SYSTEM_PROMPT),
                ChatMessage(
                    role="user",
                    content=NARRATIVE_USER_PROMPT.format(section_name=display_name, facts_text=facts_text),
                ),
            ]
            try:
                response = await self.llm_client.complete(messages)
            except Exception as e:
                self._logger.warning("narrative_failed", section=section, error=str(e))
                failed.append(section)
                continue

            text = (response or "").strip()
            if not text:
                failed.append(section)
                continue

            await self.repository.upsert_narrative(section, text, fact_count=len(section_facts))
            generated += 1

        if generated == 0:
            raise RuntimeError(f"No narrative could be generated ({len(failed)} sections failed)")
        return {"generated": generated, "failed_sections": failed}

    # ------------------------------------------------------------------
    # Stage 3: domain extraction
    # ------------------------------------------------------------------

    async def _document_type(self) -> tuple[Optional[str], str]:
        documents = [d for d in await self.repository.documents() if d.document_type != "WEATHER_FILE"]
        if not documents:
            return None, DEFAULT_DOCUMENT_TYPE
        documents.sort(key=lambda d: d.created_at)
        return documents[0].id, documents[0].document_type or DEFAULT_DOCUMENT_TYPE

    async def extract_domain_records(self) -> Dict[str, Any]:
        """
        Extract performance parameters from narratives, then financial data
        from fact statements, updating each project record in place.
        """
        facts = await self.repository.live_facts()
        narratives = await self.repository.narratives()
        if not facts and not narratives:
            raise StageSkipped("No facts or narratives to extract from")

        document_id, document_type = await self._document_type()
        detail: Dict[str, Any] = {"performance": False, "financial": False}
        errors = []

        try:
            if narratives:
                text = "\n\n".join(f"{n.section_key}:\n{n.text}" for n in narratives)
            else:
                text = "\n".join(f.statement for f in facts)
            params = await self.extractor.extract_performance_parameters(text, document_type)
            if params is not None:
                existing = await self.repository.get_performance_parameters()
                if existing is not None:
                    params = existing.merged_with(params).model_copy(
                        update={"confidence": params.confidence, "extraction_method": params.extraction_method}
                    )
                else:
                    params = params.model_copy(update={"source_document_id": document_id})
                await self.repository.save_performance_parameters(params)
                detail["performance"] = True
                detail["performance_confidence"] = round(params.confidence, 3)
        except Exception as e:
            self._logger.error("performance_extraction_failed", error=str(e))
            errors.append(f"performance: {e}")

        await self._emit("financial", 75, "Extracting financial data...")

        try:
            text = "\n".join(f.statement for f in facts)
            financial = await self.extractor.extract_financial_data(text, document_type) if text else None
            if financial is not None:
                existing = await self.repository.get_financial_data()
                if existing is not None:
                    financial = existing.merged_with(financial).model_copy(
                        update={"confidence": financial.confidence, "extraction_method": financial.extraction_method}
                    )
                else:
                    financial = financial.model_copy(update={"source_document_id": document_id})
                await self.repository.save_financial_data(financial)
                detail["financial"] = True
                detail["financial_confidence"] = round(financial.confidence, 3)
        except Exception as e:
            self._logger.error("financial_extraction_failed", error=str(e))
            errors.append(f"financial: {e}")

        if errors:
            raise RuntimeError("; ".join(errors))
        return detail

    # ------------------------------------------------------------------
    # Stage 4: weather files
    # ------------------------------------------------------------------

    async def process_weather_files(self) -> Dict[str, Any]:
        """Parse every active weather file that has not been parsed yet."""
        pending = [f for f in await self.repository.weather_files(active_only=True) if f.status == "uploaded"]
        if not pending:
            raise StageSkipped("No unparsed weather files")

        parsed = 0
        failed = 0
        for weather_file in pending:
            try:
                data = parse_weather_file(weather_file.content, weather_file.file_name)
            except WeatherParseError as e:
                self._logger.warning("weather_parse_failed", file_name=weather_file.file_name, error=str(e))
                await self.repository.update_weather_file(
                    weather_file.model_copy(update={"status": "failed", "error": str(e)})
                )
                failed += 1
                continue

            await self.repository.update_weather_file(
                weather_file.model_copy(
                    update={
                        "status": "parsed",
                        "original_format": data.format,
                        "latitude": data.location.latitude,
                        "longitude": data.location.longitude,
                        "elevation_m": data.location.elevation_m,
                        "location_name": data.location.name,
                        "monthly": data.monthly,
                        "annual": data.annual,
                        "error": None,
                    }
                )
            )
            parsed += 1
            self._logger.info(
                "weather_file_parsed",
                file_name=weather_file.file_name,
                format=data.format,
                latitude=data.location.latitude,
                longitude=data.location.longitude,
                ghi_total_kwh_m2=data.annual.ghi_total_kwh_m2,
            )

        return {"parsed": parsed, "failed": failed}

    # ------------------------------------------------------------------
    # Stage 5: location
    # ------------------------------------------------------------------

    async def consolidate_location(self) -> Dict[str, Any]:
        """
        Rank candidate locations and record the winner.

        Sources: weather-file header coordinates, extracted performance
        parameters, and model extraction over the facts (with geocoding).
        An existing location record is never overwritten.
        """
        params = await self.repository.get_performance_parameters()
        existing = await self.repository.get_location()
        if existing is not None:
            if params is not None and params.coordinates() is not None:
                raise StageSkipped("Location already recorded")
            # the record wins; parameters only take its coordinates
            await self._fill_parameter_coordinates(params, existing.latitude, existing.longitude, existing.confidence)
            return {
                "source": existing.source,
                "latitude": existing.latitude,
                "longitude": existing.longitude,
                "filled_from_record": True,
            }

        sources: List[LocationSource] = []

        for weather_file in await self.repository.weather_files(active_only=True):
            if weather_file.latitude is not None and weather_file.longitude is not None:
                sources.append(
                    LocationSource(
                        latitude=weather_file.latitude,
                        longitude=weather_file.longitude,
                        source="weather_file",
                        confidence=WEATHER_FILE_CONFIDENCE,
                        details=weather_file.location_name or "Weather file",
                    )
                )
                break

        coordinates = params.coordinates() if params else None
        if coordinates is not None:
            sources.append(
                LocationSource(
                    latitude=coordinates[0],
                    longitude=coordinates[1],
                    source="document",
                    confidence=PERFORMANCE_LOCATION_CONFIDENCE,
                    details=params.site_name or "Performance parameters",
                )
            )

        facts = (await self.repository.live_facts())[:LOCATION_FACT_LIMIT]
        if facts:
            summary = "\n".join(f"{f.canonical_key}: {f.statement}" for f in facts)
            extracted = await self.location_service.extract_location_from_facts(summary)
            if extracted is not None:
                sources.append(extracted)

        winner = self.location_service.consolidate(sources)
        if winner is None:
            raise StageSkipped("No location sources found")

        detail: Dict[str, Any] = {
            "sources": len(sources),
            "source": winner.source,
            "latitude": winner.latitude,
            "longitude": winner.longitude,
        }

        await self.repository.save_location(
            ConsolidatedLocation(
                project_id=self.repository.project_id,
                latitude=winner.latitude,
                longitude=winner.longitude,
                source=winner.source,
                confidence=winner.confidence,
                address=winner.details,
            )
        )
        detail["recorded"] = True

        if coordinates is None:
            await self._fill_parameter_coordinates(params, winner.latitude, winner.longitude, winner.confidence)
        return detail

    async def _fill_parameter_coordinates(
        self,
        params: Optional[PerformanceParameters],
        latitude: float,
        longitude: float,
        confidence: float,
    ) -> None:
        if params is None:
            await self.repository.save_performance_parameters(
                PerformanceParameters(
                    latitude=str(latitude),
                    longitude=str(longitude),
                    confidence=confidence,
                    extraction_method="location_consolidation",
                )
            )
        else:
            await self.repository.save_performance_parameters(
                params.model_copy(update={"latitude": str(latitude), "longitude": str(longitude)})
            )

    # ------------------------------------------------------------------
    # Stage 6: readiness
    # ------------------------------------------------------------------

    async def check_validation_trigger(self) -> Dict[str, Any]:
        outcome = await self.trigger.auto_trigger_if_ready()
        return outcome.to_dict()
