"""Project-facing service: the surface a UI or CLI talks to.

Everything here is scoped to one project and goes through a
ProjectRepository. Domain errors from the ledger are turned into
ResolutionOutcome failures instead of propagating.
"""

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel

from insight_system.config.sections import CANONICAL_SECTIONS, normalize_section
from insight_system.data_management.repository import ProjectRepository, Storage
from insight_system.data_management.schemas.conflict_schema import Conflict
from insight_system.data_management.schemas.fact_schema import Fact
from insight_system.data_management.schemas.project_schema import (
    ProgressEvent,
    ReadinessReport,
    WeatherFile,
)
from insight_system.ledger.conflict_ledger import ConflictLedger, ConflictStateError
from insight_system.pipelines.consolidation_pipeline import (
    ConsolidationPipeline,
    ConsolidationReport,
    ProgressCallback,
)
from insight_system.pipelines.ingestion_pipeline import IngestionPipeline, IngestionStats
from insight_system.pipelines.validation_trigger import ValidationTrigger


class ConflictSide(BaseModel):
    fact_id: str
    statement: str
    confidence: int
    source_count: int


class ConflictView(BaseModel):
    """A pending conflict with both facts spelled out."""

    conflict_id: str
    canonical_key: str
    conflict_type: str
    created_at: datetime
    fact_a: ConflictSide
    fact_b: ConflictSide


@dataclass
class ResolutionOutcome:
    success: bool
    reason: str = ""
    conflict: Optional[Conflict] = None


def _side(fact: Fact) -> ConflictSide:
    return ConflictSide(
        fact_id=fact.id,
        statement=fact.statement,
        confidence=fact.confidence,
        source_count=len(fact.source_document_ids),
    )


class ProjectInsightService:
    """
    Facts, conflicts, narratives and consolidation for one project.

    Usage:
        service = ProjectInsightService("proj-7", Storage.open(settings.data_dir))
        await service.ingest("doc-1", text, "FEASIBILITY_STUDY")
        async for event in service.consolidate_stream():
            print(event.stage, event.percent)
    """

    def __init__(
        self,
        project_id: str,
        storage: Optional[Storage] = None,
        llm_client: Optional[Any] = None,
        geocoder: Optional[Any] = None,
    ):
        self.project_id = project_id
        self.storage = storage or Storage()
        self.repository: ProjectRepository = self.storage.repository(project_id)
        self.llm_client = llm_client
        self.geocoder = geocoder
        self.ledger = ConflictLedger(self.repository)
        self.logger = logger.bind(component="ProjectInsightService", project_id=project_id)

    # ------------------------------------------------------------ ingestion

    async def ingest(
        self,
        document_id: str,
        text: str,
        document_type: str = "GENERAL",
        file_name: Optional[str] = None,
        reconcile_on_ingest: bool = False,
    ) -> IngestionStats:
        from insight_system.agents.sifters import FactExtractionAgent

        pipeline = IngestionPipeline(
            self.repository,
            extraction_agent=FactExtractionAgent(llm_client=self.llm_client),
            engine=self._engine() if reconcile_on_ingest else None,
            reconcile_on_ingest=reconcile_on_ingest,
        )
        return await pipeline.process_document(document_id, text, document_type, file_name)

    async def add_weather_file(self, file_name: str, content: str) -> WeatherFile:
        """Store an uploaded weather file; it is parsed by the next consolidation."""
        weather_file = WeatherFile(project_id=self.project_id, file_name=file_name, content=content)
        await self.repository.add_weather_file(weather_file)
        self.logger.info(f"Stored weather file {file_name}", weather_file_id=weather_file.id)
        return weather_file

    # ---------------------------------------------------------------- reads

    async def facts_by_section(self) -> Dict[str, List[Fact]]:
        """Live facts grouped by canonical section, in display order."""
        grouped: Dict[str, List[Fact]] = {}
        for fact in await self.repository.live_facts():
            grouped.setdefault(normalize_section(fact.category), []).append(fact)
        return {section: grouped[section] for section in CANONICAL_SECTIONS if section in grouped}

    async def pending_conflicts(self) -> List[ConflictView]:
        views = []
        for conflict in await self.repository.pending_conflicts():
            fact_a = await self.repository.get_fact(conflict.fact_a_id)
            fact_b = await self.repository.get_fact(conflict.fact_b_id)
            if fact_a is None or fact_b is None:
                self.logger.warning(f"Conflict {conflict.id} references a missing fact")
                continue
            views.append(
                ConflictView(
                    conflict_id=conflict.id,
                    canonical_key=fact_a.canonical_key,
                    conflict_type=conflict.conflict_type.value,
                    created_at=conflict.created_at,
                    fact_a=_side(fact_a),
                    fact_b=_side(fact_b),
                )
            )
        return views

    async def narratives(self) -> Dict[str, str]:
        """Current narrative text per section."""
        return {n.section_key: n.text for n in await self.repository.narratives()}

    async def readiness(self) -> ReadinessReport:
        return await ValidationTrigger(self.repository).check_readiness()

    # ----------------------------------------------------------- resolution

    async def resolve(
        self,
        conflict_id: str,
        action: str,
        merged_text: Optional[str] = None,
    ) -> ResolutionOutcome:
        try:
            conflict = await self.ledger.resolve(conflict_id, action, merged_text)
        except ConflictStateError as e:
            self.logger.info(f"Rejected resolution of {conflict_id}: {e}")
            return ResolutionOutcome(success=False, reason=str(e))
        return ResolutionOutcome(success=True, reason=f"resolved as {conflict.resolution_status.value}", conflict=conflict)

    # -------------------------------------------------------- consolidation

    def _engine(self):
        from insight_system.agents.insight_reconciler import ReconciliationEngine
        from insight_system.agents.similarity_oracle import SimilarityOracle

        return ReconciliationEngine(
            self.repository,
            oracle=SimilarityOracle(llm_client=self.llm_client),
            ledger=self.ledger,
        )

    def _pipeline(self, progress_callback: Optional[ProgressCallback] = None) -> ConsolidationPipeline:
        from insight_system.agents.location_service import LocationService

        return ConsolidationPipeline(
            self.repository,
            engine=self._engine(),
            llm_client=self.llm_client,
            location_service=LocationService(self.llm_client, self.geocoder),
            progress_callback=progress_callback,
        )

    async def consolidate(self, progress_callback: Optional[ProgressCallback] = None) -> ConsolidationReport:
        return await self._pipeline(progress_callback).run()

    async def consolidate_stream(self) -> AsyncIterator[ProgressEvent]:
        """
        Run consolidation and yield its progress events in order.

        The last event is terminal (complete or failed). If the run aborts
        without emitting one, a failed event is synthesized.
        """
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self._pipeline(queue.put).run())
        last_percent = 0

        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)

                if getter in done:
                    event = getter.result()
                    last_percent = event.percent
                    yield event
                    if event.is_terminal:
                        await task
                        break
                    continue

                getter.cancel()
                while not queue.empty():
                    event = queue.get_nowait()
                    last_percent = event.percent
                    yield event
                    if event.is_terminal:
                        return

                error = task.exception()
                self.logger.error(f"Consolidation aborted: {error}")
                yield ProgressEvent(stage="failed", percent=last_percent, message=f"Consolidation aborted: {error}")
                return
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
