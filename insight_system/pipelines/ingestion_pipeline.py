"""Ingestion pipeline: document text in, stored facts out.

Flow per document:
1. Store the DocumentRecord (id, text, type); an id already on record
   is skipped, so re-ingesting a document never duplicates its facts
2. Extract candidates via FactExtractionAgent
3. Store one fact per candidate, or route each candidate through the
   ReconciliationEngine when reconcile_on_ingest is set

The raw-insert path is the fast path; cross-document reconciliation then
happens in the consolidation pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from insight_system.data_management.repository import ProjectRepository
from insight_system.data_management.schemas.fact_schema import Fact
from insight_system.data_management.schemas.project_schema import DocumentRecord


@dataclass
class IngestionStats:
    """Statistics for one ingested document."""

    document_id: str = ""
    candidates: int = 0
    inserted: int = 0
    updated: int = 0
    conflicts: int = 0
    skipped: bool = False
    failed_passes: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "candidates": self.candidates,
            "inserted": self.inserted,
            "updated": self.updated,
            "conflicts": self.conflicts,
            "skipped": self.skipped,
            "failed_passes": list(self.failed_passes),
            "duration_seconds": self.duration_seconds,
        }


class IngestionPipeline:
    """
    Wires DocumentRecord storage -> FactExtractionAgent -> fact storage.

    Usage:
        pipeline = IngestionPipeline(storage.repository("proj-7"))
        stats = await pipeline.process_document("doc-1", text, "FEASIBILITY_STUDY")

    Attributes:
        repository: Project-scoped storage
        reconcile_on_ingest: Reconcile each candidate instead of raw insert
    """

    def __init__(
        self,
        repository: ProjectRepository,
        extraction_agent: Optional["FactExtractionAgent"] = None,  # noqa: F821
        engine: Optional["ReconciliationEngine"] = None,  # noqa: F821
        reconcile_on_ingest: bool = False,
    ):
        self.repository = repository
        self._extraction_agent = extraction_agent
        self._engine = engine
        self.reconcile_on_ingest = reconcile_on_ingest
        self.logger = logger.bind(component="IngestionPipeline", project_id=repository.project_id)

    @property
    def extraction_agent(self):
        """Lazy-load FactExtractionAgent on first access."""
        if self._extraction_agent is None:
            from insight_system.agents.sifters import FactExtractionAgent

            self._extraction_agent = FactExtractionAgent()
        return self._extraction_agent

    @property
    def engine(self):
        """Lazy-load ReconciliationEngine on first access."""
        if self._engine is None:
            from insight_system.agents.insight_reconciler import ReconciliationEngine

            self._engine = ReconciliationEngine(self.repository)
        return self._engine

    async def process_document(
        self,
        document_id: str,
        text: str,
        document_type: str = "GENERAL",
        file_name: Optional[str] = None,
    ) -> IngestionStats:
        """
        Extract and store the facts of one document.

        Args:
            document_id: Opaque id owned by the document collaborator
            text: Plain document text
            document_type: Document kind (e.g. FEASIBILITY_STUDY)
            file_name: Original file name, kept for display

        Returns:
            IngestionStats for the document; skipped is set when the
            document was already ingested
        """
        start_time = datetime.now(timezone.utc)
        stats = IngestionStats(document_id=document_id)

        if await self.repository.get_document(document_id) is not None:
            stats.skipped = True
            self.logger.info(f"Document {document_id} already ingested, skipping")
            return stats

        document = DocumentRecord(
            id=document_id,
            project_id=self.repository.project_id,
            text=text,
            document_type=document_type,
            file_name=file_name,
        )
        await self.repository.add_document(document)

        result = await self.extraction_agent.extract_detailed(text, document_type, document_id)
        stats.candidates = len(result.facts)
        stats.failed_passes = list(result.failed_passes)

        if self.reconcile_on_ingest:
            for candidate in result.facts:
                applied = await self.engine.reconcile_and_apply(candidate)
                if applied.decision.kind == "update":
                    stats.updated += 1
                else:
                    stats.inserted += 1
                    if applied.conflict is not None:
                        stats.conflicts += 1
        else:
            facts = [Fact.from_candidate(self.repository.project_id, c) for c in result.facts]
            stats.inserted = await self.repository.add_facts(facts)

        await self.repository.add_document(document.model_copy(update={"fact_count": stats.inserted}))

        stats.duration_seconds = round((datetime.now(timezone.utc) - start_time).total_seconds(), 2)
        self.logger.info(f"Ingested document {document_id}", **stats.to_dict())
        return stats
