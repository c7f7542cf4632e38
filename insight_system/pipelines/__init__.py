"""Pipeline modules wiring agents and stores into end-to-end flows.

- IngestionPipeline: document text to stored facts
- ConsolidationPipeline: the six-stage per-project batch
- ValidationTrigger: downstream readiness check used by the last stage
"""

from insight_system.pipelines.consolidation_pipeline import (
    ConsolidationPipeline,
    ConsolidationReport,
    StageResult,
)
from insight_system.pipelines.ingestion_pipeline import IngestionPipeline, IngestionStats
from insight_system.pipelines.validation_trigger import TriggerOutcome, ValidationTrigger

__all__ = [
    "ConsolidationPipeline",
    "ConsolidationReport",
    "IngestionPipeline",
    "IngestionStats",
    "StageResult",
    "TriggerOutcome",
    "ValidationTrigger",
]
