"""Pydantic schemas for facts, conflicts, narratives and project records."""

from insight_system.data_management.schemas.fact_schema import (
    CandidateFact,
    ExtractionMethod,
    Fact,
)
from insight_system.data_management.schemas.conflict_schema import (
    Conflict,
    ConflictType,
    ResolutionStatus,
    infer_conflict_type,
)
from insight_system.data_management.schemas.narrative_schema import (
    Narrative,
    NarrativeRevision,
)
from insight_system.data_management.schemas.project_schema import (
    ConsolidatedLocation,
    DocumentRecord,
    FinancialData,
    LocationSource,
    MonthlyIrradiance,
    ParsedWeatherData,
    PerformanceParameters,
    ProgressEvent,
    ReadinessReport,
    ValidationJob,
    WeatherFile,
    WeatherLocation,
    WeatherSummary,
)

__all__ = [
    "CandidateFact",
    "ExtractionMethod",
    "Fact",
    "Conflict",
    "ConflictType",
    "ResolutionStatus",
    "infer_conflict_type",
    "Narrative",
    "NarrativeRevision",
    "ConsolidatedLocation",
    "DocumentRecord",
    "FinancialData",
    "LocationSource",
    "MonthlyIrradiance",
    "ParsedWeatherData",
    "PerformanceParameters",
    "ProgressEvent",
    "ReadinessReport",
    "ValidationJob",
    "WeatherFile",
    "WeatherLocation",
    "WeatherSummary",
]
