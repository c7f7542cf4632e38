"""Sifter agents turning document text into candidate facts."""

from insight_system.agents.sifters.base_sifter import BaseSifter
from insight_system.agents.sifters.deterministic_extractor import DeterministicExtractor
from insight_system.agents.sifters.fact_extraction_agent import (
    ExtractionResult,
    FactExtractionAgent,
    dedupe_candidates,
)

__all__ = [
    "BaseSifter",
    "DeterministicExtractor",
    "ExtractionResult",
    "FactExtractionAgent",
    "dedupe_candidates",
]
