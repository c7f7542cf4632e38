"""Prompt templates for model-backed components.

Modules:
    extraction_prompts: System prompt and the four extraction passes
    reconciliation_prompts: Similarity scoring and statement fusion
    consolidation_prompts: Narratives, domain records and location
"""

from insight_system.config.prompts.extraction_prompts import (
    EXTRACTION_PASSES,
    EXTRACTION_SYSTEM_PROMPT,
)
from insight_system.config.prompts.reconciliation_prompts import (
    MERGE_SYSTEM_PROMPT,
    MERGE_USER_PROMPT,
    SIMILARITY_SYSTEM_PROMPT,
    SIMILARITY_USER_PROMPT,
)
from insight_system.config.prompts.consolidation_prompts import (
    DOMAIN_EXTRACTION_SYSTEM_PROMPT,
    FINANCIAL_DATA_PROMPT,
    LOCATION_SYSTEM_PROMPT,
    LOCATION_USER_PROMPT,
    NARRATIVE_SYSTEM_PROMPT,
    NARRATIVE_USER_PROMPT,
    PERFORMANCE_PARAMETERS_PROMPT,
)

__all__ = [
    "EXTRACTION_PASSES",
    "EXTRACTION_SYSTEM_PROMPT",
    "MERGE_SYSTEM_PROMPT",
    "MERGE_USER_PROMPT",
    "SIMILARITY_SYSTEM_PROMPT",
    "SIMILARITY_USER_PROMPT",
    "DOMAIN_EXTRACTION_SYSTEM_PROMPT",
    "FINANCIAL_DATA_PROMPT",
    "LOCATION_SYSTEM_PROMPT",
    "LOCATION_USER_PROMPT",
    "NARRATIVE_SYSTEM_PROMPT",
    "NARRATIVE_USER_PROMPT",
    "PERFORMANCE_PARAMETERS_PROMPT",
]
