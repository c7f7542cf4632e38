"""Fact schemas: reconciled project facts and unreconciled candidates.

A Fact is the stored, reconcilable unit. It belongs to one project, groups
with other facts through canonical_key, and carries an integer confidence on
the 0-100 scale. Facts are never hard-deleted; deleted_at marks them as
merged away or resolved out of a conflict.

A CandidateFact is extraction output that has not yet been compared with
the store. Its confidence is the extractor's 0.0-1.0 score.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from insight_system.config.sections import OTHER, canonicalize_key, normalize_section
from insight_system.utils.confidence import clamp_confidence, fraction_to_percent, parse_fraction


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExtractionMethod(str, Enum):
    """How a fact was produced."""

    DETERMINISTIC = "deterministic"
    LLM_STRUCTURED = "llm_structured_v2"
    LLM_RELATIONSHIPS = "llm_relationships_v2"
    LLM_RISKS = "llm_risks_v2"
    LLM_ASSUMPTIONS = "llm_assumptions_v2"
    CONFLICT_MERGE = "conflict_merge"


class CandidateFact(BaseModel):
    """Extraction output awaiting reconciliation.

    Attributes:
        category: Canonical section the fact belongs to.
        canonical_key: Stable snake_case key grouping comparable facts.
        statement: Self-contained statement (or matched value for regex hits).
        confidence: Extractor confidence, 0.0-1.0.
        extraction_method: Pass or matcher that produced the fact.
        source_document_id: Document the fact came from, once known.
    """

    category: str = OTHER
    canonical_key: str
    statement: str = Field(..., min_length=1)
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    extraction_method: str = ExtractionMethod.DETERMINISTIC.value
    source_document_id: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: Optional[str]) -> str:
        return normalize_section(v)

    @field_validator("canonical_key", mode="before")
    @classmethod
    def normalize_key(cls, v: Optional[str]) -> str:
        return canonicalize_key(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_fraction(cls, v: Any) -> float:
        return parse_fraction(v)

    @property
    def confidence_percent(self) -> int:
        """Confidence on the stored 0-100 scale."""
        return fraction_to_percent(self.confidence)

    @property
    def dedup_key(self) -> str:
        return f"{self.category}:{self.canonical_key}:{self.statement.lower()}"


class Fact(BaseModel):
    """A stored project fact.

    Attributes:
        id: Unique fact identifier.
        project_id: Owning project.
        canonical_key: Groups all live facts describing one attribute.
        category: Canonical section.
        statement: Current statement text (may be a fused statement).
        confidence: Integer confidence, always within [0, 100].
        source_document_ids: Documents supporting this fact, unique and ordered.
        extraction_method: Method of the first observation.
        enrichment_count: Number of observations folded into this fact.
        conflict_id: Backlink to a pending conflict, if any.
        merged_from: Ids of facts folded into this one.
        deleted_at: Soft-delete timestamp; None while the fact is live.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str
    canonical_key: str
    category: str = OTHER
    statement: str
    confidence: int = Field(50, ge=0, le=100)
    source_document_ids: list[str] = Field(default_factory=list)
    extraction_method: str = ExtractionMethod.DETERMINISTIC.value
    enrichment_count: int = Field(1, ge=1)
    conflict_id: Optional[str] = None
    merged_from: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_enriched_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp(cls, v) -> int:
        return clamp_confidence(v)

    @field_validator("source_document_ids")
    @classmethod
    def unique_sources(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    @property
    def is_live(self) -> bool:
        return self.deleted_at is None

    @classmethod
    def from_candidate(cls, project_id: str, candidate: CandidateFact) -> "Fact":
        """Create a fresh fact from one candidate (raw insert path)."""
        return cls(
            project_id=project_id,
            canonical_key=candidate.canonical_key,
            category=candidate.category,
            statement=candidate.statement,
            confidence=candidate.confidence_percent,
            source_document_ids=[candidate.source_document_id] if candidate.source_document_id else [],
            extraction_method=candidate.extraction_method,
        )

    def shares_source_with(self, other: "Fact") -> bool:
        return bool(set(self.source_document_ids) & set(other.source_document_ids))
