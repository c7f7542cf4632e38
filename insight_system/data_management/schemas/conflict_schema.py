"""Conflict schema: two live facts in tension and their resolution lifecycle."""

import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from insight_system.data_management.schemas.fact_schema import utc_now


class ConflictType(str, Enum):
    VALUE_MISMATCH = "value_mismatch"
    DATE_MISMATCH = "date_mismatch"
    NUMERICAL_MISMATCH = "numerical_mismatch"


class ResolutionStatus(str, Enum):
    """pending is the only non-terminal state.

    superseded is never requested by a resolver: it closes a conflict whose
    fact was discarded by the resolution of another conflict.
    """

    PENDING = "pending"
    ACCEPT_A = "accept_a"
    ACCEPT_B = "accept_b"
    MERGE = "merge"
    IGNORE = "ignore"
    SUPERSEDED = "superseded"

    @property
    def is_terminal(self) -> bool:
        return self is not ResolutionStatus.PENDING


class Conflict(BaseModel):
    """Recorded disagreement between fact A and fact B."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str
    fact_a_id: str
    fact_b_id: str
    conflict_type: ConflictType = ConflictType.VALUE_MISMATCH
    resolution_status: ResolutionStatus = ResolutionStatus.PENDING
    created_at: datetime = Field(default_factory=utc_now)
    resolved_at: Optional[datetime] = None
    merged_fact_id: Optional[str] = None
    resolution_text: Optional[str] = None
    superseded_by: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.resolution_status is ResolutionStatus.PENDING

    @property
    def pair(self) -> frozenset[str]:
        return frozenset((self.fact_a_id, self.fact_b_id))


_DATE_RE = re.compile(
    r"\b(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}|\d{4}[/\-]\d{1,2}[/\-]\d{1,2}|"
    r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+(?:\d{1,2},?\s+)?\d{4}|"
    r"\d{1,2}\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{4})\b",
    re.IGNORECASE,
)
_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")


def infer_conflict_type(statement_a: str, statement_b: str) -> ConflictType:
    """Classify a disagreement from the two statements' contents."""
    if _DATE_RE.search(statement_a) and _DATE_RE.search(statement_b):
        return ConflictType.DATE_MISMATCH
    if _NUMBER_RE.search(statement_a) and _NUMBER_RE.search(statement_b):
        return ConflictType.NUMERICAL_MISMATCH
    return ConflictType.VALUE_MISMATCH
