"""Section narrative schema."""

from datetime import datetime

from pydantic import BaseModel, Field

from insight_system.data_management.schemas.fact_schema import utc_now


class NarrativeRevision(BaseModel):
    """A superseded narrative text."""

    text: str
    updated_at: datetime


class Narrative(BaseModel):
    """Current synthesized prose for one (project, section).

    Regeneration overwrites text in place; the previous text is pushed onto
    history so earlier versions stay auditable.
    """

    project_id: str
    section_key: str
    text: str
    fact_count: int = 0
    updated_at: datetime = Field(default_factory=utc_now)
    history: list[NarrativeRevision] = Field(default_factory=list)

    def revise(self, text: str, fact_count: int) -> "Narrative":
        """Return a copy carrying the new text, with the old text in history."""
        if text == self.text:
            return self.model_copy(update={"fact_count": fact_count})
        return self.model_copy(
            update={
                "text": text,
                "fact_count": fact_count,
                "updated_at": utc_now(),
                "history": [
                    *self.history,
                    NarrativeRevision(text=self.text, updated_at=self.updated_at),
                ],
            }
        )
