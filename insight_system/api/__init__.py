"""Service layer exposed to UIs and the CLI."""

from insight_system.api.project_service import (
    ConflictSide,
    ConflictView,
    ProjectInsightService,
    ResolutionOutcome,
)

__all__ = ["ConflictSide", "ConflictView", "ProjectInsightService", "ResolutionOutcome"]
