"""Conflict ledger."""

from insight_system.ledger.conflict_ledger import ConflictLedger, ConflictStateError

__all__ = ["ConflictLedger", "ConflictStateError"]
