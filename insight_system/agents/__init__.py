"""Insight agents: extraction sifters, similarity oracle, reconciliation."""
