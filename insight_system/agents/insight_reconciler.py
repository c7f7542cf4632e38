"""Reconciliation engine: classify a candidate against the live fact store.

For a candidate with canonical key K, the live facts under K that do not
already cite the candidate's document are compared oldest first:

    similarity >  exact threshold (0.95)   update, existing text kept
    similarity >  near threshold  (0.70)   update, statements fused
    otherwise                              conflict against that fact

Deciding (reconcile/compare) is side-effect free. Writing the decision is
a separate apply step.

With the default first_match strategy only the first compared fact
decides the outcome. best_match scores every eligible fact and decides
against the most similar one.
"""

from dataclasses import dataclass
from typing import Literal, Optional, Union

from loguru import logger

from insight_system.agents.similarity_oracle import SimilarityOracle
from insight_system.config.settings import settings
from insight_system.data_management.repository import ProjectRepository
from insight_system.data_management.schemas.conflict_schema import Conflict
from insight_system.data_management.schemas.fact_schema import CandidateFact, Fact, utc_now
from insight_system.ledger.conflict_ledger import ConflictLedger
from insight_system.utils.confidence import weighted_confidence

FIRST_MATCH = "first_match"
BEST_MATCH = "best_match"


@dataclass(frozen=True)
class InsertDecision:
    kind: Literal["insert"] = "insert"


@dataclass(frozen=True)
class UpdateDecision:
    target_id: str
    merged_value: str
    new_confidence: int
    similarity: float
    kind: Literal["update"] = "update"


@dataclass(frozen=True)
class ConflictDecision:
    target_id: str
    similarity: float
    kind: Literal["conflict"] = "conflict"


Decision = Union[InsertDecision, UpdateDecision, ConflictDecision]


@dataclass
class AppliedDecision:
    """What apply() wrote: the affected fact and any conflict opened."""

    decision: Decision
    fact: Fact
    conflict: Optional[Conflict] = None


class ReconciliationEngine:
    """
    Classifies candidates as insert, update or conflict and applies the result.

    Attributes:
        exact_threshold: Similarity strictly above which two facts are duplicates
        near_threshold: Similarity strictly above which two facts are fused
        strategy: first_match or best_match
    """

    def __init__(
        self,
        repository: ProjectRepository,
        oracle: Optional[SimilarityOracle] = None,
        ledger: Optional[ConflictLedger] = None,
        exact_threshold: Optional[float] = None,
        near_threshold: Optional[float] = None,
        strategy: Optional[str] = None,
    ):
        self.repository = repository
        self.oracle = oracle or SimilarityOracle()
        self.ledger = ledger or ConflictLedger(repository)
        self.exact_threshold = exact_threshold if exact_threshold is not None else settings.exact_match_threshold
        self.near_threshold = near_threshold if near_threshold is not None else settings.near_match_threshold
        self.strategy = strategy or settings.reconciliation_strategy
        if self.strategy not in (FIRST_MATCH, BEST_MATCH):
            raise ValueError(f"unknown reconciliation strategy {self.strategy!r}")
        self.logger = logger.bind(component="ReconciliationEngine", project_id=repository.project_id)

    async def _decide(
        self,
        existing: Fact,
        statement: str,
        confidence: int,
        similarity: float,
    ) -> Union[UpdateDecision, ConflictDecision]:
        if similarity > self.exact_threshold:
            return UpdateDecision(
                target_id=existing.id,
                merged_value=existing.statement,
                new_confidence=weighted_confidence(existing.confidence, confidence, existing.enrichment_count),
                similarity=similarity,
            )
        if similarity > self.near_threshold:
            merged = await self.oracle.merge(existing.statement, statement)
            return UpdateDecision(
                target_id=existing.id,
                merged_value=merged,
                new_confidence=weighted_confidence(existing.confidence, confidence, existing.enrichment_count),
                similarity=similarity,
            )
        return ConflictDecision(target_id=existing.id, similarity=similarity)

    async def compare(
        self,
        existing: Fact,
        statement: str,
        confidence: int,
    ) -> Union[UpdateDecision, ConflictDecision]:
        """
        Classify one statement against one existing fact.

        Args:
            existing: Stored fact
            statement: Incoming statement
            confidence: Incoming confidence on the 0-100 scale
        """
        similarity = await self.oracle.score(existing.statement, statement)
        return await self._decide(existing, statement, confidence, similarity)

    async def reconcile(
        self,
        candidate: CandidateFact,
        canonical_key: Optional[str] = None,
    ) -> Decision:
        """
        Decide what to do with a candidate. Performs no writes.

        Args:
            candidate: Extraction output
            canonical_key: Key to reconcile under; defaults to the candidate's

        Returns:
            InsertDecision, UpdateDecision or ConflictDecision
        """
        key = canonical_key or candidate.canonical_key
        existing = await self.repository.live_facts_by_key(key)
        if candidate.source_document_id:
            existing = [f for f in existing if candidate.source_document_id not in f.source_document_ids]

        if not existing:
            return InsertDecision()

        confidence = candidate.confidence_percent

        if self.strategy == FIRST_MATCH:
            decision = await self.compare(existing[0], candidate.statement, confidence)
        else:
            best_fact = existing[0]
            best_score = -1.0
            for fact in existing:
                score = await self.oracle.score(fact.statement, candidate.statement)
                if score > best_score:
                    best_fact, best_score = fact, score
            decision = await self._decide(best_fact, candidate.statement, confidence, best_score)

        self.logger.debug(
            f"Reconciled candidate under {key}: {decision.kind}",
            similarity=decision.similarity,
        )
        return decision

    async def compare_facts(self, older: Fact, newer: Fact) -> Union[UpdateDecision, ConflictDecision]:
        """Classify two stored facts, treating the newer one as the candidate."""
        return await self.compare(older, newer.statement, newer.confidence)

    async def enrich(
        self,
        target: Fact,
        merged_value: str,
        new_confidence: int,
        source_document_ids: list[str],
        merged_from: Optional[str] = None,
    ) -> Fact:
        """Fold one more observation into target and persist it."""
        update = {
            "statement": merged_value,
            "confidence": new_confidence,
            "source_document_ids": [*target.source_document_ids, *source_document_ids],
            "enrichment_count": target.enrichment_count + 1,
            "last_enriched_at": utc_now(),
        }
        if merged_from:
            update["merged_from"] = [*target.merged_from, merged_from]
        enriched = Fact.model_validate({**target.model_dump(), **update})
        enriched = await self.repository.update_fact(enriched)
        self.logger.info(
            f"Enriched fact {target.id}",
            enrichment_count=enriched.enrichment_count,
            confidence=enriched.confidence,
        )
        return enriched

    async def apply(self, decision: Decision, candidate: CandidateFact) -> AppliedDecision:
        """
        Write a decision for a candidate through the repository.

        Insert stores a new fact. Update enriches the target. Conflict stores
        the candidate as its own fact and opens a conflict with the target.
        """
        if isinstance(decision, UpdateDecision):
            target = await self.repository.get_fact(decision.target_id)
            if target is None or not target.is_live:
                self.logger.warning(f"Update target {decision.target_id} is gone, inserting instead")
                return await self.apply(InsertDecision(), candidate)
            sources = [candidate.source_document_id] if candidate.source_document_id else []
            fact = await self.enrich(target, decision.merged_value, decision.new_confidence, sources)
            return AppliedDecision(decision=decision, fact=fact)

        fact = Fact.from_candidate(self.repository.project_id, candidate)
        await self.repository.add_fact(fact)

        if isinstance(decision, ConflictDecision):
            target = await self.repository.get_fact(decision.target_id)
            if target is not None and target.is_live:
                conflict = await self.ledger.open_conflict(target, fact)
                fact = await self.repository.get_fact(fact.id) or fact
                return AppliedDecision(decision=decision, fact=fact, conflict=conflict)

        return AppliedDecision(decision=decision, fact=fact)

    async def reconcile_and_apply(self, candidate: CandidateFact) -> AppliedDecision:
        decision = await self.reconcile(candidate)
        return await self.apply(decision, candidate)
