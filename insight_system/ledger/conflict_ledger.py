"""Conflict ledger: durable record of facts in tension and their resolution.

Lifecycle:

    pending --accept_a--> accept_a     B soft-deleted
            --accept_b--> accept_b     A soft-deleted
            --merge-----> merge        new fact from resolver text, A and B soft-deleted
            --ignore----> ignore       both stay live
            (internal)--> superseded   a fact of this conflict was discarded elsewhere

A fact can sit in several pending conflicts. Discarding it closes the
others as superseded, so a pending conflict always names two live facts.
A live fact's conflict_id points at its newest pending conflict, or is None.

Every resolved state is terminal. A resolution request is fully validated
before anything is written, so a rejected request leaves no trace.
"""

from typing import Optional, Union

from insight_system.data_management.repository import ProjectRepository
from insight_system.data_management.schemas.conflict_schema import (
    Conflict,
    ConflictType,
    ResolutionStatus,
    infer_conflict_type,
)
from insight_system.data_management.schemas.fact_schema import ExtractionMethod, Fact, utc_now
from insight_system.utils.confidence import clamp_confidence
from insight_system.utils.logging import get_structured_logger


class ConflictStateError(ValueError):
    """A resolution was requested that the conflict's state does not allow."""


class ConflictLedger:
    """Opens and resolves conflicts for one project."""

    def __init__(self, repository: ProjectRepository):
        self.repository = repository
        self._logger = get_structured_logger("ledger", project_id=repository.project_id)

    async def open_conflict(
        self,
        fact_a: Fact,
        fact_b: Fact,
        conflict_type: Optional[ConflictType] = None,
    ) -> Conflict:
        """
        Record that fact_a and fact_b disagree.

        Idempotent: when any conflict already exists between the pair (in
        either order) that conflict is returned and nothing is written.

        Args:
            fact_a: Existing (older) fact
            fact_b: Disagreeing fact
            conflict_type: Explicit type; inferred from the statements when omitted

        Returns:
            The new or existing Conflict
        """
        existing = await self.repository.find_conflict_between(fact_a.id, fact_b.id)
        if existing is not None:
            self._logger.debug("conflict_exists", conflict_id=existing.id)
            return existing

        conflict = Conflict(
            project_id=self.repository.project_id,
            fact_a_id=fact_a.id,
            fact_b_id=fact_b.id,
            conflict_type=conflict_type or infer_conflict_type(fact_a.statement, fact_b.statement),
        )
        await self.repository.add_conflict(conflict)

        for fact in (fact_a, fact_b):
            current = await self.repository.get_fact(fact.id)
            if current is not None:
                await self.repository.update_fact(current.model_copy(update={"conflict_id": conflict.id}))

        self._logger.info(
            "conflict_opened",
            conflict_id=conflict.id,
            fact_a_id=fact_a.id,
            fact_b_id=fact_b.id,
            conflict_type=conflict.conflict_type.value,
        )
        return conflict

    async def resolve(
        self,
        conflict_id: str,
        action: Union[str, ResolutionStatus],
        merged_text: Optional[str] = None,
    ) -> Conflict:
        """
        Resolve a pending conflict.

        Args:
            conflict_id: Conflict to resolve
            action: accept_a, accept_b, merge or ignore
            merged_text: Resolver-supplied statement, required for merge

        Returns:
            The resolved Conflict

        Raises:
            ConflictStateError: Unknown conflict, already resolved, invalid
                action, merge without text, or a referenced fact is gone
        """
        try:
            status = ResolutionStatus(action)
        except ValueError:
            raise ConflictStateError(f"unknown resolution action {action!r}") from None
        if status in (ResolutionStatus.PENDING, ResolutionStatus.SUPERSEDED):
            raise ConflictStateError(f"a conflict cannot be resolved to {status.value}")

        conflict = await self.repository.get_conflict(conflict_id)
        if conflict is None:
            raise ConflictStateError(f"conflict {conflict_id} not found")
        if not conflict.is_pending:
            raise ConflictStateError(
                f"conflict {conflict_id} already resolved as {conflict.resolution_status.value}"
            )
        if status is ResolutionStatus.MERGE and not (merged_text and merged_text.strip()):
            raise ConflictStateError("merge resolution requires merged text")

        fact_a = await self.repository.get_fact(conflict.fact_a_id)
        fact_b = await self.repository.get_fact(conflict.fact_b_id)
        stale = fact_a is None or fact_b is None or not fact_a.is_live or not fact_b.is_live
        # ignore writes no facts and may close a conflict whose fact is already gone
        if stale and status is not ResolutionStatus.IGNORE:
            raise ConflictStateError(f"conflict {conflict_id} references a fact that is no longer live")

        discarded: list[Fact] = []
        merged_fact_id = None
        if status is ResolutionStatus.ACCEPT_A:
            discarded = [fact_b]
        elif status is ResolutionStatus.ACCEPT_B:
            discarded = [fact_a]
        elif status is ResolutionStatus.MERGE:
            merged = self._merged_fact(fact_a, fact_b, merged_text.strip())
            await self.repository.add_fact(merged)
            discarded = [fact_a, fact_b]
            merged_fact_id = merged.id

        for fact in discarded:
            await self.repository.update_fact(fact.model_copy(update={"deleted_at": utc_now()}))

        resolved = conflict.model_copy(
            update={
                "resolution_status": status,
                "resolved_at": utc_now(),
                "merged_fact_id": merged_fact_id,
                "resolution_text": merged_text.strip() if merged_text else None,
            }
        )
        await self.repository.update_conflict(resolved)

        touched = set(conflict.pair)
        for closed in await self._supersede(resolved, {f.id for f in discarded}):
            touched |= closed.pair
        for fact_id in touched:
            await self._relink(fact_id)

        self._logger.info(
            "conflict_resolved",
            conflict_id=conflict.id,
            action=status.value,
            merged_fact_id=merged_fact_id,
        )
        return resolved

    def _merged_fact(self, fact_a: Fact, fact_b: Fact, statement: str) -> Fact:
        return Fact(
            project_id=self.repository.project_id,
            canonical_key=fact_a.canonical_key,
            category=fact_a.category,
            statement=statement,
            confidence=clamp_confidence((fact_a.confidence + fact_b.confidence) / 2),
            source_document_ids=[*fact_a.source_document_ids, *fact_b.source_document_ids],
            extraction_method=ExtractionMethod.CONFLICT_MERGE.value,
            enrichment_count=fact_a.enrichment_count + fact_b.enrichment_count,
            merged_from=[fact_a.id, fact_b.id],
        )

    async def _supersede(self, resolved: Conflict, discarded_ids: set[str]) -> list[Conflict]:
        """Close every other pending conflict naming a fact that was just discarded."""
        closed = []
        for fact_id in discarded_ids:
            for other in await self.repository.pending_conflicts_for(fact_id):
                update = {
                    "resolution_status": ResolutionStatus.SUPERSEDED,
                    "resolved_at": utc_now(),
                    "superseded_by": resolved.id,
                }
                closed.append(await self.repository.update_conflict(other.model_copy(update=update)))
                self._logger.info("conflict_superseded", conflict_id=other.id, superseded_by=resolved.id)
        return closed

    async def _relink(self, fact_id: str) -> None:
        """Point a live fact's backlink at its newest pending conflict, or clear it."""
        fact = await self.repository.get_fact(fact_id)
        if fact is None:
            return
        backlink = None
        if fact.is_live:
            pending = await self.repository.pending_conflicts_for(fact_id)
            backlink = pending[-1].id if pending else None
        if fact.conflict_id != backlink:
            await self.repository.update_fact(fact.model_copy(update={"conflict_id": backlink}))
