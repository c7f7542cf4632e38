"""Fact extraction orchestrator: deterministic pass plus four model passes.

The four generative passes (structured data, relationships, risks,
assumptions) share nothing and run concurrently. A pass that fails, by
exception, empty response or malformed payload, contributes zero facts and
never blocks the others. All candidates are combined only after every pass
has settled, then deduplicated within the batch.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from insight_system.agents.sifters.base_sifter import BaseSifter
from insight_system.agents.sifters.deterministic_extractor import DeterministicExtractor
from insight_system.config.prompts.extraction_prompts import (
    EXTRACTION_PASSES,
    EXTRACTION_SYSTEM_PROMPT,
)
from insight_system.config.settings import settings
from insight_system.data_management.schemas.fact_schema import CandidateFact
from insight_system.llm.payloads import (
    ChatMessage,
    DecodeFailure,
    ExtractionPayload,
    RawExtractedFact,
    decode_payload,
)


def dedupe_candidates(candidates: list[CandidateFact]) -> list[CandidateFact]:
    """
    Keep one candidate per (category, canonical_key, lower-cased statement).

    The highest-confidence duplicate wins; first-seen order is preserved.
    """
    seen: dict[str, CandidateFact] = {}
    for candidate in candidates:
        key = candidate.dedup_key
        existing = seen.get(key)
        if existing is None or candidate.confidence > existing.confidence:
            seen[key] = candidate
    return list(seen.values())


@dataclass
class ExtractionResult:
    """Outcome of one document extraction."""

    facts: list[CandidateFact] = field(default_factory=list)
    pass_counts: dict[str, int] = field(default_factory=dict)
    failed_passes: list[str] = field(default_factory=list)
    duplicates_removed: int = 0
    extraction_time_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "facts": len(self.facts),
            "pass_counts": dict(self.pass_counts),
            "failed_passes": list(self.failed_passes),
            "duplicates_removed": self.duplicates_removed,
            "extraction_time_ms": self.extraction_time_ms,
        }


class FactExtractionAgent(BaseSifter):
    """
    Extracts candidate facts from one document's text.

    Attributes:
        window_chars: Characters of document text sent to each model pass
        deterministic: Offline pattern extractor
    """

    def __init__(
        self,
        llm_client: Optional[Any] = None,
        deterministic: Optional[DeterministicExtractor] = None,
        window_chars: Optional[int] = None,
    ):
        """
        Args:
            llm_client: LLMClient implementation; defaults to the Gemini client
            deterministic: Pattern extractor; created when omitted
            window_chars: Prompt window per pass; defaults to settings
        """
        super().__init__(name="FactExtractionAgent")
        self._llm_client = llm_client
        self.deterministic = deterministic or DeterministicExtractor()
        self.window_chars = window_chars or settings.extraction_window_chars

    @property
    def llm_client(self):
        """Lazy-load the model client on first access."""
        if self._llm_client is None:
            from insight_system.llm.gemini_client import get_llm_client

            self._llm_client = get_llm_client()
        return self._llm_client

    async def extract(
        self,
        document_text: str,
        document_type: str = "GENERAL",
        document_id: Optional[str] = None,
    ) -> list[CandidateFact]:
        """Extract deduplicated candidate facts from document text."""
        result = await self.extract_detailed(document_text, document_type, document_id)
        return result.facts

    async def extract_detailed(
        self,
        document_text: str,
        document_type: str = "GENERAL",
        document_id: Optional[str] = None,
    ) -> ExtractionResult:
        """
        Run all passes and report per-pass statistics.

        Args:
            document_text: Plain document text
            document_type: Document kind shown to the model (e.g. FEASIBILITY_STUDY)
            document_id: Source document id stamped on every candidate

        Returns:
            ExtractionResult with deduplicated facts
        """
        started = time.monotonic()
        result = ExtractionResult()

        deterministic_facts = self.deterministic.extract(document_text, document_id)
        result.pass_counts["deterministic"] = len(deterministic_facts)

        window = document_text[: self.window_chars]
        outcomes = await asyncio.gather(
            *(
                self._run_pass(name, method, template, window, document_type, document_id)
                for name, method, template in EXTRACTION_PASSES
            ),
            return_exceptions=True,
        )

        combined = list(deterministic_facts)
        for (name, _, _), outcome in zip(EXTRACTION_PASSES, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.warning(f"Extraction pass {name} raised: {outcome}")
                result.failed_passes.append(name)
                result.pass_counts[name] = 0
                continue
            facts, ok = outcome
            if not ok:
                result.failed_passes.append(name)
            result.pass_counts[name] = len(facts)
            combined.extend(facts)

        result.facts = dedupe_candidates(combined)
        result.duplicates_removed = len(combined) - len(result.facts)
        result.extraction_time_ms = int((time.monotonic() - started) * 1000)

        self.logger.info(
            "Extraction complete",
            document_id=document_id,
            facts=len(result.facts),
            duplicates_removed=result.duplicates_removed,
            failed_passes=result.failed_passes,
        )
        return result

    async def _run_pass(
        self,
        name: str,
        method: str,
        template: str,
        text: str,
        document_type: str,
        document_id: Optional[str],
    ) -> tuple[list[CandidateFact], bool]:
        """Run one model pass. Returns (facts, succeeded)."""
        messages = [
            ChatMessage(role="system", content=EXTRACTION_SYSTEM_PROMPT),
            ChatMessage(
                role="user",
                content=template.format(document_type=document_type, document_text=text),
            ),
        ]
        try:
            response = await self.llm_client.complete(messages, json_mode=True)
        except Exception as e:
            self.logger.warning(f"Extraction pass {name} failed: {e}")
            return [], False

        decoded = decode_payload(response, ExtractionPayload, list_field="facts")
        if isinstance(decoded, DecodeFailure):
            self.logger.warning(f"Extraction pass {name} returned unusable payload: {decoded.reason}")
            return [], False

        facts = [self._to_candidate(raw, method, document_id) for raw in decoded.value.facts]
        self.logger.debug(f"Pass {name} produced {len(facts)} facts")
        return facts, True

    @staticmethod
    def _to_candidate(raw: RawExtractedFact, method: str, document_id: Optional[str]) -> CandidateFact:
        # canonical_key falls back to the section when the model omits a key
        return CandidateFact(
            category=raw.section,
            canonical_key=raw.key or raw.section,
            statement=raw.statement,
            confidence=raw.confidence,
            extraction_method=method,
            source_document_id=document_id,
        )

    async def sift(self, content: dict) -> list[CandidateFact]:
        return await self.extract(
            content.get("text", ""),
            content.get("document_type", "GENERAL"),
            content.get("document_id"),
        )
