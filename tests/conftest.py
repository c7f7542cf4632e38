"""Shared fixtures: in-memory storage and a scripted model client.

All tests run without network access. Model behaviour is scripted per
prompt kind through ScriptedLLM, or per call through AsyncMock.
"""

import json
import re
from datetime import timedelta
from typing import Callable, Optional

import pytest

from insight_system.config.prompts import (
    DOMAIN_EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_SYSTEM_PROMPT,
    LOCATION_SYSTEM_PROMPT,
    MERGE_SYSTEM_PROMPT,
    NARRATIVE_SYSTEM_PROMPT,
    SIMILARITY_SYSTEM_PROMPT,
)
from insight_system.data_management.repository import Storage
from insight_system.data_management.schemas.fact_schema import Fact, utc_now

_STATEMENTS = re.compile(r"Statement 1: (.*)\n\nStatement 2: (.*)\n\nSimilarity", re.DOTALL)
_MERGE = re.compile(r"Existing insight: (.*)\n\nNew insight: (.*)\n\nMerge", re.DOTALL)


class ScriptedLLM:
    """
    LLMClient fake that answers by prompt kind.

    Attributes:
        similarity: (statement_a, statement_b) -> 0-100 score
        merge: (statement_a, statement_b) -> fused text
        narrative: section display name -> prose
        performance/financial/location: dict returned as JSON, or None for "{}"
        extraction: pass template head -> list of fact dicts
        calls: (kind, user prompt) for every call
    """

    def __init__(
        self,
        similarity: Optional[Callable[[str, str], int]] = None,
        merge: Optional[Callable[[str, str], str]] = None,
        narrative: Optional[Callable[[str], str]] = None,
        performance: Optional[dict] = None,
        financial: Optional[dict] = None,
        location: Optional[dict] = None,
        extraction: Optional[Callable[[str], list]] = None,
    ):
        self.similarity = similarity or (lambda a, b: 100 if a == b else 0)
        self.merge = merge or (lambda a, b: f"{a} ({b})")
        self.narrative = narrative or (lambda section: f"Narrative for {section}.")
        self.performance = performance
        self.financial = financial
        self.location = location
        self.extraction = extraction or (lambda prompt: [])
        self.calls: list[tuple[str, str]] = []

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.calls]

    async def complete(self, messages, json_mode: bool = False, temperature: float = 0.2) -> str:
        system = messages[0].content
        user = messages[-1].content

        if system == SIMILARITY_SYSTEM_PROMPT:
            self.calls.append(("similarity", user))
            a, b = _STATEMENTS.search(user).groups()
            return str(self.similarity(a, b))
        if system == MERGE_SYSTEM_PROMPT:
            self.calls.append(("merge", user))
            a, b = _MERGE.search(user).groups()
            return self.merge(a, b)
        if system == NARRATIVE_SYSTEM_PROMPT:
            self.calls.append(("narrative", user))
            section = user.split("\n", 1)[0].removeprefix("Section: ")
            return self.narrative(section)
        if system == DOMAIN_EXTRACTION_SYSTEM_PROMPT:
            kind = "financial" if "financial data" in user else "performance"
            self.calls.append((kind, user))
            return json.dumps(getattr(self, kind) or {})
        if system == LOCATION_SYSTEM_PROMPT:
            self.calls.append(("location", user))
            return json.dumps(self.location or {"has_location": False})
        if system == EXTRACTION_SYSTEM_PROMPT:
            self.calls.append(("extraction", user))
            return json.dumps({"facts": self.extraction(user)})

        raise AssertionError(f"unexpected prompt: {system[:60]!r}")


@pytest.fixture
def storage():
    """Memory-only stores."""
    return Storage()


@pytest.fixture
def repo(storage):
    return storage.repository("proj-1")


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM instances."""
    return ScriptedLLM


@pytest.fixture
def make_fact(repo):
    """
    Factory storing a live fact.

    Successive calls get strictly increasing created_at so "oldest first"
    ordering is deterministic.
    """
    counter = {"n": 0}
    base = utc_now()

    async def _make(
        statement: str,
        documents: tuple[str, ...] = ("doc-1",),
        key: str = "capacity",
        category: str = "Technical_Design",
        confidence: int = 80,
        enrichment_count: int = 1,
    ) -> Fact:
        counter["n"] += 1
        fact = Fact(
            project_id=repo.project_id,
            canonical_key=key,
            category=category,
            statement=statement,
            confidence=confidence,
            source_document_ids=list(documents),
            extraction_method="llm_structured_v2",
            enrichment_count=enrichment_count,
            created_at=base + timedelta(seconds=counter["n"]),
        )
        return await repo.add_fact(fact)

    return _make
