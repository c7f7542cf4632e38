"""Common shape of the document extractors.

A sifter turns one document into CandidateFacts:
- DeterministicExtractor: regex and keyword patterns only
- FactExtractionAgent: patterns plus the model passes, deduplicated

Callers either await ``sift`` directly (the ingestion pipeline) or go
through ``process``, which never raises and reports failures in its
result dict.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from loguru import logger

from insight_system.data_management.schemas.fact_schema import CandidateFact


@dataclass
class SiftStats:
    documents: int = 0
    candidates: int = 0
    failures: int = 0

    @property
    def failure_rate(self) -> float:
        attempts = self.documents + self.failures
        return self.failures / attempts if attempts else 0.0


class BaseSifter(ABC):
    """
    Extractor of candidate facts from one document.

    Attributes:
        name: Extractor name, also its log component
        stats: Running document, candidate and failure counts
    """

    def __init__(self, name: str):
        self.name = name
        self.stats = SiftStats()
        self.logger = logger.bind(component=name)

    @abstractmethod
    async def sift(self, content: dict) -> list[CandidateFact]:
        """
        Extract candidates from content.

        Args:
            content: 'text', plus optional 'document_type' and 'document_id'
        """

    async def process(self, input_data: dict) -> dict:
        """
        Sift input_data["content"] and report the outcome.

        Returns:
            {"success": True, "results": [...], "count": n} or
            {"success": False, "error": "...", "results": []}
        """
        content = input_data.get("content") or {}
        try:
            results = await self.sift(content)
        except Exception as e:
            self.stats.failures += 1
            self.logger.opt(exception=e).error(
                f"Extraction failed for document {content.get('document_id')}: {e}"
            )
            return {"success": False, "error": str(e), "results": []}

        self.stats.documents += 1
        self.stats.candidates += len(results)
        return {"success": True, "results": results, "count": len(results)}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(documents={self.stats.documents})"
