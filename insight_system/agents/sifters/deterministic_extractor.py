"""Offline regex and keyword extraction.

Each pattern class carries a fixed confidence:

    capacity     0.95   every match
    dates        0.85   first 10 matches
    money        0.90   every match
    voltage      0.92   every match
    technology   0.80   once per keyword
    risk         0.70   first 5 matches, reported with their sentence

The pass never calls out and never raises on text input.
"""

import re
from typing import Optional

from insight_system.agents.sifters.base_sifter import BaseSifter
from insight_system.config.sections import (
    DEPENDENCIES,
    FINANCIAL_STRUCTURE,
    RISKS_AND_ISSUES,
    TECHNICAL_DESIGN,
)
from insight_system.data_management.schemas.fact_schema import CandidateFact, ExtractionMethod

CAPACITY_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(MWp|MWac|MWdc|MW|kWp|kW)\b", re.IGNORECASE)
DATE_PATTERN = re.compile(
    r"\b(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}|\d{4}[/\-]\d{1,2}[/\-]\d{1,2}|"
    r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{1,2},?\s+\d{4})\b",
    re.IGNORECASE,
)
MONEY_PATTERN = re.compile(
    r"([€$£])\s*(\d+(?:,\d{3})*(?:\.\d+)?)\s*(million|billion|M|B)?\b",
    re.IGNORECASE,
)
VOLTAGE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(kV|kilovolts?)\b", re.IGNORECASE)
RISK_PATTERN = re.compile(
    r"\b(risks?|constraints?|challenges?|issues?|concerns?|limitations?|barriers?|"
    r"obstacles?|threats?|vulnerabilit(?:y|ies))\b",
    re.IGNORECASE,
)
TECHNOLOGY_KEYWORDS: tuple[str, ...] = (
    "solar",
    "wind",
    "battery",
    "BESS",
    "photovoltaic",
    "PV",
    "onshore",
    "offshore",
)
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")

MAX_DATES = 10
MAX_RISKS = 5
MAX_RISK_SENTENCE = 300


def _sentence_around(text: str, start: int) -> str:
    """Sentence of text containing the character at start."""
    begin = 0
    for match in _SENTENCE_SPLIT.finditer(text):
        if match.end() > start:
            end = match.start()
            return text[begin:end].strip()[:MAX_RISK_SENTENCE]
        begin = match.end()
    return text[begin:].strip()[:MAX_RISK_SENTENCE]


class DeterministicExtractor(BaseSifter):
    """Pattern-matching extraction pass producing CandidateFacts."""

    def __init__(self):
        super().__init__(name="DeterministicExtractor")

    def extract(self, text: str, document_id: Optional[str] = None) -> list[CandidateFact]:
        """
        Run every pattern class over text.

        Args:
            text: Document text
            document_id: Source document to tag candidates with

        Returns:
            Candidate facts in pattern-class order
        """
        if not text:
            return []

        facts: list[CandidateFact] = []

        def add(category: str, key: str, statement: str, confidence: float) -> None:
            facts.append(
                CandidateFact(
                    category=category,
                    canonical_key=key,
                    statement=statement,
                    confidence=confidence,
                    extraction_method=ExtractionMethod.DETERMINISTIC.value,
                    source_document_id=document_id,
                )
            )

        for match in CAPACITY_PATTERN.finditer(text):
            add(TECHNICAL_DESIGN, "capacity", f"{match.group(1)} {match.group(2)}", 0.95)

        for match in list(DATE_PATTERN.finditer(text))[:MAX_DATES]:
            add(DEPENDENCIES, "date_reference", match.group(0), 0.85)

        for match in MONEY_PATTERN.finditer(text):
            symbol, amount, scale = match.groups()
            statement = f"{symbol}{amount}" + (f" {scale}" if scale else "")
            add(FINANCIAL_STRUCTURE, "monetary_amount", statement, 0.90)

        for match in VOLTAGE_PATTERN.finditer(text):
            add(DEPENDENCIES, "voltage_level", f"{match.group(1)} {match.group(2)}", 0.92)

        for keyword in TECHNOLOGY_KEYWORDS:
            if re.search(rf"\b{re.escape(keyword)}\b", text, re.IGNORECASE):
                add(TECHNICAL_DESIGN, "technology_type", keyword, 0.80)

        for match in list(RISK_PATTERN.finditer(text))[:MAX_RISKS]:
            sentence = _sentence_around(text, match.start()) or match.group(0)
            add(RISKS_AND_ISSUES, "risk_indicator", sentence, 0.70)

        self.logger.debug("Deterministic extraction complete", facts=len(facts))
        return facts

    async def sift(self, content: dict) -> list[CandidateFact]:
        return self.extract(content.get("text", ""), content.get("document_id"))
