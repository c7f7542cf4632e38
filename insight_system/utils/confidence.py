"""Confidence scale conversions.

Stored facts carry an integer confidence on a 0-100 scale. Extraction
produces 0.0-1.0 floats, legacy records carry "95%" strings or word grades.
Every conversion funnels through round_half_up() and clamp_confidence() so
the same input always lands on the same integer.
"""

import math
from typing import Any, Union

CONFIDENCE_GRADES = {
    "high": 85,
    "medium": 65,
    "low": 40,
}

DEFAULT_CONFIDENCE = 50


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def clamp_confidence(value: Union[int, float]) -> int:
    """Round and clamp a 0-100 confidence into [0, 100]; NaN and infinities become the default."""
    if not math.isfinite(value):
        return DEFAULT_CONFIDENCE
    return max(0, min(100, round_half_up(float(value))))


def fraction_to_percent(value: float) -> int:
    """Convert a 0.0-1.0 extraction confidence to the 0-100 scale.

    Values above 1.0 are taken to already be percentages.
    """
    if value > 1.0:
        return clamp_confidence(value)
    return clamp_confidence(value * 100)


def parse_confidence(raw: Any, default: int = DEFAULT_CONFIDENCE) -> int:
    """
    Parse any stored or model-supplied confidence into 0-100.

    Accepts "95%", "95", "0.9", 0.9, 95, and the grades high/medium/low.
    Unparseable or non-finite input yields default.
    """
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):
            return default
        return fraction_to_percent(float(raw))
    if not isinstance(raw, str):
        return default

    text = raw.strip().lower()
    if text in CONFIDENCE_GRADES:
        return CONFIDENCE_GRADES[text]

    if text.endswith("%"):
        text = text[:-1].strip()
        try:
            number = float(text)
        except ValueError:
            return default
        return clamp_confidence(number) if math.isfinite(number) else default

    try:
        number = float(text)
    except ValueError:
        return default
    return fraction_to_percent(number) if math.isfinite(number) else default


def parse_fraction(raw: Any, default: int = DEFAULT_CONFIDENCE) -> float:
    """parse_confidence() on the 0.0-1.0 scale used by extraction payloads."""
    return parse_confidence(raw, default) / 100


def format_confidence(value: int) -> str:
    """Render a 0-100 confidence as a percentage string."""
    return f"{clamp_confidence(value)}%"


def weighted_confidence(existing: int, candidate: int, enrichment_count: int) -> int:
    """
    Enrichment-weighted running mean of two confidences.

    (existing * n + candidate) / (n + 1), with n floored at 1.
    """
    n = max(1, enrichment_count)
    return clamp_confidence((existing * n + candidate) / (n + 1))
