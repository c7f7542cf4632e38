"""Decoding of generative-model responses into validated payloads.

Model output is untrusted text. decode_payload() turns it into either a
Decoded wrapper holding a validated pydantic model, or a DecodeFailure that
records why decoding failed. Callers branch on the variant; nothing
downstream ever touches the raw dict.

Usage:
    result = decode_payload(response_text, ExtractionPayload)
    if isinstance(result, DecodeFailure):
        logger.warning(result.reason)
        return []
    facts = result.value.facts
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator

from insight_system.utils.confidence import parse_fraction

T = TypeVar("T", bound=BaseModel)


class ChatMessage(BaseModel):
    """Role-tagged message sent to the model."""

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class Decoded(Generic[T]):
    """Successfully decoded and validated payload."""

    value: T
    kind: Literal["decoded"] = "decoded"


@dataclass(frozen=True)
class DecodeFailure:
    """Response that could not be decoded into the expected payload."""

    reason: str
    raw: str = ""
    kind: Literal["failure"] = "failure"


DecodedPayload = Union[Decoded[T], DecodeFailure]


def extract_json_text(response_text: str) -> str:
    """
    Pull the JSON body out of a model response.

    Handles raw JSON, JSON inside a markdown code block, and JSON with
    surrounding prose.
    """
    text = response_text.strip()

    fence = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if fence:
        text = fence.group(1).strip()

    if text.startswith("{") or text.startswith("["):
        return text

    obj_match = re.search(r"\{[\s\S]*\}", text)
    if obj_match:
        return obj_match.group(0)

    array_match = re.search(r"\[[\s\S]*\]", text)
    if array_match:
        return array_match.group(0)

    return text


def decode_payload(
    response_text: Optional[str],
    model: type[T],
    list_field: Optional[str] = None,
) -> DecodedPayload:
    """
    Decode a model response into `model`.

    Args:
        response_text: Raw text returned by the model.
        model: Pydantic model the payload must validate against.
        list_field: When set and the response is a bare JSON array, the
            array is wrapped as {list_field: [...]} before validation.

    Returns:
        Decoded(value) on success, DecodeFailure(reason, raw) otherwise.
    """
    if response_text is None or not response_text.strip():
        return DecodeFailure(reason="empty response")

    body = extract_json_text(response_text)
    try:
        parsed: Any = json.loads(body)
    except json.JSONDecodeError as e:
        return DecodeFailure(reason=f"malformed JSON: {e}", raw=response_text)

    if isinstance(parsed, list) and list_field:
        parsed = {list_field: parsed}

    if not isinstance(parsed, dict):
        return DecodeFailure(
            reason=f"expected JSON object, got {type(parsed).__name__}",
            raw=response_text,
        )

    try:
        return Decoded(value=model.model_validate(parsed))
    except ValidationError as e:
        return DecodeFailure(reason=f"schema mismatch: {e.error_count()} errors", raw=response_text)


# ============================================================================
# Payload contracts for each model call
# ============================================================================


class RawExtractedFact(BaseModel):
    """One fact as returned by an extraction pass."""

    section: str = "Other"
    statement: str = Field(..., min_length=1)
    key: str = ""
    value: str = ""
    confidence: float = 0.5
    extraction_method: str = ""

    @field_validator("section", "key", "value", "extraction_method", mode="before")
    @classmethod
    def null_to_blank(cls, v: Any, info: ValidationInfo) -> str:
        """Models emit null or bare numbers for optional fields."""
        if v is None:
            return "Other" if info.field_name == "section" else ""
        return v if isinstance(v, str) else str(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> float:
        """Percent strings, fractions, 0-100 numbers and grades all map onto 0-1."""
        return parse_fraction(v)


class ExtractionPayload(BaseModel):
    """Response contract shared by all four extraction passes."""

    facts: list[RawExtractedFact] = Field(default_factory=list)

    @field_validator("facts", mode="before")
    @classmethod
    def drop_malformed_items(cls, v: Any) -> Any:
        """Discard items without a usable statement instead of failing the pass."""
        if not isinstance(v, list):
            return v
        kept = []
        for item in v:
            if not isinstance(item, dict):
                continue
            statement = item.get("statement")
            if not statement and isinstance(item.get("value"), str):
                statement = item["value"]
            if not isinstance(statement, str) or not statement.strip():
                continue
            kept.append({**item, "statement": statement.strip()})
        return kept


class LocationPayload(BaseModel):
    """Response contract for free-text location extraction."""

    has_location: bool = False
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def scale_confidence(cls, v: Any) -> float:
        """Accept 0-1, 0-100 or a grade; unusable values mean no confidence."""
        return parse_fraction(v, default=0)
