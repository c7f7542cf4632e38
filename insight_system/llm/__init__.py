"""Generative-model and geocoding access."""

from insight_system.llm.payloads import (
    ChatMessage,
    Decoded,
    DecodedPayload,
    DecodeFailure,
    decode_payload,
)

__all__ = [
    "ChatMessage",
    "Decoded",
    "DecodedPayload",
    "DecodeFailure",
    "decode_payload",
]
