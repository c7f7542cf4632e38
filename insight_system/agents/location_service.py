"""Location extraction, geocoding and consolidation.

Candidate locations come from weather-file headers, extracted performance
parameters, and free-text extraction over the project's facts. When the
text names a place but gives no coordinates, the place is geocoded.

consolidate() ranks candidates by a fixed source priority
(document > weather_file > geocoded), breaking ties by confidence.
"""

from typing import Any, Optional

from loguru import logger
from pydantic import ValidationError

from insight_system.config.prompts.consolidation_prompts import (
    LOCATION_SYSTEM_PROMPT,
    LOCATION_USER_PROMPT,
)
from insight_system.config.settings import settings
from insight_system.data_management.schemas.project_schema import LocationSource
from insight_system.llm.geocoding import Geocoder, GoogleGeocoder
from insight_system.llm.payloads import ChatMessage, DecodeFailure, LocationPayload, decode_payload

GEOCODED_CONFIDENCE = 0.8
FACTS_WINDOW_CHARS = 10000

_LOCATION_FIELDS = """- has_location: whether any location information was found (boolean)
- latitude: latitude in decimal degrees, or null
- longitude: longitude in decimal degrees, or null
- city: city name, or null
- country: country name, or null
- address: full address or location description, or null
- confidence: confidence score 0.0-1.0"""


class LocationService:
    """Finds and ranks candidate project locations."""

    def __init__(self, llm_client: Optional[Any] = None, geocoder: Optional[Geocoder] = None):
        self._llm_client = llm_client
        if geocoder is None and settings.geocoding_api_key:
            geocoder = GoogleGeocoder()
        self.geocoder = geocoder
        self.logger = logger.bind(component="LocationService")

    @property
    def llm_client(self):
        if self._llm_client is None:
            from insight_system.llm.gemini_client import get_llm_client

            self._llm_client = get_llm_client()
        return self._llm_client

    async def extract_location_from_facts(self, facts_summary: str) -> Optional[LocationSource]:
        """
        Ask the model for the site location described by the facts.

        Explicit coordinates become a "document" source with the model's
        confidence. A place name without coordinates is geocoded.

        Returns:
            LocationSource, or None when nothing usable was found
        """
        messages = [
            ChatMessage(role="system", content=LOCATION_SYSTEM_PROMPT),
            ChatMessage(
                role="user",
                content=LOCATION_USER_PROMPT.format(
                    field_spec=_LOCATION_FIELDS,
                    facts_text=facts_summary[:FACTS_WINDOW_CHARS],
                ),
            ),
        ]
        try:
            response = await self.llm_client.complete(messages, json_mode=True)
        except Exception as e:
            self.logger.warning(f"Location extraction failed: {e}")
            return None

        decoded = decode_payload(response, LocationPayload)
        if isinstance(decoded, DecodeFailure):
            self.logger.warning(f"Location payload rejected: {decoded.reason}")
            return None

        payload = decoded.value
        if not payload.has_location:
            return None

        if payload.latitude is not None and payload.longitude is not None:
            try:
                return LocationSource(
                    latitude=payload.latitude,
                    longitude=payload.longitude,
                    source="document",
                    confidence=payload.confidence,
                    details=payload.address or payload.city or "Extracted from documents",
                )
            except ValidationError:
                self.logger.warning(
                    f"Discarding out-of-range coordinates {payload.latitude}, {payload.longitude}"
                )

        place = payload.address
        if not place and payload.city:
            place = f"{payload.city}, {payload.country}" if payload.country else payload.city
        if place:
            return await self.geocode_location(place)
        return None

    async def geocode_location(self, place: str) -> Optional[LocationSource]:
        """Geocode a place name; None without a geocoder or without results."""
        if self.geocoder is None:
            self.logger.debug(f"No geocoder configured, cannot resolve {place!r}")
            return None

        result = await self.geocoder.geocode(place)
        if result is None:
            return None

        self.logger.info(f"Geocoded {place!r} to {result.latitude}, {result.longitude}")
        return LocationSource(
            latitude=result.latitude,
            longitude=result.longitude,
            source="geocoded",
            confidence=GEOCODED_CONFIDENCE,
            details=result.formatted_address or place,
        )

    @staticmethod
    def consolidate(sources: list[LocationSource]) -> Optional[LocationSource]:
        """Highest-priority source, confidence breaking ties."""
        if not sources:
            return None
        return max(sources, key=lambda s: s.rank)
