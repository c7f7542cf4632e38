"""Address geocoding over the Google Maps Geocoding HTTP API."""

from typing import Optional, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from insight_system.config.settings import settings


class GeocodeResult(BaseModel):
    """Coordinates resolved for an address."""

    latitude: float
    longitude: float
    formatted_address: str = ""


class Geocoder(Protocol):
    """Geocoding capability consumed by the location service."""

    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        ...


class GoogleGeocoder:
    """
    Geocoder backed by /maps/api/geocode/json.

    Transient HTTP failures are retried with exponential backoff. A
    response without results, or a failure after retries, yields None.

    Usage:
        async with GoogleGeocoder() as geocoder:
            result = await geocoder.geocode("Kalgoorlie, Australia")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.geocoding_api_key
        self.base_url = (base_url or settings.geocoding_base_url).rstrip("/")
        self.timeout = timeout
        self.http_client = http_client
        self._owns_client = http_client is None
        self.logger = logger.bind(component="GoogleGeocoder")

    async def __aenter__(self):
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_client and self.http_client:
            await self.http_client.aclose()
            self.http_client = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type((httpx.TransportError, httpx.HTTPStatusError)),
        reraise=True,
    )
    async def _request(self, address: str) -> dict:
        if self.http_client is None:
            raise RuntimeError("HTTP client not initialized")

        response = await self.http_client.get(
            f"{self.base_url}/maps/api/geocode/json",
            params={"address": address, "key": self.api_key},
        )
        response.raise_for_status()
        return response.json()

    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        """
        Resolve an address or place name to coordinates.

        Args:
            address: Free-form address, city or "city, country"

        Returns:
            GeocodeResult for the top match, or None
        """
        if not address.strip():
            return None

        if self.http_client is None:
            async with self:
                return await self.geocode(address)

        try:
            payload = await self._request(address)
        except httpx.HTTPError as e:
            self.logger.warning(f"Geocoding failed for {address!r}: {e}")
            return None

        if payload.get("status") != "OK" or not payload.get("results"):
            self.logger.info("Geocoding returned no results", address=address, status=payload.get("status"))
            return None

        top = payload["results"][0]
        location = top.get("geometry", {}).get("location", {})
        try:
            return GeocodeResult(
                latitude=float(location["lat"]),
                longitude=float(location["lng"]),
                formatted_address=top.get("formatted_address", ""),
            )
        except (KeyError, TypeError, ValueError):
            self.logger.warning("Geocoding result missing coordinates", address=address)
            return None
