"""Address suggestion and reverse-geocoding backends.

``GoogleGeocoder`` talks to the Places Autocomplete and Geocoding web
services over httpx. The API key is read from ``GOOGLE_MAPS_API_KEY``.
Non-OK responses raise ``GeocodingError``; callers decide how loudly to
surface it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

AUTOCOMPLETE_URL = "https://maps.googleapis.com/maps/api/place/autocomplete/json"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class GeocodingError(RuntimeError):
    """Raised when a geocoding backend cannot answer."""


class LocationError(RuntimeError):
    """Raised when the device location cannot be acquired."""


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class AddressCandidate:
    description: str
    place_id: str = ""


class Geocoder(ABC):
    @abstractmethod
    async def suggest(self, text: str) -> list[AddressCandidate]:
        """Return address suggestions for partially typed ``text``."""

    @abstractmethod
    async def reverse_geocode(self, coords: Coordinates) -> str:
        """Return the formatted street address at ``coords``."""


class LocationProvider(ABC):
    @abstractmethod
    async def current_location(self) -> Coordinates:
        """Acquire the device position. Raises ``LocationError`` on failure."""


class StaticLocation(LocationProvider):
    """Coordinates already captured by the browser and posted to the server."""

    def __init__(self, lat: float | None, lng: float | None) -> None:
        self._lat = lat
        self._lng = lng

    async def current_location(self) -> Coordinates:
        if self._lat is None or self._lng is None:
            raise LocationError("Location permission was denied.")
        if not (-90 <= self._lat <= 90 and -180 <= self._lng <= 180):
            raise LocationError("The reported location is out of range.")
        return Coordinates(lat=self._lat, lng=self._lng)


class GoogleGeocoder(Geocoder):
    def __init__(
        self,
        api_key: str,
        timeout: float = 3.0,
        country: str = "ca",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY is required for GoogleGeocoder")
        self._api_key = api_key
        self._timeout = timeout
        self._country = country.lower()
        self._client = client

    async def _get(self, url: str, params: dict) -> dict:
        params = {**params, "key": self._api_key}
        try:
            if self._client is not None:
                resp = await self._client.get(url, params=params, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.get(url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            raise GeocodingError(f"Geocoding request failed: {exc}") from exc

        status = data.get("status", "")
        if status not in ("OK", "ZERO_RESULTS"):
            raise GeocodingError(
                f"Geocoding returned {status}: {data.get('error_message', '')}".strip()
            )
        return data

    async def suggest(self, text: str) -> list[AddressCandidate]:
        data = await self._get(
            AUTOCOMPLETE_URL,
            {
                "input": text,
                "types": "address",
                "components": f"country:{self._country}",
            },
        )
        return [
            AddressCandidate(
                description=p.get("description", ""),
                place_id=p.get("place_id", ""),
            )
            for p in data.get("predictions", [])
            if p.get("description")
        ]

    async def reverse_geocode(self, coords: Coordinates) -> str:
        data = await self._get(
            GEOCODE_URL,
            {"latlng": f"{coords.lat},{coords.lng}", "result_type": "street_address"},
        )
        results = data.get("results", [])
        if not results:
            raise GeocodingError("No street address found at this location.")
        return results[0].get("formatted_address", "")
