"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Current-conditions lookup (OpenWeatherMap One Call) for located places.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from .cache import CacheStore, classify
from .errors import ErrorKind, ProviderError
from .types import AMBIENT_TOPIC_ID, FetchErr, Freshness, Location

logger = logging.getLogger("info2go.ambient")

OWM_ONECALL_URL = "https://api.openweathermap.org/data/3.0/onecall"


class AmbientConditionsClient:
    """
    Fetches the ``current`` block of the One Call API for one coordinate.

    Args:
        api_key: OpenWeatherMap key.
        transport: Optional httpx transport for tests.
        timeout_s: Request timeout.
    """

    def __init__(
        self,
        api_key: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_s: float = 30.0,
        base_url: str = OWM_ONECALL_URL,
    ) -> None:
        self._api_key = api_key
        self._transport = transport
        self._timeout_s = timeout_s
        self._base_url = base_url

    async def current(self, latitude: float, longitude: float) -> dict[str, Any]:
        params = {
            "lat": latitude,
            "lon": longitude,
            "appid": self._api_key,
            "units": "imperial",
            "exclude": "minutely,hourly,daily,alerts",
        }
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self._timeout_s
            ) as client:
                response = await client.get(self._base_url, params=params)
        except httpx.TransportError as exc:
            raise ProviderError(
                ErrorKind.NETWORK_UNAVAILABLE,
                f"Network error fetching weather data: {exc}",
            ) from exc

        if response.status_code in (401, 403):
            raise ProviderError(ErrorKind.INVALID_CREDENTIAL, "Invalid weather API key.")
        if response.status_code == 429:
            raise ProviderError(ErrorKind.RATE_LIMITED, "Weather API rate limit exceeded.")
        if response.status_code >= 400:
            raise ProviderError(
                ErrorKind.UPSTREAM_REJECTED,
                f"Error fetching weather data: {response.status_code}",
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(
                ErrorKind.UPSTREAM_REJECTED, "Weather response was not valid JSON."
            ) from exc
        current = payload.get("current") if isinstance(payload, dict) else None
        if not isinstance(current, dict):
            raise ProviderError(
                ErrorKind.UPSTREAM_REJECTED, "Weather response had no current conditions."
            )
        return current


class AmbientConditions:
    """Cached current conditions per location, stored under `AMBIENT_TOPIC_ID`."""

    def __init__(
        self,
        client: AmbientConditionsClient,
        cache: CacheStore,
        *,
        ttl_s: float = 600.0,
    ) -> None:
        self._client = client
        self._cache = cache
        self._ttl_s = ttl_s

    async def for_location(self, location: Location) -> dict[str, Any] | None:
        """
        Current conditions for `location`, refetched when outdated.

        Returns ``None`` when the location has no coordinates or the last
        fetch failed.
        """
        if not location.has_coordinates:
            return None

        entry = self._cache.get(location.id, AMBIENT_TOPIC_ID)
        freshness = classify(entry, self._cache.clock(), self._ttl_s)
        if entry is not None and freshness is Freshness.FRESH:
            return json.loads(entry.text)

        try:
            current = await self._client.current(location.latitude, location.longitude)
        except ProviderError as exc:
            logger.warning("Weather lookup failed for %s: %s", location.id, exc.message)
            entry = self._cache.put_error(location.id, AMBIENT_TOPIC_ID, exc.kind, exc.message)
        else:
            entry = self._cache.put(location.id, AMBIENT_TOPIC_ID, json.dumps(current))

        if isinstance(entry.result, FetchErr):
            return None
        return json.loads(entry.text)
