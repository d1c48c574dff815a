"""OpenRouteService adapter — geocoding search and directions.

Implements both GeocodingPort and DirectionsPort.  Each endpoint is its own
remote dependency with its own ResilientClient (and therefore its own
circuit), sharing one pooled ``httpx.AsyncClient``.

API reference: https://openrouteservice.org/dev/#/api-docs
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from quotehub.domain.enums import TransportMode
from quotehub.domain.exceptions import ProviderError
from quotehub.domain.value_objects import Coordinate
from quotehub.ports.outbound import DirectionsPort, DirectionsResult, GeocodingPort
from quotehub.shared.resilience import ResilientClient

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openrouteservice.org"


class OpenRouteServiceAdapter(GeocodingPort, DirectionsPort):
    def __init__(
        self,
        api_key: str,
        *,
        geocode_client: ResilientClient,
        directions_client: ResilientClient,
        base_url: str = DEFAULT_BASE_URL,
        boundary_country: str | None = None,
    ) -> None:
        if not api_key:
            logger.warning("ors_api_key_missing")
        self._api_key = api_key
        self._geocode = geocode_client
        self._directions = directions_client
        self._base_url = base_url.rstrip("/")
        self._boundary_country = boundary_country

    # ── Geocoding ────────────────────────────────────────────
    async def search(self, text: str) -> list[Coordinate]:
        params: dict[str, Any] = {"api_key": self._api_key, "text": text}
        if self._boundary_country:
            params["boundary.country"] = self._boundary_country

        try:
            resp = await self._geocode.request(
                "GET", f"{self._base_url}/geocode/search", params=params
            )
        except httpx.HTTPError as exc:
            raise ProviderError(self._geocode.name, f"Geocoding request failed: {exc}") from exc

        candidates: list[Coordinate] = []
        for feature in _features(self._geocode.name, resp):
            coords = None
            try:
                coords = (feature.get("geometry") or {}).get("coordinates")
                if not coords or len(coords) < 2:
                    continue
                candidates.append(Coordinate.from_lng_lat(coords))
            except (AttributeError, TypeError, ValueError):
                logger.debug("ors_geocode_bad_coordinate", text=text, coordinates=coords)
        return candidates

    # ── Directions ───────────────────────────────────────────
    async def directions(
        self,
        origin: Coordinate,
        destination: Coordinate,
        mode: TransportMode,
    ) -> DirectionsResult:
        try:
            resp = await self._directions.request(
                "POST",
                f"{self._base_url}/v2/directions/{mode.value}/geojson",
                json={"coordinates": [origin.as_lng_lat(), destination.as_lng_lat()]},
                headers={"Authorization": self._api_key},
            )
        except httpx.HTTPError as exc:
            raise ProviderError(
                self._directions.name, f"Directions request failed: {exc}"
            ) from exc

        features = _features(self._directions.name, resp)
        if not features:
            raise ProviderError(self._directions.name, "No route found between the given points")

        feature = features[0]
        try:
            summary = (feature.get("properties") or {}).get("summary") or {}
            geometry = (feature.get("geometry") or {}).get("coordinates")
            return DirectionsResult(
                # ORS omits distance/duration when both points coincide.
                distance_meters=float(summary.get("distance", 0.0)),
                duration_seconds=float(summary.get("duration", 0.0)),
                geometry=geometry or None,
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise ProviderError(
                self._directions.name, f"Unreadable directions summary: {exc}"
            ) from exc


def _features(dependency: str, resp: httpx.Response) -> list[dict[str, Any]]:
    """GeoJSON features of a response body; anything unparseable is a ProviderError."""
    try:
        body = resp.json()
    except ValueError as exc:
        raise ProviderError(dependency, "Response body is not JSON") from exc
    if not isinstance(body, dict):
        raise ProviderError(dependency, "Response body is not a GeoJSON object")
    features = body.get("features") or []
    if not isinstance(features, list):
        raise ProviderError(dependency, "GeoJSON features is not a list")
    return [f for f in features if isinstance(f, dict)]
