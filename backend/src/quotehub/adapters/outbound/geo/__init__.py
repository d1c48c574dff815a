"""Geocoding and routing adapters."""

from quotehub.adapters.outbound.geo.openrouteservice import (
    DEFAULT_BASE_URL,
    OpenRouteServiceAdapter,
)

__all__ = ["DEFAULT_BASE_URL", "OpenRouteServiceAdapter"]
