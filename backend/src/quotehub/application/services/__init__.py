"""Application services — orchestrate ports and domain logic per use case."""

from quotehub.application.services.geocoding_router import GeocodingRouter
from quotehub.application.services.provider_health import ProviderHealthService
from quotehub.application.services.quote_aggregator import QuoteAggregator

__all__ = ["GeocodingRouter", "ProviderHealthService", "QuoteAggregator"]
