"""QuoteHub — Application Configuration."""

from __future__ import annotations

import enum
import warnings
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from quotehub.domain.value_objects import COLOMBIA, BoundingBox, ServiceRegion


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class RouteCacheBackend(str, enum.Enum):
    MEMORY = "memory"
    REDIS = "redis"


class RemoteCarrierSettings(BaseModel):
    """A carrier priced over HTTP rather than from a local rate card."""

    provider_id: str
    name: str
    url: str
    transport_mode: str = "Truck"
    currency: str = "COP"


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "quotehub"
    app_env: Environment = Environment.DEVELOPMENT
    app_debug: bool = False
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ── Geocoding (OpenRouteService) ─────────────────────────
    ors_api_key: str = ""
    ors_base_url: str = "https://api.openrouteservice.org"
    ors_timeout_seconds: float = 10.0
    ors_boundary_country: str = "CO"

    # ── Service region ───────────────────────────────────────
    region_name: str = COLOMBIA.country
    region_min_lat: float = COLOMBIA.bounds.min_lat
    region_max_lat: float = COLOMBIA.bounds.max_lat
    region_min_lng: float = COLOMBIA.bounds.min_lng
    region_max_lng: float = COLOMBIA.bounds.max_lng
    region_known_cities: list[str] = Field(default_factory=lambda: list(COLOMBIA.known_cities))
    region_departments: list[str] = Field(default_factory=lambda: list(COLOMBIA.departments))

    # ── Route cache ──────────────────────────────────────────
    route_cache_backend: RouteCacheBackend = RouteCacheBackend.MEMORY
    route_cache_ttl_seconds: float = 3600.0
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "quotehub:route:"

    # ── Quotes ───────────────────────────────────────────────
    provider_timeout_seconds: float = 5.0
    fragile_surcharge: Decimal = Decimal("1.15")
    remote_carriers: list[RemoteCarrierSettings] = Field(default_factory=list)

    # ── Resilience ───────────────────────────────────────────
    circuit_breaker_failure_threshold: int = 5
    circuit_breaker_recovery_timeout_seconds: float = 30.0
    circuit_breaker_success_threshold: int = 2
    circuit_breaker_half_open_max_calls: int = 1
    retry_max_attempts: int = 3
    retry_backoff_base: float = 0.5
    retry_backoff_max: float = 8.0
    retry_jitter: float = 0.5

    # ── Rate limiting ────────────────────────────────────────
    quote_rate_limit_requests: int = 20
    quote_rate_limit_window_seconds: float = 300.0
    rate_limit_key_prefix: str = "quotehub:ratelimit:"

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @property
    def region(self) -> ServiceRegion:
        return ServiceRegion(
            country=self.region_name,
            bounds=BoundingBox(
                min_lat=self.region_min_lat,
                max_lat=self.region_max_lat,
                min_lng=self.region_min_lng,
                max_lng=self.region_max_lng,
            ),
            known_cities=tuple(self.region_known_cities),
            departments=tuple(self.region_departments),
        )

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("fragile_surcharge")
    @classmethod
    def _validate_surcharge(cls, v: Decimal) -> Decimal:
        if v < 1:
            raise ValueError("fragile_surcharge must be >= 1")
        return v

    @model_validator(mode="after")
    def _validate_region(self) -> Settings:
        if self.region_min_lat >= self.region_max_lat:
            raise ValueError("region_min_lat must be less than region_max_lat")
        if self.region_min_lng >= self.region_max_lng:
            raise ValueError("region_min_lng must be less than region_max_lng")
        return self

    @model_validator(mode="after")
    def _guard_production_keys(self) -> Settings:
        if self.app_env == Environment.PRODUCTION and not self.ors_api_key:
            warnings.warn(
                "ors_api_key is empty in production; every route lookup will fail",
                UserWarning,
                stacklevel=2,
            )
        return self


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
