"""Carrier availability probe."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping

import structlog

from quotehub.domain.entities import AdapterHealth, SystemHealth
from quotehub.domain.enums import AdapterStatus, SystemStatus
from quotehub.ports.outbound import ShippingProviderPort

logger = structlog.get_logger(__name__)

PROBE_WEIGHT_KG = 1.0


class ProviderHealthService:
    """Prices a 1 kg parcel with every carrier to see who answers."""

    def __init__(
        self,
        providers: Mapping[str, ShippingProviderPort],
        *,
        probe_destination: str,
        timeout_s: float = 5.0,
    ) -> None:
        self._providers = dict(providers)
        self._probe_destination = probe_destination
        self._timeout_s = timeout_s

    async def check_all(self) -> SystemHealth:
        results = await asyncio.gather(
            *(self._probe(pid, adapter) for pid, adapter in self._providers.items())
        )
        online = sum(1 for r in results if r.status == AdapterStatus.ONLINE)
        if results and online == len(results):
            status = SystemStatus.ONLINE
        elif online > 0:
            status = SystemStatus.DEGRADED
        else:
            status = SystemStatus.OFFLINE

        logger.info("provider_health_checked", status=status.value, online=online, total=len(results))
        return SystemHealth(status=status, adapters=tuple(results))

    async def _probe(self, provider_id: str, adapter: ShippingProviderPort) -> AdapterHealth:
        start = time.monotonic()
        try:
            await asyncio.wait_for(
                adapter.calculate_shipping(PROBE_WEIGHT_KG, self._probe_destination),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            error = f"No response within {self._timeout_s:g}s"
        except Exception as exc:
            error = str(exc) or type(exc).__name__
        else:
            return AdapterHealth(
                provider_id=provider_id,
                provider_name=adapter.provider_name,
                status=AdapterStatus.ONLINE,
                response_time_ms=round((time.monotonic() - start) * 1000, 2),
            )

        logger.warning("provider_probe_failed", provider=provider_id, error=error)
        return AdapterHealth(
            provider_id=provider_id,
            provider_name=adapter.provider_name,
            status=AdapterStatus.OFFLINE,
            error=error,
        )
