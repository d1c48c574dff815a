"""Remote carrier adapter — prices parcels through a carrier's rating endpoint.

Request::

    POST <url>  {"weight": 4.5, "destination": "Cali"}

Response::

    {"price": 109375, "currency": "COP", "minDays": 2, "maxDays": 4,
     "transportMode": "Truck"}
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

import httpx
import structlog

from quotehub.adapters.outbound.carriers.base import BaseCarrierAdapter
from quotehub.domain.entities import Quote
from quotehub.domain.exceptions import ProviderError, ValidationError
from quotehub.shared.resilience import ResilientClient

logger = structlog.get_logger(__name__)


class HttpCarrierAdapter(BaseCarrierAdapter):
    def __init__(
        self,
        provider_id: str,
        provider_name: str,
        url: str,
        *,
        client: ResilientClient,
        transport_mode: str = "Truck",
        currency: str = "COP",
    ) -> None:
        self.provider_id = provider_id
        self.provider_name = provider_name
        self._url = url
        self._client = client
        self._transport_mode = transport_mode
        self._currency = currency
        logger.info("http_carrier_initialized", provider=provider_id, url=url)

    @property
    def client(self) -> ResilientClient:
        return self._client

    async def _quote(self, weight: float, destination: str) -> Quote:
        try:
            resp = await self._client.request(
                "POST",
                self._url,
                json={"weight": weight, "destination": destination},
            )
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in (400, 422):
                raise ValidationError(_error_detail(exc.response), field="carrier") from exc
            raise ProviderError(
                self.provider_id, f"{self.provider_name} returned HTTP {status}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                self.provider_id, f"{self.provider_name} request failed: {exc}"
            ) from exc

        return self._parse(resp)

    def _parse(self, resp: httpx.Response) -> Quote:
        try:
            data = resp.json()
            return Quote(
                provider_id=self.provider_id,
                provider_name=self.provider_name,
                price=Decimal(str(data["price"])),
                currency=str(data.get("currency") or self._currency),
                min_days=int(data["minDays"]),
                max_days=int(data["maxDays"]),
                transport_mode=str(data.get("transportMode") or self._transport_mode),
            )
        except (KeyError, TypeError, ValueError, InvalidOperation, ValidationError) as exc:
            logger.warning("http_carrier_bad_payload", provider=self.provider_id, error=str(exc))
            raise ProviderError(
                self.provider_id, f"{self.provider_name} sent an unusable quote"
            ) from exc

    async def close(self) -> None:
        await self._client.aclose()


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or "Rejected by carrier"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or "Rejected by carrier")
    return "Rejected by carrier"
