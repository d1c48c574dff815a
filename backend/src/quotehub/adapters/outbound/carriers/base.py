"""Shared carrier adapter template."""

from __future__ import annotations

import math
from abc import abstractmethod

from quotehub.domain.entities import MAX_WEIGHT_KG, MIN_WEIGHT_KG, Quote
from quotehub.domain.exceptions import ValidationError
from quotehub.ports.outbound import ShippingProviderPort


class BaseCarrierAdapter(ShippingProviderPort):
    """Validation shared by every carrier; subclasses supply ``_quote``.

    Adapters hold no per-request state and may be called concurrently.
    """

    provider_id: str = ""
    provider_name: str = ""

    def validate(self, weight: float, destination: str) -> None:
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) or not math.isfinite(weight):
            raise ValidationError("Weight must be a number", field="weight", value=weight)
        if weight < MIN_WEIGHT_KG:
            raise ValidationError(
                f"Weight must be greater than {MIN_WEIGHT_KG} kg", field="weight", value=weight
            )
        if weight > MAX_WEIGHT_KG:
            raise ValidationError(
                f"Weight must be less than or equal to {MAX_WEIGHT_KG:g} kg",
                field="weight",
                value=weight,
            )
        if not destination or not destination.strip():
            raise ValidationError("Destination is required", field="destination", value=destination)

    async def calculate_shipping(self, weight: float, destination: str) -> Quote:
        self.validate(weight, destination)
        return await self._quote(weight, destination.strip())

    @abstractmethod
    async def _quote(self, weight: float, destination: str) -> Quote: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider_id={self.provider_id!r})"
