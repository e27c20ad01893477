"""
Abstract base class for SourceFS token pricing lookups.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Rates:
    """USD per million tokens, per category. Unknown rates stay None."""

    input: float | None = None
    output: float | None = None
    reasoning: float | None = None
    cache_read: float | None = None
    cache_write: float | None = None

    def has_any(self) -> bool:
        return any(
            value is not None
            for value in (self.input, self.output, self.reasoning, self.cache_read, self.cache_write)
        )

    def to_dict(self) -> dict[str, float]:
        result = {}
        for key, value in (
            ("input", self.input),
            ("output", self.output),
            ("reasoning", self.reasoning),
            ("cacheRead", self.cache_read),
            ("cacheWrite", self.cache_write),
        ):
            if value is not None:
                result[key] = value
        return result


@dataclass(frozen=True)
class Pricing:
    """Token prices for one model."""

    model_key: str
    rates: Rates = field(default_factory=Rates)
    source: str = "models.dev"

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "modelKey": self.model_key,
            "ratesUsdPerMTokens": self.rates.to_dict(),
        }


class BasePricingLookup(ABC):
    """Abstract base class for pricing lookups."""

    @abstractmethod
    async def lookup(
        self, provider_id: str, model_id: str, timeout_ms: int | None = None
    ) -> Pricing | None:
        """
        Look up token prices for a model.

        Args:
            provider_id: Provider identifier.
            model_id: Model identifier.
            timeout_ms: Give up after this many milliseconds.

        Returns:
            The model's pricing, or None when unknown, unavailable or too slow.
            Never raises.
        """
        pass

    def prefetch(self) -> None:
        """Warm any cache in the background. Optional."""
        return None


class NoPricing(BasePricingLookup):
    """Pricing lookup that knows no prices."""

    async def lookup(
        self, provider_id: str, model_id: str, timeout_ms: int | None = None
    ) -> Pricing | None:
        return None
