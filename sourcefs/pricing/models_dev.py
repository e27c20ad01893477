"""
Token pricing from the models.dev catalog.

The catalog (``https://models.dev/api.json``) maps providers to models and
their per-million-token costs. It is fetched with aiohttp, indexed once and
cached for a TTL; concurrent lookups share a single in-flight fetch.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from sourcefs.errors import CommonHints, PricingError
from sourcefs.metrics import Metrics
from sourcefs.pricing.base import BasePricingLookup, Pricing, Rates

MODELS_DEV_URL = "https://models.dev/api.json"
DEFAULT_TTL_SECONDS = 60 * 60
FETCH_TIMEOUT_SECONDS = 30


def _safe_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def _to_rates(cost: Any) -> Rates:
    cost = cost if isinstance(cost, dict) else {}
    return Rates(
        input=_safe_number(cost.get("input")),
        output=_safe_number(cost.get("output")),
        reasoning=_safe_number(cost.get("reasoning")),
        cache_read=_safe_number(cost.get("cache_read")),
        cache_write=_safe_number(cost.get("cache_write")),
    )


@dataclass
class PricingIndex:
    """Pricing keyed by (provider, model) and by bare or provider-qualified model id."""

    by_provider_and_model: dict[tuple[str, str], Pricing] = field(default_factory=dict)
    by_id: dict[str, Pricing] = field(default_factory=dict)

    def find(self, provider_id: str, model_id: str) -> Pricing | None:
        direct = self.by_provider_and_model.get((provider_id, model_id))
        if direct is not None:
            return direct
        return self.by_id.get(model_id) or self.by_id.get(f"{provider_id}/{model_id}")


def build_pricing_index(catalog: dict[str, Any]) -> PricingIndex:
    """Index a models.dev catalog, skipping models without any known rate."""
    index = PricingIndex()

    for provider_key, provider in catalog.items():
        if not isinstance(provider, dict):
            continue
        models = provider.get("models") or {}
        for model_key, model in models.items():
            if not isinstance(model, dict):
                continue
            rates = _to_rates(model.get("cost"))
            if not rates.has_any():
                continue

            model_id = model.get("id")
            has_id = isinstance(model_id, str) and model_id.strip() != ""
            pricing = Pricing(model_key=(model_id if has_id else model_key).strip(), rates=rates)

            index.by_provider_and_model[(provider_key, model_key)] = pricing
            index.by_id.setdefault(model_key, pricing)
            if has_id:
                index.by_id.setdefault(model_id, pricing)
            index.by_id.setdefault(f"{provider_key}/{model_key}", pricing)

    return index


class ModelsDevPricing(BasePricingLookup):
    """Pricing lookup backed by the models.dev catalog."""

    def __init__(self, url: str = MODELS_DEV_URL, ttl_seconds: float = DEFAULT_TTL_SECONDS):
        """
        Initialize the models.dev pricing lookup.

        Args:
            url: Catalog URL.
            ttl_seconds: How long a fetched catalog stays fresh.
        """
        self.url = url
        self.ttl_seconds = ttl_seconds
        self._cached: tuple[float, PricingIndex] | None = None
        self._in_flight: asyncio.Task | None = None
        self._prefetch_task: asyncio.Task | None = None

    async def _fetch_catalog(self) -> dict[str, Any]:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                self.url, timeout=aiohttp.ClientTimeout(total=FETCH_TIMEOUT_SECONDS)
            ) as response:
                if response.status != 200:
                    raise PricingError(
                        f"models.dev fetch failed: {response.status}",
                        hint=CommonHints.CHECK_NETWORK,
                    )
                return await response.json(content_type=None)

    async def _fetch_index(self) -> PricingIndex:
        start = time.perf_counter()
        catalog = await self._fetch_catalog()
        index = build_pricing_index(catalog if isinstance(catalog, dict) else {})
        Metrics.info(
            "pricing.fetch",
            url=self.url,
            models=len(index.by_provider_and_model),
            ms=round((time.perf_counter() - start) * 1000),
        )
        return index

    def _clear_in_flight(self, task: asyncio.Task) -> None:
        if self._in_flight is task:
            self._in_flight = None
        # Mark the failure as seen even when every awaiter has already timed out
        if not task.cancelled() and task.exception() is not None:
            Metrics.error("pricing.fetch.failed", error=Metrics.error_info(task.exception()))

    async def get_index(self) -> PricingIndex:
        """Return the cached index, fetching it when missing or stale."""
        now = time.monotonic()
        if self._cached is not None and now - self._cached[0] < self.ttl_seconds:
            return self._cached[1]

        if self._in_flight is None:
            task = asyncio.ensure_future(self._fetch_index())
            task.add_done_callback(self._clear_in_flight)
            self._in_flight = task

        # Shielded so a caller's timeout does not cancel the shared fetch
        index = await asyncio.shield(self._in_flight)
        self._cached = (now, index)
        return index

    async def lookup(
        self, provider_id: str, model_id: str, timeout_ms: int | None = None
    ) -> Pricing | None:
        if not provider_id or not model_id:
            return None

        try:
            if timeout_ms:
                index = await asyncio.wait_for(self.get_index(), timeout_ms / 1000)
            else:
                index = await self.get_index()
        except asyncio.TimeoutError:
            return None
        except Exception:
            # Reported once by _clear_in_flight
            return None

        return index.find(provider_id, model_id)

    def prefetch(self) -> None:
        """Start fetching the catalog in the background, if an event loop is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        async def warm() -> None:
            try:
                await self.get_index()
            except Exception:
                # Reported once by _clear_in_flight
                return

        self._prefetch_task = loop.create_task(warm())
