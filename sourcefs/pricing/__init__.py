"""Token pricing lookups."""

from sourcefs.pricing.base import BasePricingLookup, NoPricing, Pricing, Rates
from sourcefs.pricing.models_dev import ModelsDevPricing, build_pricing_index

__all__ = ["BasePricingLookup", "NoPricing", "Pricing", "Rates", "ModelsDevPricing", "build_pricing_index"]
