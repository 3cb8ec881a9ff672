"""Shipping cost adapter registry: pluggable cost quoting for allocation."""

import os

_shipping_cost_instance = None


def get_shipping_cost():
    """Return the configured shipping cost adapter (singleton).

    Uses the distance-rate adapter by default. Configure via the
    SHIPPING_COST_ADAPTER environment variable ("distance_rate" or "fake").
    """
    global _shipping_cost_instance
    if _shipping_cost_instance is None:
        adapter = os.environ.get("SHIPPING_COST_ADAPTER", "distance_rate")
        if adapter == "distance_rate":
            from omnistock.shipping.distance_rate import DistanceRateShippingCost

            _shipping_cost_instance = DistanceRateShippingCost()
        elif adapter == "fake":
            from omnistock.shipping.fake_adapter import FakeShippingCost

            _shipping_cost_instance = FakeShippingCost()
        else:
            raise ValueError(f"Unknown shipping cost adapter: {adapter}")
    return _shipping_cost_instance


def reset_shipping_cost():
    """Reset the shipping cost singleton (useful for testing)."""
    global _shipping_cost_instance
    _shipping_cost_instance = None
