"""Fake shipping cost adapter: fixed per-location quotes for tests."""

from omnistock.shipping.port import ShippingCostPort


class FakeShippingCost(ShippingCostPort):
    """Quotes a configured cost per location, or a flat default."""

    def __init__(self):
        self.default_cost = 10.0
        self.costs: dict[str, float] = {}
        self.quotes: list[tuple[str, tuple | None]] = []

    def configure(self, costs: dict[str, float] | None = None, default_cost: float = 10.0):
        """Configure the fake quotes for testing."""
        self.costs = dict(costs or {})
        self.default_cost = default_cost

    def reset(self):
        self.costs = {}
        self.default_cost = 10.0
        self.quotes = []

    def quote(self, candidate, destination, weight=None, quantity=1) -> float:
        self.quotes.append((candidate.location_id, destination))
        return self.costs.get(candidate.location_id, self.default_cost)
