"""Fulfillment strategies: choose the location that serves an order line.

Each strategy ranks the eligible candidates its own way. Selection returns
the best-ranked candidate with enough stock; failing that, the best-ranked
backorderable candidate; failing that, NoFulfillableLocation. Ties in every
ranking go to the lower priority value, then to the location id so results
are deterministic.
"""

from enum import Enum

from omnistock.allocation.candidates import Candidate, CustomerContext
from omnistock.errors import NoFulfillableLocation
from omnistock.shipping import get_shipping_cost


class StrategyKind(Enum):
    NEAREST_LOCATION = "NearestLocation"
    HIGHEST_STOCK = "HighestStock"
    COST_OPTIMIZED = "CostOptimized"
    PREFERRED_WITH_FALLBACK = "PreferredWithFallback"


class FulfillmentStrategy:
    kind: StrategyKind

    def eligible(self, candidates: list[Candidate], context: CustomerContext) -> list[Candidate]:
        return [c for c in candidates if c.serves(context.mode)]

    def rank_key(self, candidate: Candidate, quantity: int, context: CustomerContext) -> tuple:
        raise NotImplementedError

    def rank(self, candidates: list[Candidate], quantity: int, context: CustomerContext) -> list[Candidate]:
        """Eligible candidates, best first."""
        pool = self.eligible(candidates, context)
        return sorted(pool, key=lambda c: (*self.rank_key(c, quantity, context), c.priority, c.location_id))

    def select(self, candidates: list[Candidate], variant_id: str, quantity: int, context: CustomerContext) -> Candidate:
        ranked = self.rank(candidates, quantity, context)
        for candidate in ranked:
            if candidate.available >= quantity:
                return candidate
        for candidate in ranked:
            if candidate.backorderable:
                return candidate
        raise NoFulfillableLocation(
            f"No location can fulfil {quantity} of variant {variant_id} ({self.kind.value})"
        )


class NearestLocationStrategy(FulfillmentStrategy):
    """Shortest great-circle distance to the customer."""

    kind = StrategyKind.NEAREST_LOCATION

    def eligible(self, candidates, context):
        if not context.has_coordinates:
            raise NoFulfillableLocation("Customer coordinates are required for nearest-location selection")
        return [c for c in super().eligible(candidates, context) if c.has_coordinates]

    def rank_key(self, candidate, quantity, context):
        return (candidate.distance_to(context.latitude, context.longitude),)


class HighestStockStrategy(FulfillmentStrategy):
    """Most available units among locations that can ship."""

    kind = StrategyKind.HIGHEST_STOCK

    def eligible(self, candidates, context):
        return [c for c in super().eligible(candidates, context) if c.ship_enabled]

    def rank_key(self, candidate, quantity, context):
        return (-candidate.available,)


class CostOptimizedStrategy(FulfillmentStrategy):
    """Cheapest quote from the shipping cost port."""

    kind = StrategyKind.COST_OPTIMIZED

    def __init__(self, shipping_cost=None):
        self.shipping_cost = shipping_cost or get_shipping_cost()

    def rank_key(self, candidate, quantity, context):
        return (self.shipping_cost.quote(candidate, context.destination, context.weight, quantity),)

    def rank(self, candidates, quantity, context):
        # Quote each candidate once per selection
        pool = self.eligible(candidates, context)
        quoted = [(self.rank_key(c, quantity, context), c) for c in pool]
        quoted.sort(key=lambda pair: (*pair[0], pair[1].priority, pair[1].location_id))
        return [c for _, c in quoted]


class PreferredWithFallbackStrategy(FulfillmentStrategy):
    """The customer's preferred location when it has the stock, else the nearest."""

    kind = StrategyKind.PREFERRED_WITH_FALLBACK

    def __init__(self):
        self.fallback = NearestLocationStrategy()

    def _preferred(self, candidates, context):
        if context.preferred_location_id is None:
            return None
        pool = super().eligible(candidates, context)
        return next((c for c in pool if c.location_id == str(context.preferred_location_id)), None)

    def rank(self, candidates, quantity, context):
        preferred = self._preferred(candidates, context)
        rest = self.fallback.rank(candidates, quantity, context) if context.has_coordinates else []
        if preferred is None or preferred.available < quantity:
            return rest
        return [preferred] + [c for c in rest if c.location_id != preferred.location_id]

    def select(self, candidates, variant_id, quantity, context):
        preferred = self._preferred(candidates, context)
        if preferred is not None and preferred.available >= quantity:
            return preferred
        return self.fallback.select(candidates, variant_id, quantity, context)


def strategy_for(kind, shipping_cost=None) -> FulfillmentStrategy:
    """Build the strategy for ``kind`` (a StrategyKind or its value)."""
    kind = StrategyKind(kind)
    if kind == StrategyKind.NEAREST_LOCATION:
        return NearestLocationStrategy()
    if kind == StrategyKind.HIGHEST_STOCK:
        return HighestStockStrategy()
    if kind == StrategyKind.COST_OPTIMIZED:
        return CostOptimizedStrategy(shipping_cost)
    return PreferredWithFallbackStrategy()


def select_location(
    kind,
    candidates: list[Candidate],
    variant_id: str,
    quantity: int,
    context: CustomerContext | None = None,
    shipping_cost=None,
) -> Candidate:
    """Pick the one location that serves ``quantity`` units of ``variant_id``."""
    return strategy_for(kind, shipping_cost).select(candidates, variant_id, quantity, context or CustomerContext())
