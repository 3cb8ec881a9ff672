"""Distance-rate shipping cost: base + distance x rate + units x handling.

Rates come from the shipping location's cost profile. When either end has no
coordinates the distance is assumed to be ASSUMED_DISTANCE_KM.
"""

from omnistock.shipping.port import ShippingCostPort

ASSUMED_DISTANCE_KM = 500.0


class DistanceRateShippingCost(ShippingCostPort):
    def quote(self, candidate, destination, weight=None, quantity=1) -> float:
        distance = None
        if destination is not None:
            distance = candidate.distance_to(*destination)
        if distance is None:
            distance = ASSUMED_DISTANCE_KM

        cost = candidate.base_cost + distance * candidate.cost_per_km + quantity * candidate.handling_cost_per_unit
        return round(cost, 2)
