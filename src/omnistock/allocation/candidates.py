"""Immutable inputs to location selection.

A Candidate is a snapshot of one location's capabilities plus its stock for
the variant being allocated. Strategies only ever see these snapshots, never
live aggregates, so selection is a pure function of its inputs.
"""

from dataclasses import dataclass
from enum import Enum

from omnistock.allocation.geo import haversine_km


class FulfillmentMode(Enum):
    SHIP = "Ship"
    PICKUP = "Pickup"


@dataclass(frozen=True)
class Candidate:
    location_id: str
    name: str
    available: int
    priority: int = 100
    location_type: str = "Warehouse"
    ship_enabled: bool = True
    pickup_enabled: bool = False
    latitude: float | None = None
    longitude: float | None = None
    backorderable: bool = False
    base_cost: float = 5.0
    cost_per_km: float = 0.10
    handling_cost_per_unit: float = 0.50

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def distance_to(self, latitude: float, longitude: float) -> float | None:
        if not self.has_coordinates:
            return None
        return haversine_km(self.latitude, self.longitude, latitude, longitude)

    def serves(self, mode: FulfillmentMode | None) -> bool:
        if mode is None:
            return True
        if FulfillmentMode(mode) == FulfillmentMode.PICKUP:
            return self.pickup_enabled
        return self.ship_enabled

    @classmethod
    def from_location(cls, location, available: int = 0, backorderable: bool = False) -> "Candidate":
        """Snapshot a Location aggregate with the given stock figures."""
        costs = location.costs
        return cls(
            location_id=str(location.id),
            name=location.name,
            available=available,
            priority=location.priority if location.priority is not None else 100,
            location_type=location.location_type,
            ship_enabled=bool(location.ship_enabled),
            pickup_enabled=bool(location.pickup_enabled),
            latitude=location.coordinates.latitude if location.coordinates else None,
            longitude=location.coordinates.longitude if location.coordinates else None,
            backorderable=backorderable,
            base_cost=costs.base_cost if costs else 5.0,
            cost_per_km=costs.cost_per_km if costs else 0.10,
            handling_cost_per_unit=costs.handling_cost_per_unit if costs else 0.50,
        )


@dataclass(frozen=True)
class CustomerContext:
    """What is known about the customer an order line is going to."""

    latitude: float | None = None
    longitude: float | None = None
    preferred_location_id: str | None = None
    mode: FulfillmentMode | None = None
    weight: float | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def destination(self) -> tuple[float, float] | None:
        if not self.has_coordinates:
            return None
        return (self.latitude, self.longitude)
