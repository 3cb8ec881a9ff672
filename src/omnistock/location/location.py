"""Location aggregate (CQRS): a place that holds stock.

Locations carry the capability flags and geography that fulfillment strategies
rank on. They are deactivated rather than deleted so stock records, pickups
and transfers keep a valid reference.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, ValueObject

from omnistock.allocation.geo import haversine_km
from omnistock.domain import omnistock
from omnistock.location.events import (
    DefaultLocationChanged,
    LocationCapabilitiesChanged,
    LocationCreated,
    LocationDeactivated,
    LocationReactivated,
    LocationRelocated,
    LocationUpdated,
)


class LocationType(Enum):
    WAREHOUSE = "Warehouse"
    RETAIL_STORE = "RetailStore"
    FULFILLMENT_CENTER = "FulfillmentCenter"
    DROP_SHIP = "DropShip"
    CROSS_DOCK = "CrossDock"


@omnistock.value_object(part_of="Location")
class GeoPoint:
    """Latitude/longitude in decimal degrees."""

    latitude = Float(min_value=-90.0, max_value=90.0)
    longitude = Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def both_coordinates_present(self):
        if self.latitude is None or self.longitude is None:
            raise ValidationError({"coordinates": ["Latitude and longitude are both required"]})


@omnistock.value_object(part_of="Location")
class CostProfile:
    """Per-location shipping cost parameters."""

    base_cost = Float(default=5.0, min_value=0.0)
    cost_per_km = Float(default=0.10, min_value=0.0)
    handling_cost_per_unit = Float(default=0.50, min_value=0.0)


@omnistock.aggregate
class Location:
    name = String(required=True, max_length=255)
    location_type = String(
        max_length=50,
        choices=LocationType,
        default=LocationType.WAREHOUSE.value,
    )
    ship_enabled = Boolean(default=True)
    pickup_enabled = Boolean(default=False)
    coordinates = ValueObject(GeoPoint)
    costs = ValueObject(CostProfile)
    priority = Integer(default=100)
    is_active = Boolean(default=True)
    is_default = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def must_ship_or_allow_pickup(self):
        if not self.ship_enabled and not self.pickup_enabled:
            raise ValidationError({"pickup_enabled": ["A location that cannot ship must allow pickup"]})

    @invariant.post
    def default_location_must_be_active(self):
        if self.is_default and not self.is_active:
            raise ValidationError({"is_default": ["The default location must be active"]})

    # -------------------------------------------------------------------
    # Derived
    # -------------------------------------------------------------------
    @property
    def can_receive_transfers(self) -> bool:
        return self.location_type != LocationType.DROP_SHIP.value

    @property
    def has_coordinates(self) -> bool:
        return self.coordinates is not None

    def distance_to(self, latitude: float, longitude: float) -> float | None:
        """Great-circle distance in km, or None when the location has no coordinates."""
        if not self.has_coordinates:
            return None
        return haversine_km(self.coordinates.latitude, self.coordinates.longitude, latitude, longitude)

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        name: str,
        location_type: str = LocationType.WAREHOUSE.value,
        ship_enabled: bool = True,
        pickup_enabled: bool = False,
        latitude: float | None = None,
        longitude: float | None = None,
        priority: int = 100,
        costs: dict | None = None,
    ):
        """Register a new location."""
        now = datetime.now(UTC)
        coordinates = None
        if latitude is not None or longitude is not None:
            coordinates = GeoPoint(latitude=latitude, longitude=longitude)

        location = cls(
            name=name,
            location_type=location_type,
            ship_enabled=ship_enabled,
            pickup_enabled=pickup_enabled,
            coordinates=coordinates,
            costs=CostProfile(**(costs or {})),
            priority=priority,
            created_at=now,
            updated_at=now,
        )
        location.raise_(
            LocationCreated(
                location_id=str(location.id),
                name=name,
                location_type=location_type,
                ship_enabled=ship_enabled,
                pickup_enabled=pickup_enabled,
                latitude=latitude,
                longitude=longitude,
                priority=priority,
                created_at=now,
            )
        )
        return location

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def update_details(self, name: str | None = None, priority: int | None = None, costs: dict | None = None) -> None:
        now = datetime.now(UTC)
        with atomic_change(self):
            if name is not None:
                self.name = name
            if priority is not None:
                self.priority = priority
            if costs is not None:
                current = self.costs.to_dict() if self.costs else {}
                self.costs = CostProfile(**{**current, **costs})
            self.updated_at = now
        self.raise_(
            LocationUpdated(
                location_id=str(self.id),
                name=self.name,
                priority=self.priority,
                updated_at=now,
            )
        )

    def set_capabilities(self, ship_enabled: bool | None = None, pickup_enabled: bool | None = None) -> None:
        """Change ship/pickup flags; at least one must remain enabled."""
        now = datetime.now(UTC)
        with atomic_change(self):
            if ship_enabled is not None:
                self.ship_enabled = ship_enabled
            if pickup_enabled is not None:
                self.pickup_enabled = pickup_enabled
            self.updated_at = now
        self.raise_(
            LocationCapabilitiesChanged(
                location_id=str(self.id),
                ship_enabled=self.ship_enabled,
                pickup_enabled=self.pickup_enabled,
                changed_at=now,
            )
        )

    def relocate(self, latitude: float, longitude: float) -> None:
        now = datetime.now(UTC)
        with atomic_change(self):
            self.coordinates = GeoPoint(latitude=latitude, longitude=longitude)
            self.updated_at = now
        self.raise_(
            LocationRelocated(
                location_id=str(self.id),
                latitude=latitude,
                longitude=longitude,
                relocated_at=now,
            )
        )

    def deactivate(self) -> None:
        if not self.is_active:
            raise ValidationError({"is_active": ["Location is already inactive"]})
        if self.is_default:
            raise ValidationError({"is_default": ["Cannot deactivate the default location"]})
        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_active = False
            self.updated_at = now
        self.raise_(LocationDeactivated(location_id=str(self.id), deactivated_at=now))

    def reactivate(self) -> None:
        if self.is_active:
            raise ValidationError({"is_active": ["Location is already active"]})
        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_active = True
            self.updated_at = now
        self.raise_(LocationReactivated(location_id=str(self.id), reactivated_at=now))

    def make_default(self, previous_location_id: str | None = None) -> None:
        """Flag as the default location. The caller clears the previous default."""
        if not self.is_active:
            raise ValidationError({"is_active": ["Only an active location can be the default"]})
        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_default = True
            self.updated_at = now
        self.raise_(
            DefaultLocationChanged(
                location_id=str(self.id),
                previous_location_id=previous_location_id,
                changed_at=now,
            )
        )

    def clear_default(self) -> None:
        with atomic_change(self):
            self.is_default = False
            self.updated_at = datetime.now(UTC)
