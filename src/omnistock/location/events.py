"""Domain events for the Location aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from omnistock.domain import omnistock


@omnistock.event(part_of="Location")
class LocationCreated:
    """A new stock location was registered."""

    __version__ = 1

    location_id = Identifier(required=True)
    name = String(required=True)
    location_type = String(required=True)
    ship_enabled = Boolean()
    pickup_enabled = Boolean()
    latitude = Float()
    longitude = Float()
    priority = Integer()
    created_at = DateTime(required=True)


@omnistock.event(part_of="Location")
class LocationUpdated:
    __version__ = 1

    location_id = Identifier(required=True)
    name = String(required=True)
    priority = Integer()
    updated_at = DateTime(required=True)


@omnistock.event(part_of="Location")
class LocationCapabilitiesChanged:
    """Ship/pickup flags changed."""

    __version__ = 1

    location_id = Identifier(required=True)
    ship_enabled = Boolean()
    pickup_enabled = Boolean()
    changed_at = DateTime(required=True)


@omnistock.event(part_of="Location")
class LocationRelocated:
    __version__ = 1

    location_id = Identifier(required=True)
    latitude = Float()
    longitude = Float()
    relocated_at = DateTime(required=True)


@omnistock.event(part_of="Location")
class LocationDeactivated:
    __version__ = 1

    location_id = Identifier(required=True)
    deactivated_at = DateTime(required=True)


@omnistock.event(part_of="Location")
class LocationReactivated:
    __version__ = 1

    location_id = Identifier(required=True)
    reactivated_at = DateTime(required=True)


@omnistock.event(part_of="Location")
class DefaultLocationChanged:
    """The location became the default for its registry."""

    __version__ = 1

    location_id = Identifier(required=True)
    previous_location_id = Identifier()
    changed_at = DateTime(required=True)
