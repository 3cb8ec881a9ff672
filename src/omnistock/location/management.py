"""Location management: commands and handler."""

import json

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from omnistock.domain import omnistock
from omnistock.location.location import Location, LocationType


@omnistock.command(part_of="Location")
class CreateLocation:
    """Register a new stock location."""

    name = String(required=True, max_length=255)
    location_type = String(max_length=50, choices=LocationType, default=LocationType.WAREHOUSE.value)
    ship_enabled = Boolean(default=True)
    pickup_enabled = Boolean(default=False)
    latitude = Float()
    longitude = Float()
    priority = Integer(default=100)
    costs = Text()  # JSON-encoded CostProfile overrides


@omnistock.command(part_of="Location")
class UpdateLocation:
    location_id = Identifier(required=True)
    name = String(max_length=255)
    priority = Integer()
    costs = Text()


@omnistock.command(part_of="Location")
class SetLocationCapabilities:
    location_id = Identifier(required=True)
    ship_enabled = Boolean()
    pickup_enabled = Boolean()


@omnistock.command(part_of="Location")
class RelocateLocation:
    location_id = Identifier(required=True)
    latitude = Float()
    longitude = Float()


@omnistock.command(part_of="Location")
class DeactivateLocation:
    location_id = Identifier(required=True)


@omnistock.command(part_of="Location")
class ReactivateLocation:
    location_id = Identifier(required=True)


@omnistock.command(part_of="Location")
class MakeDefaultLocation:
    location_id = Identifier(required=True)


def _costs(raw):
    return json.loads(raw) if isinstance(raw, str) else raw


@omnistock.command_handler(part_of=Location)
class LocationManagementHandler:
    @handle(CreateLocation)
    def create_location(self, command):
        location = Location.create(
            name=command.name,
            location_type=command.location_type or LocationType.WAREHOUSE.value,
            ship_enabled=bool(command.ship_enabled),
            pickup_enabled=bool(command.pickup_enabled),
            latitude=command.latitude,
            longitude=command.longitude,
            priority=command.priority if command.priority is not None else 100,
            costs=_costs(command.costs),
        )
        current_domain.repository_for(Location).add(location)
        return str(location.id)

    @handle(UpdateLocation)
    def update_location(self, command):
        repo = current_domain.repository_for(Location)
        location = repo.get(command.location_id)
        location.update_details(
            name=command.name,
            priority=command.priority,
            costs=_costs(command.costs),
        )
        repo.add(location)

    @handle(SetLocationCapabilities)
    def set_capabilities(self, command):
        repo = current_domain.repository_for(Location)
        location = repo.get(command.location_id)
        location.set_capabilities(
            ship_enabled=command.ship_enabled,
            pickup_enabled=command.pickup_enabled,
        )
        repo.add(location)

    @handle(RelocateLocation)
    def relocate(self, command):
        repo = current_domain.repository_for(Location)
        location = repo.get(command.location_id)
        location.relocate(command.latitude, command.longitude)
        repo.add(location)

    @handle(DeactivateLocation)
    def deactivate_location(self, command):
        repo = current_domain.repository_for(Location)
        location = repo.get(command.location_id)
        location.deactivate()
        repo.add(location)

    @handle(ReactivateLocation)
    def reactivate_location(self, command):
        repo = current_domain.repository_for(Location)
        location = repo.get(command.location_id)
        location.reactivate()
        repo.add(location)

    @handle(MakeDefaultLocation)
    def make_default(self, command):
        repo = current_domain.repository_for(Location)
        location = repo.get(command.location_id)
        previous = repo.find_default()
        if previous is not None and str(previous.id) == str(location.id):
            return

        if previous is not None:
            previous.clear_default()
            repo.add(previous)
        location.make_default(previous_location_id=str(previous.id) if previous else None)
        repo.add(location)
