"""Location registry: active locations joined with their stock for a variant."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from omnistock.allocation.candidates import Candidate, FulfillmentMode
from omnistock.errors import LocationUnavailable
from omnistock.location.location import Location
from omnistock.stock.engine import ReservationEngine, get_engine


class LocationRegistry:
    def __init__(self, engine: ReservationEngine | None = None):
        self.engine = engine or get_engine()

    @staticmethod
    def _repo():
        return current_domain.repository_for(Location)

    def get(self, location_id) -> Location:
        return self._repo().get(location_id)

    def active_locations(self, mode: FulfillmentMode | None = None) -> list[Location]:
        locations = self._repo().active()
        if mode is None:
            return locations
        if FulfillmentMode(mode) == FulfillmentMode.PICKUP:
            return [loc for loc in locations if loc.pickup_enabled]
        return [loc for loc in locations if loc.ship_enabled]

    def require_active(self, location_id) -> Location:
        """The location, or LocationUnavailable when it is unknown or inactive."""
        try:
            location = self.get(location_id)
        except ObjectNotFoundError:
            raise LocationUnavailable(f"Location {location_id} does not exist")
        if not location.is_active:
            raise LocationUnavailable(f"Location {location.name} is inactive")
        return location

    def candidates_for(self, variant_id, mode: FulfillmentMode | None = None) -> list[Candidate]:
        """Candidates for every active location that stocks ``variant_id``."""
        records = {str(r.location_id): r for r in self.engine.records_for_variant(variant_id)}
        candidates = []
        for location in self.active_locations(mode):
            record = records.get(str(location.id))
            if record is None:
                continue
            candidates.append(
                Candidate.from_location(
                    location,
                    available=record.count_available,
                    backorderable=bool(record.backorderable),
                )
            )
        return candidates
