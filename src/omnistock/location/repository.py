"""Repository for the Location aggregate: the location registry's queries."""

from omnistock.domain import omnistock
from omnistock.location.location import Location


@omnistock.repository(part_of=Location)
class LocationRepository:
    def active(self) -> list[Location]:
        """Active locations, lowest priority value first."""
        locations = self._dao.query.filter(is_active=True).all().items
        return sorted(locations, key=lambda loc: (loc.priority, loc.name))

    def ship_enabled(self) -> list[Location]:
        return [loc for loc in self.active() if loc.ship_enabled]

    def pickup_enabled(self) -> list[Location]:
        return [loc for loc in self.active() if loc.pickup_enabled]

    def find_default(self) -> Location | None:
        return self._dao.query.filter(is_default=True).all().first
