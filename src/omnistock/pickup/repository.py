"""Repository for the StorePickup aggregate."""

from omnistock.domain import omnistock
from omnistock.pickup.pickup import StorePickup


@omnistock.repository(part_of=StorePickup)
class StorePickupRepository:
    def at_location(self, location_id: str) -> list[StorePickup]:
        return self._dao.query.filter(location_id=str(location_id)).all().items

    def active_at(self, location_id: str) -> list[StorePickup]:
        return [p for p in self.at_location(location_id) if p.is_active]

    def active_codes_at(self, location_id: str) -> set[str]:
        """Codes held by pending or ready pickups at the location."""
        return {p.code for p in self.active_at(location_id) if p.code}
