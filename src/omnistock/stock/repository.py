"""Repository for the StockRecord aggregate."""

from omnistock.domain import omnistock
from omnistock.stock.stock_record import StockRecord


@omnistock.repository(part_of=StockRecord)
class StockRecordRepository:
    """Lookups by the natural (variant, location) key."""

    def find_for(self, variant_id: str, location_id: str) -> StockRecord | None:
        return self._dao.query.filter(variant_id=str(variant_id), location_id=str(location_id)).all().first

    def for_variant(self, variant_id: str) -> list[StockRecord]:
        return self._dao.query.filter(variant_id=str(variant_id)).all().items
