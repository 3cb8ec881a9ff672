"""Repository for the StockTransfer aggregate."""

from omnistock.domain import omnistock
from omnistock.transfer.transfer import StockTransfer


@omnistock.repository(part_of=StockTransfer)
class StockTransferRepository:
    def find_by_number(self, number: str) -> StockTransfer | None:
        return self._dao.query.filter(number=number).all().first

    def count_numbered(self, prefix: str) -> int:
        """How many transfers carry a number starting with ``prefix``."""
        return sum(1 for t in self._dao.query.all().items if t.number and t.number.startswith(prefix))
