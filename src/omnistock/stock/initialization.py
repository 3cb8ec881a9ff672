"""Stock initialization: command and handler."""

from protean import handle
from protean.fields import Boolean, Identifier, Integer, String

from omnistock.domain import omnistock
from omnistock.stock.engine import get_engine
from omnistock.stock.stock_record import StockRecord


@omnistock.command(part_of="StockRecord")
class InitializeStockRecord:
    """Stock a variant at a location for the first time."""

    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity_on_hand = Integer(default=0, min_value=0)
    backorderable = Boolean(default=False)
    reference = String(max_length=255)


@omnistock.command_handler(part_of=StockRecord)
class StockInitializationHandler:
    @handle(InitializeStockRecord)
    def initialize_stock_record(self, command):
        return get_engine().initialize(
            variant_id=command.variant_id,
            location_id=command.location_id,
            quantity_on_hand=command.quantity_on_hand or 0,
            backorderable=bool(command.backorderable),
            reference=command.reference,
        )
