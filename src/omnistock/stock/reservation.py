"""Stock reservation: commands and handler.

Handlers delegate to the reservation engine so command callers get the same
row-level serialization as direct engine callers. Each returns the available
count after the change.
"""

from protean import handle
from protean.fields import Identifier, Integer, String

from omnistock.domain import omnistock
from omnistock.stock.engine import get_engine
from omnistock.stock.stock_record import StockRecord


@omnistock.command(part_of="StockRecord")
class ReserveStock:
    """Hold stock at a location for an order."""

    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    order_id = Identifier()


@omnistock.command(part_of="StockRecord")
class ReleaseStock:
    """Give held stock back, e.g. when an order is abandoned."""

    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity = Integer()
    reference = String(max_length=255)


@omnistock.command(part_of="StockRecord")
class ConfirmStock:
    """Held stock left the building: shipment handoff or pickup."""

    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    reference = String(max_length=255)


@omnistock.command(part_of="StockRecord")
class CancelBackorder:
    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    order_id = Identifier(required=True)


@omnistock.command_handler(part_of=StockRecord)
class ReservationHandler:
    @handle(ReserveStock)
    def reserve_stock(self, command):
        return get_engine().reserve(
            command.variant_id,
            command.location_id,
            command.quantity,
            order_id=command.order_id,
        )

    @handle(ReleaseStock)
    def release_stock(self, command):
        return get_engine().release(
            command.variant_id,
            command.location_id,
            command.quantity or 0,
            reference=command.reference,
        )

    @handle(ConfirmStock)
    def confirm_stock(self, command):
        return get_engine().confirm(
            command.variant_id,
            command.location_id,
            command.quantity,
            reference=command.reference,
        )

    @handle(CancelBackorder)
    def cancel_backorder(self, command):
        return get_engine().cancel_backorder(
            command.variant_id,
            command.location_id,
            command.order_id,
        )
