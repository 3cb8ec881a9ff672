"""Stock adjustments: manual deltas, physical counts and write-offs."""

from protean import handle
from protean.fields import Identifier, Integer, String

from omnistock.domain import omnistock
from omnistock.stock.engine import get_engine
from omnistock.stock.stock_record import MovementOriginator, StockRecord


@omnistock.command(part_of="StockRecord")
class AdjustStock:
    """Apply a signed on-hand delta (restock, shrinkage, return...)."""

    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    delta = Integer()
    originator = String(
        max_length=50,
        choices=MovementOriginator,
        default=MovementOriginator.ADJUSTMENT.value,
    )
    reference = String(max_length=255)


@omnistock.command(part_of="StockRecord")
class RecordStockCount:
    """Reconcile on hand with a physical count."""

    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    counted = Integer(min_value=0)
    reference = String(max_length=255)


@omnistock.command(part_of="StockRecord")
class SoftZeroStock:
    """Write off unreserved stock while keeping the record for history."""

    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    reference = String(max_length=255)


@omnistock.command_handler(part_of=StockRecord)
class AdjustmentHandler:
    @handle(AdjustStock)
    def adjust_stock(self, command):
        return get_engine().adjust(
            command.variant_id,
            command.location_id,
            command.delta or 0,
            originator=command.originator or MovementOriginator.ADJUSTMENT.value,
            reference=command.reference,
        )

    @handle(RecordStockCount)
    def record_stock_count(self, command):
        return get_engine().record_count(
            command.variant_id,
            command.location_id,
            command.counted or 0,
            reference=command.reference,
        )

    @handle(SoftZeroStock)
    def soft_zero_stock(self, command):
        return get_engine().soft_zero(
            command.variant_id,
            command.location_id,
            reference=command.reference,
        )
