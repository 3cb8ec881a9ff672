"""Domain events for the StockRecord aggregate.

Counts that can legitimately be zero are declared without ``required=True``.
"""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from omnistock.domain import omnistock


@omnistock.event(part_of="StockRecord")
class StockRecordInitialized:
    """A variant was stocked at a location for the first time."""

    __version__ = 1

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity_on_hand = Integer()
    backorderable = Boolean(default=False)
    initialized_at = DateTime(required=True)


@omnistock.event(part_of="StockRecord")
class StockReserved:
    """Stock was held for an order. Any shortfall was queued as backorder."""

    __version__ = 1

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    order_id = Identifier()
    quantity = Integer(required=True)
    quantity_backordered = Integer()
    available_after = Integer()
    reserved_at = DateTime(required=True)


@omnistock.event(part_of="StockRecord")
class StockReleased:
    """Held stock went back to available."""

    __version__ = 1

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity = Integer()
    available_after = Integer()
    released_at = DateTime(required=True)


@omnistock.event(part_of="StockRecord")
class StockConfirmed:
    """Held stock left the location (shipment handoff or pickup)."""

    __version__ = 1

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity = Integer(required=True)
    on_hand_after = Integer()
    confirmed_at = DateTime(required=True)


@omnistock.event(part_of="StockRecord")
class StockAdjusted:
    """On-hand changed outside the reservation flow."""

    __version__ = 1

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    delta = Integer(required=True)
    originator = String(required=True, max_length=50)
    reference = String(max_length=255)
    on_hand_after = Integer()
    adjusted_at = DateTime(required=True)


@omnistock.event(part_of="StockRecord")
class BackorderFilled:
    """Incoming stock was moved into reserved for a waiting order."""

    __version__ = 1

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    order_id = Identifier()
    quantity = Integer(required=True)
    quantity_outstanding = Integer()
    filled_at = DateTime(required=True)


@omnistock.event(part_of="StockRecord")
class BackorderCancelled:
    """An order withdrew its outstanding backordered demand."""

    __version__ = 1

    stock_record_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    cancelled_at = DateTime(required=True)


@omnistock.event(part_of="StockRecord")
class StockSoftZeroed:
    """Unreserved on-hand was written off; the record itself is kept."""

    __version__ = 1

    stock_record_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    written_off = Integer()
    zeroed_at = DateTime(required=True)
