"""Domain events for the StockTransfer aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from omnistock.domain import omnistock


@omnistock.event(part_of="StockTransfer")
class TransferCreated:
    __version__ = 1

    transfer_id = Identifier(required=True)
    number = String(required=True)
    source_location_id = Identifier(required=True)
    destination_location_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    expected_quantity = Integer(required=True)
    reference = String(max_length=255)
    created_at = DateTime(required=True)


@omnistock.event(part_of="StockTransfer")
class TransferInitiated:
    """Stock left the source location."""

    __version__ = 1

    transfer_id = Identifier(required=True)
    source_location_id = Identifier(required=True)
    quantity = Integer(required=True)
    tracking_number = String(max_length=100)
    shipped_at = DateTime(required=True)


@omnistock.event(part_of="StockTransfer")
class TransferReceived:
    """Stock arrived at the destination."""

    __version__ = 1

    transfer_id = Identifier(required=True)
    destination_location_id = Identifier(required=True)
    expected_quantity = Integer(required=True)
    received_quantity = Integer()
    received_at = DateTime(required=True)


@omnistock.event(part_of="StockTransfer")
class TransferDiscrepancyRecorded:
    """Received quantity differed from what was shipped."""

    __version__ = 1

    transfer_id = Identifier(required=True)
    expected_quantity = Integer(required=True)
    received_quantity = Integer()
    discrepancy = Integer(required=True)
    recorded_at = DateTime(required=True)


@omnistock.event(part_of="StockTransfer")
class TransferCancelled:
    __version__ = 1

    transfer_id = Identifier(required=True)
    reason = String(max_length=500)
    cancelled_at = DateTime(required=True)
