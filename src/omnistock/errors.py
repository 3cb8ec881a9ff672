"""Typed failures raised by stock, allocation, pickup and transfer operations.

Every error is a Protean ``ValidationError`` so command handlers propagate it
unchanged and callers can catch either the whole family or one kind. The
``messages`` dict keeps Protean's ``{field: [message]}`` shape.
"""

from protean.exceptions import ValidationError


class FulfillmentError(ValidationError):
    kind = "FulfillmentError"
    field = "_entity"
    retryable = False

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        super().__init__({field or self.field: [message]})

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class InsufficientStock(FulfillmentError):
    kind = "InsufficientStock"
    field = "quantity"


class InvalidReleaseQuantity(FulfillmentError):
    kind = "InvalidReleaseQuantity"
    field = "quantity"


class ReservationMismatch(FulfillmentError):
    kind = "ReservationMismatch"
    field = "quantity_reserved"


class NegativeOnHand(FulfillmentError):
    kind = "NegativeOnHand"
    field = "quantity_on_hand"


class InvalidAdjustment(FulfillmentError):
    kind = "InvalidAdjustment"
    field = "delta"


class DuplicateStockRecord(FulfillmentError):
    kind = "DuplicateStockRecord"
    field = "location_id"


class NoFulfillableLocation(FulfillmentError):
    kind = "NoFulfillableLocation"
    field = "location_id"


class LocationUnavailable(FulfillmentError):
    kind = "LocationUnavailable"
    field = "location_id"


class CodeMismatch(FulfillmentError):
    kind = "CodeMismatch"
    field = "code"


class PickupExpired(FulfillmentError):
    kind = "PickupExpired"
    field = "state"


class AwaitingBackorder(FulfillmentError):
    """Part of the order's quantity is still backordered, not yet on hand."""

    kind = "AwaitingBackorder"
    field = "quantity_backordered"


class InsufficientSourceStock(FulfillmentError):
    kind = "InsufficientSourceStock"
    field = "source_location_id"


class Contention(FulfillmentError):
    """A row lock could not be acquired in time. Safe to retry."""

    kind = "Contention"
    retryable = True
