"""StockRecord aggregate (CQRS): stock counters for one variant at one location.

Stock Level Model:
    quantity_on_hand:     Physical units at the location
    quantity_reserved:    Units held for orders (always <= on hand)
    quantity_backordered: Demand accepted beyond what was on hand
    count_available:      on_hand - reserved (never negative)

Backordered demand is queued as BackorderDemand entries and filled in request
order whenever on-hand increases. Every counter change is journalled as a
StockMovement.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String

from omnistock.domain import omnistock
from omnistock.errors import (
    AwaitingBackorder,
    InsufficientStock,
    InvalidAdjustment,
    InvalidReleaseQuantity,
    NegativeOnHand,
    ReservationMismatch,
)
from omnistock.stock.events import (
    BackorderCancelled,
    BackorderFilled,
    StockAdjusted,
    StockConfirmed,
    StockRecordInitialized,
    StockReleased,
    StockReserved,
    StockSoftZeroed,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class MovementOriginator(Enum):
    STOCK_TRANSFER = "StockTransfer"
    ORDER = "Order"
    RETURN = "Return"
    DAMAGE = "Damage"
    LOSS = "Loss"
    FOUND = "Found"
    PROMOTION = "Promotion"
    ADJUSTMENT = "Adjustment"
    RECOUNT = "Recount"
    SHIPMENT = "Shipment"
    SUPPLIER = "Supplier"
    CUSTOMER = "Customer"


class MovementAction(Enum):
    RECEIVED = "Received"
    SOLD = "Sold"
    RETURNED = "Returned"
    DAMAGED = "Damaged"
    LOST = "Lost"
    ADJUSTMENT = "Adjustment"
    RESERVED = "Reserved"
    RELEASED = "Released"


_NEGATIVE_ACTIONS = {
    MovementOriginator.DAMAGE: MovementAction.DAMAGED,
    MovementOriginator.LOSS: MovementAction.LOST,
    MovementOriginator.SHIPMENT: MovementAction.SOLD,
}

_POSITIVE_ACTIONS = {
    MovementOriginator.RETURN: MovementAction.RETURNED,
    MovementOriginator.CUSTOMER: MovementAction.RETURNED,
    MovementOriginator.SUPPLIER: MovementAction.RECEIVED,
    MovementOriginator.STOCK_TRANSFER: MovementAction.RECEIVED,
}


def action_for(originator: MovementOriginator, delta: int) -> MovementAction:
    """Classify an on-hand adjustment for the movement journal."""
    if delta > 0:
        return _POSITIVE_ACTIONS.get(originator, MovementAction.ADJUSTMENT)
    return _NEGATIVE_ACTIONS.get(originator, MovementAction.ADJUSTMENT)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@omnistock.entity(part_of="StockRecord")
class StockMovement:
    """One journal line: a signed quantity and why it moved."""

    quantity = Integer(required=True)
    originator = String(required=True, max_length=50, choices=MovementOriginator)
    action = String(required=True, max_length=50, choices=MovementAction)
    reference = String(max_length=255)
    created_at = DateTime(required=True)

    @invariant.post
    def quantity_must_not_be_zero(self):
        if self.quantity == 0:
            raise ValidationError({"quantity": ["Movement quantity cannot be zero"]})


@omnistock.entity(part_of="StockRecord")
class BackorderDemand:
    """Outstanding demand for one order, waiting for stock to arrive."""

    order_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    sequence = Integer(required=True, min_value=1)
    requested_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@omnistock.aggregate
class StockRecord:
    """Stock for one product variant at one location."""

    variant_id = Identifier(required=True)
    location_id = Identifier(required=True)
    quantity_on_hand = Integer(default=0, min_value=0)
    quantity_reserved = Integer(default=0, min_value=0)
    quantity_backordered = Integer(default=0, min_value=0)
    backorderable = Boolean(default=False)
    next_backorder_sequence = Integer(default=1)
    movements = HasMany(StockMovement)
    backorders = HasMany(BackorderDemand)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def reserved_cannot_exceed_on_hand(self):
        if (self.quantity_reserved or 0) > (self.quantity_on_hand or 0):
            raise ValidationError({"quantity_reserved": ["Reserved quantity cannot exceed quantity on hand"]})

    @invariant.post
    def backordered_matches_open_demand(self):
        outstanding = sum(b.quantity for b in (self.backorders or []))
        if (self.quantity_backordered or 0) != outstanding:
            raise ValidationError({"quantity_backordered": ["Backordered quantity must equal outstanding demand"]})

    # -------------------------------------------------------------------
    # Derived
    # -------------------------------------------------------------------
    @property
    def count_available(self) -> int:
        return (self.quantity_on_hand or 0) - (self.quantity_reserved or 0)

    @property
    def open_backorders(self) -> list:
        """Outstanding demand in FIFO order."""
        return sorted(self.backorders or [], key=lambda b: b.sequence)

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, variant_id, location_id, quantity_on_hand=0, backorderable=False, reference=None):
        """Stock a variant at a location for the first time."""
        if quantity_on_hand < 0:
            raise NegativeOnHand("Initial quantity on hand cannot be negative")

        now = datetime.now(UTC)
        record = cls(
            variant_id=variant_id,
            location_id=location_id,
            quantity_on_hand=quantity_on_hand,
            backorderable=backorderable,
            created_at=now,
            updated_at=now,
        )
        if quantity_on_hand:
            record._journal(quantity_on_hand, MovementOriginator.SUPPLIER, MovementAction.RECEIVED, reference, now)
        record.raise_(
            StockRecordInitialized(
                stock_record_id=str(record.id),
                variant_id=str(variant_id),
                location_id=str(location_id),
                quantity_on_hand=quantity_on_hand,
                backorderable=backorderable,
                initialized_at=now,
            )
        )
        return record

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _journal(self, quantity, originator, action, reference, at):
        self.add_movements(
            StockMovement(
                quantity=quantity,
                originator=originator.value,
                action=action.value,
                reference=reference,
                created_at=at,
            )
        )

    def _keys(self) -> dict:
        return {
            "stock_record_id": str(self.id),
            "variant_id": str(self.variant_id),
            "location_id": str(self.location_id),
        }

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, quantity: int, order_id: str | None = None) -> int:
        """Hold stock for an order and return the new available count.

        A backorderable record accepts any quantity: what is available is
        reserved and the shortfall is queued as backordered demand.
        """
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        available = self.count_available
        if available < quantity and not self.backorderable:
            raise InsufficientStock(f"Insufficient stock: {available} available, {quantity} requested")

        held = min(available, quantity)
        shortfall = quantity - held
        now = datetime.now(UTC)

        with atomic_change(self):
            if held:
                self.quantity_reserved = self.quantity_reserved + held
                self._journal(held, MovementOriginator.ORDER, MovementAction.RESERVED, order_id, now)
            if shortfall:
                self.add_backorders(
                    BackorderDemand(
                        order_id=order_id,
                        quantity=shortfall,
                        sequence=self.next_backorder_sequence,
                        requested_at=now,
                    )
                )
                self.next_backorder_sequence = self.next_backorder_sequence + 1
                self.quantity_backordered = self.quantity_backordered + shortfall
            self.updated_at = now

        self.raise_(
            StockReserved(
                **self._keys(),
                order_id=order_id,
                quantity=quantity,
                quantity_backordered=shortfall,
                available_after=self.count_available,
                reserved_at=now,
            )
        )
        return self.count_available

    def release(self, quantity: int, reference: str | None = None) -> int:
        """Return held stock to available. Never releases more than is reserved."""
        if quantity <= 0:
            raise InvalidReleaseQuantity("Quantity to release must be positive")

        released = min(quantity, self.quantity_reserved)
        now = datetime.now(UTC)

        with atomic_change(self):
            self.quantity_reserved = self.quantity_reserved - released
            if released:
                self._journal(-released, MovementOriginator.ORDER, MovementAction.RELEASED, reference, now)
            self.updated_at = now

        self.raise_(
            StockReleased(
                **self._keys(),
                quantity=released,
                available_after=self.count_available,
                released_at=now,
            )
        )
        return self.count_available

    def release_for_order(self, quantity: int, order_id: str, reference: str | None = None) -> int:
        """Undo ``quantity`` units of an order's reservation.

        Units still queued as the order's backorder are dropped from the queue,
        latest first; only the rest comes out of reserved.
        """
        if quantity <= 0:
            raise InvalidReleaseQuantity("Quantity to release must be positive")

        dropped = self._drop_backorders(order_id, quantity)
        if quantity > dropped:
            return self.release(quantity - dropped, reference=reference)
        return self.count_available

    def confirm(self, quantity: int, reference: str | None = None, order_id: str | None = None) -> int:
        """Ship held stock: on hand and reserved both drop by ``quantity``.

        With ``order_id``, confirmation is refused while any of that order's
        demand at this record is still backordered.
        """
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if order_id is not None and self.outstanding_for(order_id):
            raise AwaitingBackorder(
                f"Order {order_id} still has {self.outstanding_for(order_id)} units backordered"
            )
        if self.quantity_reserved < quantity:
            raise ReservationMismatch(
                f"Cannot confirm {quantity}: only {self.quantity_reserved} reserved"
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.quantity_on_hand = self.quantity_on_hand - quantity
            self.quantity_reserved = self.quantity_reserved - quantity
            self._journal(-quantity, MovementOriginator.SHIPMENT, MovementAction.SOLD, reference, now)
            self.updated_at = now

        self.raise_(
            StockConfirmed(
                **self._keys(),
                quantity=quantity,
                on_hand_after=self.quantity_on_hand,
                confirmed_at=now,
            )
        )
        return self.count_available

    # -------------------------------------------------------------------
    # Adjustments
    # -------------------------------------------------------------------
    def adjust(self, delta: int, originator=MovementOriginator.ADJUSTMENT, reference: str | None = None) -> int:
        """Change on hand by ``delta`` and fill backorders when stock arrives."""
        originator = MovementOriginator(originator)
        if delta == 0:
            raise InvalidAdjustment("Adjustment delta cannot be zero")

        new_on_hand = self.quantity_on_hand + delta
        if new_on_hand < 0:
            raise NegativeOnHand(f"Adjustment of {delta} would leave {new_on_hand} on hand")
        if new_on_hand < self.quantity_reserved:
            raise NegativeOnHand(
                f"Adjustment of {delta} would leave {new_on_hand} on hand "
                f"with {self.quantity_reserved} reserved"
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.quantity_on_hand = new_on_hand
            self._journal(delta, originator, action_for(originator, delta), reference, now)
            self.updated_at = now

        self.raise_(
            StockAdjusted(
                **self._keys(),
                delta=delta,
                originator=originator.value,
                reference=reference,
                on_hand_after=self.quantity_on_hand,
                adjusted_at=now,
            )
        )

        if delta > 0:
            self._fill_backorders(delta, now)
        return self.count_available

    def _fill_backorders(self, increment: int, now: datetime) -> None:
        """Move arriving stock into reserved for waiting orders, earliest first."""
        remaining = min(increment, self.count_available)
        for demand in self.open_backorders:
            if remaining <= 0:
                break

            filled = min(remaining, demand.quantity)
            outstanding = demand.quantity - filled
            with atomic_change(self):
                self.remove_backorders(demand)
                if outstanding:
                    self.add_backorders(
                        BackorderDemand(
                            order_id=demand.order_id,
                            quantity=outstanding,
                            sequence=demand.sequence,
                            requested_at=demand.requested_at,
                        )
                    )
                self.quantity_backordered = self.quantity_backordered - filled
                self.quantity_reserved = self.quantity_reserved + filled
                self._journal(filled, MovementOriginator.ORDER, MovementAction.RESERVED, demand.order_id, now)

            self.raise_(
                BackorderFilled(
                    **self._keys(),
                    order_id=demand.order_id,
                    quantity=filled,
                    quantity_outstanding=outstanding,
                    filled_at=now,
                )
            )
            remaining -= filled

    def outstanding_for(self, order_id: str) -> int:
        """Units of an order's demand still waiting for stock."""
        return sum(b.quantity for b in (self.backorders or []) if str(b.order_id) == str(order_id))

    def _drop_backorders(self, order_id: str, limit: int | None = None) -> int:
        """Remove up to ``limit`` units of an order's demand, latest first."""
        demands = sorted(
            (b for b in (self.backorders or []) if str(b.order_id) == str(order_id)),
            key=lambda b: b.sequence,
            reverse=True,
        )
        remaining = sum(b.quantity for b in demands) if limit is None else limit
        dropped = 0
        now = datetime.now(UTC)
        for demand in demands:
            if remaining <= 0:
                break
            taken = min(remaining, demand.quantity)
            with atomic_change(self):
                self.remove_backorders(demand)
                if demand.quantity > taken:
                    self.add_backorders(
                        BackorderDemand(
                            order_id=demand.order_id,
                            quantity=demand.quantity - taken,
                            sequence=demand.sequence,
                            requested_at=demand.requested_at,
                        )
                    )
                self.quantity_backordered = self.quantity_backordered - taken
                self.updated_at = now
            dropped += taken
            remaining -= taken

        if dropped:
            self.raise_(
                BackorderCancelled(
                    stock_record_id=str(self.id),
                    order_id=str(order_id),
                    quantity=dropped,
                    cancelled_at=now,
                )
            )
        return dropped

    def cancel_backorder(self, order_id: str) -> int:
        """Drop an order's outstanding demand. Returns the quantity dropped."""
        if not self.outstanding_for(order_id):
            raise ValidationError({"order_id": ["No outstanding backorder for this order"]})
        return self._drop_backorders(order_id)

    def soft_zero(self, reference: str | None = None) -> int:
        """Write off everything not held for orders. The record is kept for history."""
        written_off = self.count_available
        now = datetime.now(UTC)
        if written_off:
            with atomic_change(self):
                self.quantity_on_hand = self.quantity_reserved
                self._journal(-written_off, MovementOriginator.LOSS, MovementAction.LOST, reference, now)
                self.updated_at = now

        self.raise_(
            StockSoftZeroed(
                **self._keys(),
                written_off=written_off,
                zeroed_at=now,
            )
        )
        return written_off
