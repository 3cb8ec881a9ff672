"""StockTransfer aggregate (CQRS): moving stock between two locations.

State Machine:
    PENDING → IN_TRANSIT → RECEIVED
    PENDING → CANCELLED

The source is debited when the transfer ships (IN_TRANSIT) and the
destination credited when it arrives (RECEIVED). A short or over delivery is
recorded as a discrepancy but never blocks receipt.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from omnistock.domain import omnistock
from omnistock.transfer.events import (
    TransferCancelled,
    TransferCreated,
    TransferDiscrepancyRecorded,
    TransferInitiated,
    TransferReceived,
)


class TransferState(Enum):
    PENDING = "Pending"
    IN_TRANSIT = "InTransit"
    RECEIVED = "Received"
    CANCELLED = "Cancelled"


_VALID_TRANSITIONS = {
    TransferState.PENDING: {TransferState.IN_TRANSIT, TransferState.CANCELLED},
    TransferState.IN_TRANSIT: {TransferState.RECEIVED},
    TransferState.RECEIVED: set(),  # terminal
    TransferState.CANCELLED: set(),  # terminal
}


def format_transfer_number(on: datetime, counter: int) -> str:
    """Transfer numbers look like T2610160001: date then a daily counter."""
    return f"T{on:%y%m%d}{counter:04d}"


@omnistock.aggregate
class StockTransfer:
    number = String(max_length=20)
    source_location_id = Identifier(required=True)
    destination_location_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    expected_quantity = Integer(required=True, min_value=1)
    received_quantity = Integer()
    discrepancy = Integer()
    state = String(
        max_length=20,
        choices=TransferState,
        default=TransferState.PENDING.value,
    )
    tracking_number = String(max_length=100)
    reference = String(max_length=255)
    cancellation_reason = String(max_length=500)
    shipped_at = DateTime()
    received_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def source_and_destination_must_differ(self):
        if str(self.source_location_id) == str(self.destination_location_id):
            raise ValidationError({"destination_location_id": ["Source and destination locations must differ"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        source_location_id: str,
        destination_location_id: str,
        variant_id: str,
        expected_quantity: int,
        number: str | None = None,
        reference: str | None = None,
    ):
        now = datetime.now(UTC)
        transfer = cls(
            number=number,
            source_location_id=source_location_id,
            destination_location_id=destination_location_id,
            variant_id=variant_id,
            expected_quantity=expected_quantity,
            reference=reference,
            state=TransferState.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        transfer.raise_(
            TransferCreated(
                transfer_id=str(transfer.id),
                number=number or "",
                source_location_id=str(source_location_id),
                destination_location_id=str(destination_location_id),
                variant_id=str(variant_id),
                expected_quantity=expected_quantity,
                reference=reference,
                created_at=now,
            )
        )
        return transfer

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: TransferState) -> None:
        current = TransferState(self.state)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"state": [f"Cannot transition from {current.value} to {target.value}"]})

    def assert_can_initiate(self) -> None:
        """Raise unless the transfer may ship."""
        self._assert_can_transition(TransferState.IN_TRANSIT)

    @property
    def has_discrepancy(self) -> bool:
        return bool(self.discrepancy)

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def initiate(self, tracking_number: str | None = None) -> None:
        """Mark the transfer shipped. The caller has already debited the source."""
        self._assert_can_transition(TransferState.IN_TRANSIT)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.state = TransferState.IN_TRANSIT.value
            self.tracking_number = tracking_number
            self.shipped_at = now
            self.updated_at = now
        self.raise_(
            TransferInitiated(
                transfer_id=str(self.id),
                source_location_id=str(self.source_location_id),
                quantity=self.expected_quantity,
                tracking_number=tracking_number,
                shipped_at=now,
            )
        )

    def receive(self, actual_quantity: int) -> int:
        """Record arrival of ``actual_quantity`` units. Returns the discrepancy."""
        self._assert_can_transition(TransferState.RECEIVED)
        if actual_quantity is None or actual_quantity < 0:
            raise ValidationError({"received_quantity": ["Received quantity cannot be negative"]})

        now = datetime.now(UTC)
        discrepancy = actual_quantity - self.expected_quantity
        with atomic_change(self):
            self.state = TransferState.RECEIVED.value
            self.received_quantity = actual_quantity
            self.discrepancy = discrepancy
            self.received_at = now
            self.updated_at = now

        self.raise_(
            TransferReceived(
                transfer_id=str(self.id),
                destination_location_id=str(self.destination_location_id),
                expected_quantity=self.expected_quantity,
                received_quantity=actual_quantity,
                received_at=now,
            )
        )
        if discrepancy:
            self.raise_(
                TransferDiscrepancyRecorded(
                    transfer_id=str(self.id),
                    expected_quantity=self.expected_quantity,
                    received_quantity=actual_quantity,
                    discrepancy=discrepancy,
                    recorded_at=now,
                )
            )
        return discrepancy

    def cancel(self, reason: str | None = None) -> None:
        """Cancel before shipping; nothing has been debited yet."""
        self._assert_can_transition(TransferState.CANCELLED)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.state = TransferState.CANCELLED.value
            self.cancellation_reason = reason
            self.cancelled_at = now
            self.updated_at = now
        self.raise_(
            TransferCancelled(
                transfer_id=str(self.id),
                reason=reason,
                cancelled_at=now,
            )
        )
