"""StorePickup aggregate (CQRS): an order collected in store with a code.

State Machine:
    PENDING → READY → PICKED_UP
    {PENDING, READY} → CANCELLED

The pickup holds reserved stock at its location. Transitions that affect
that stock or the customer return effects (ConfirmHeldStock,
ReleaseHeldStock, NotifyCustomer) for the handler to carry out.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from omnistock import settings
from omnistock.domain import omnistock
from omnistock.effects import ConfirmHeldStock, NotifyCustomer, ReleaseHeldStock
from omnistock.errors import AwaitingBackorder, CodeMismatch, PickupExpired
from omnistock.notification.port import NotificationChannel
from omnistock.pickup.codes import codes_match, generate_pickup_code
from omnistock.pickup.events import (
    PickupCancelled,
    PickupCompleted,
    PickupCreated,
    PickupReady,
    PickupRescheduled,
)


class PickupState(Enum):
    PENDING = "Pending"
    READY = "Ready"
    PICKED_UP = "PickedUp"
    CANCELLED = "Cancelled"


_VALID_TRANSITIONS = {
    PickupState.PENDING: {PickupState.READY, PickupState.CANCELLED},
    PickupState.READY: {PickupState.PICKED_UP, PickupState.CANCELLED},
    PickupState.PICKED_UP: set(),  # terminal
    PickupState.CANCELLED: set(),  # terminal
}

_ACTIVE_STATES = {PickupState.PENDING, PickupState.READY}


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@omnistock.entity(part_of="StorePickup")
class HeldItem:
    """Stock reserved at the pickup location for this pickup."""

    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@omnistock.aggregate
class StorePickup:
    order_id = Identifier(required=True)
    location_id = Identifier(required=True)
    state = String(
        max_length=20,
        choices=PickupState,
        default=PickupState.PENDING.value,
    )
    code = String(max_length=12)
    held_items = HasMany(HeldItem)
    customer_contact = String(max_length=255)
    notification_channel = String(
        max_length=20,
        choices=NotificationChannel,
        default=NotificationChannel.EMAIL.value,
    )
    scheduled_pickup_at = DateTime()
    ready_at = DateTime()
    picked_up_at = DateTime()
    cancelled_at = DateTime()
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_id: str,
        location_id: str,
        items: list[dict],
        customer_contact: str | None = None,
        notification_channel: str = NotificationChannel.EMAIL.value,
        scheduled_pickup_at: datetime | None = None,
    ):
        """Open a pickup for items already reserved at ``location_id``."""
        if not items:
            raise ValidationError({"held_items": ["A pickup must hold at least one item"]})
        now = datetime.now(UTC)
        scheduled_pickup_at = _aware(scheduled_pickup_at)
        if scheduled_pickup_at is not None and scheduled_pickup_at <= now:
            raise ValidationError({"scheduled_pickup_at": ["Scheduled pickup time must be in the future"]})

        pickup = cls(
            order_id=order_id,
            location_id=location_id,
            state=PickupState.PENDING.value,
            customer_contact=customer_contact,
            notification_channel=notification_channel,
            scheduled_pickup_at=scheduled_pickup_at,
            created_at=now,
            updated_at=now,
        )
        for item in items:
            pickup.add_held_items(HeldItem(variant_id=str(item["variant_id"]), quantity=int(item["quantity"])))

        pickup.raise_(
            PickupCreated(
                pickup_id=str(pickup.id),
                order_id=str(order_id),
                location_id=str(location_id),
                items=json.dumps([{"variant_id": str(i["variant_id"]), "quantity": int(i["quantity"])} for i in items]),
                scheduled_pickup_at=scheduled_pickup_at,
                created_at=now,
            )
        )
        return pickup

    # -------------------------------------------------------------------
    # State helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: PickupState) -> None:
        current = PickupState(self.state)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"state": [f"Cannot transition from {current.value} to {target.value}"]})

    @property
    def is_active(self) -> bool:
        return PickupState(self.state) in _ACTIVE_STATES

    @property
    def expires_at(self) -> datetime | None:
        if self.ready_at is None:
            return None
        return _aware(self.ready_at) + timedelta(days=settings.pickup_expiry_days())

    def is_expired(self, now: datetime | None = None) -> bool:
        """A ready pickup that was not collected within the expiry window."""
        if PickupState(self.state) != PickupState.READY or self.expires_at is None:
            return False
        return (now or datetime.now(UTC)) > self.expires_at

    def _held(self, effect_cls) -> list:
        return [
            effect_cls(
                variant_id=str(item.variant_id),
                location_id=str(self.location_id),
                quantity=item.quantity,
                order_id=str(self.order_id),
            )
            for item in (self.held_items or [])
        ]

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def mark_ready(self, taken_codes: set[str] | frozenset[str] = frozenset()) -> list[NotifyCustomer]:
        """Items are staged. Issues the pickup code and asks for the customer to be told."""
        self._assert_can_transition(PickupState.READY)
        now = datetime.now(UTC)
        with atomic_change(self):
            if not self.code:
                self.code = generate_pickup_code(taken_codes)
            self.state = PickupState.READY.value
            self.ready_at = now
            self.updated_at = now

        self.raise_(
            PickupReady(
                pickup_id=str(self.id),
                order_id=str(self.order_id),
                location_id=str(self.location_id),
                ready_at=now,
            )
        )

        if not self.customer_contact:
            return []
        return [
            NotifyCustomer(
                channel=self.notification_channel or NotificationChannel.EMAIL.value,
                recipient=self.customer_contact,
                subject=f"Order {self.order_id} is ready for pickup",
                body=(
                    f"Your order {self.order_id} is ready. Show code {self.code} at the counter "
                    f"before {self.expires_at:%Y-%m-%d}."
                ),
            )
        ]

    def complete(
        self,
        presented_code: str,
        now: datetime | None = None,
        awaiting: dict[str, int] | None = None,
    ) -> list[ConfirmHeldStock]:
        """Customer presented a code. A wrong code leaves the pickup untouched.

        ``awaiting`` maps variant ids to units of this order still backordered
        at the location; the items cannot be handed over until it is empty.
        """
        self._assert_can_transition(PickupState.PICKED_UP)
        if not codes_match(self.code, presented_code):
            raise CodeMismatch("Pickup code does not match")
        now = now or datetime.now(UTC)
        if self.is_expired(now):
            raise PickupExpired(f"Pickup expired on {self.expires_at:%Y-%m-%d}")
        short = {variant_id: units for variant_id, units in (awaiting or {}).items() if units}
        if short:
            raise AwaitingBackorder(
                "Still backordered: " + ", ".join(f"{units} x {variant_id}" for variant_id, units in sorted(short.items()))
            )

        with atomic_change(self):
            self.state = PickupState.PICKED_UP.value
            self.picked_up_at = now
            self.updated_at = now

        self.raise_(
            PickupCompleted(
                pickup_id=str(self.id),
                order_id=str(self.order_id),
                location_id=str(self.location_id),
                picked_up_at=now,
            )
        )
        return self._held(ConfirmHeldStock)

    def cancel(self, reason: str | None = None) -> list[ReleaseHeldStock]:
        """Cancel before collection. The order's stock here is to be given back.

        Release effects carry the order id so any part still backordered is
        dropped from the queue rather than taken out of reserved.
        """
        previous = PickupState(self.state)
        self._assert_can_transition(PickupState.CANCELLED)
        if reason and len(reason) > 500:
            raise ValidationError({"cancellation_reason": ["Cancellation reason cannot exceed 500 characters"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.state = PickupState.CANCELLED.value
            self.cancellation_reason = reason
            self.cancelled_at = now
            self.updated_at = now

        self.raise_(
            PickupCancelled(
                pickup_id=str(self.id),
                order_id=str(self.order_id),
                location_id=str(self.location_id),
                previous_state=previous.value,
                reason=reason,
                cancelled_at=now,
            )
        )
        return self._held(ReleaseHeldStock)

    def reschedule(self, scheduled_pickup_at: datetime) -> None:
        if not self.is_active:
            raise ValidationError({"state": [f"Cannot reschedule a pickup in {self.state} state"]})
        now = datetime.now(UTC)
        scheduled_pickup_at = _aware(scheduled_pickup_at)
        if scheduled_pickup_at is None or scheduled_pickup_at <= now:
            raise ValidationError({"scheduled_pickup_at": ["Scheduled pickup time must be in the future"]})

        previous = self.scheduled_pickup_at
        with atomic_change(self):
            self.scheduled_pickup_at = scheduled_pickup_at
            self.updated_at = now

        self.raise_(
            PickupRescheduled(
                pickup_id=str(self.id),
                previous_scheduled_pickup_at=previous,
                scheduled_pickup_at=scheduled_pickup_at,
                rescheduled_at=now,
            )
        )
