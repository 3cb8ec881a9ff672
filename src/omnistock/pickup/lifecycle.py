"""Store pickup lifecycle: commands and handler.

Stock effects returned by the aggregate are applied through the reservation
engine before the pickup is persisted; notifications go out last and never
fail the command.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from omnistock.domain import omnistock
from omnistock.effects import ConfirmHeldStock, NotifyCustomer, ReleaseHeldStock
from omnistock.notification import dispatch
from omnistock.notification.port import NotificationChannel
from omnistock.pickup.pickup import StorePickup
from omnistock.stock.engine import get_engine
from omnistock.stock.locking import run_serialized

logger = structlog.get_logger(__name__)


def pickup_code_key(location_id) -> tuple:
    return ("pickup-codes", str(location_id))


def apply_effects(effects, reference: str | None = None) -> None:
    """Carry out effects returned by a pickup transition."""
    engine = get_engine()
    for effect in effects:
        if isinstance(effect, ConfirmHeldStock):
            engine.confirm(
                effect.variant_id,
                effect.location_id,
                effect.quantity,
                reference=reference,
                order_id=effect.order_id,
            )
        elif isinstance(effect, ReleaseHeldStock):
            if effect.order_id:
                engine.release_for_order(
                    effect.variant_id, effect.location_id, effect.quantity, effect.order_id, reference=reference
                )
            else:
                engine.release(effect.variant_id, effect.location_id, effect.quantity, reference=reference)
        elif isinstance(effect, NotifyCustomer):
            dispatch(effect)
        else:
            raise TypeError(f"Unknown effect: {effect!r}")


def awaiting_backorders(pickup) -> dict[str, int]:
    """Units of the pickup's order still backordered at its location, by variant."""
    engine = get_engine()
    return {
        str(item.variant_id): engine.outstanding_backorder(item.variant_id, pickup.location_id, pickup.order_id)
        for item in (pickup.held_items or [])
    }


@omnistock.command(part_of="StorePickup")
class CreatePickup:
    """Open a pickup for items already reserved at the location."""

    order_id = Identifier(required=True)
    location_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of {variant_id, quantity}
    customer_contact = String(max_length=255)
    notification_channel = String(
        max_length=20,
        choices=NotificationChannel,
        default=NotificationChannel.EMAIL.value,
    )
    scheduled_pickup_at = DateTime()


@omnistock.command(part_of="StorePickup")
class MarkPickupReady:
    pickup_id = Identifier(required=True)


@omnistock.command(part_of="StorePickup")
class CompletePickup:
    pickup_id = Identifier(required=True)
    code = String(required=True, max_length=12)


@omnistock.command(part_of="StorePickup")
class CancelPickup:
    pickup_id = Identifier(required=True)
    reason = String(max_length=500)


@omnistock.command(part_of="StorePickup")
class ReschedulePickup:
    pickup_id = Identifier(required=True)
    scheduled_pickup_at = DateTime(required=True)


@omnistock.command_handler(part_of=StorePickup)
class PickupLifecycleHandler:
    @handle(CreatePickup)
    def create_pickup(self, command):
        items = json.loads(command.items) if isinstance(command.items, str) else command.items
        pickup = StorePickup.create(
            order_id=command.order_id,
            location_id=command.location_id,
            items=items,
            customer_contact=command.customer_contact,
            notification_channel=command.notification_channel or NotificationChannel.EMAIL.value,
            scheduled_pickup_at=command.scheduled_pickup_at,
        )
        current_domain.repository_for(StorePickup).add(pickup)
        return str(pickup.id)

    @handle(MarkPickupReady)
    def mark_ready(self, command):
        repo = current_domain.repository_for(StorePickup)
        location_id = repo.get(command.pickup_id).location_id

        # Taken codes are read and the new code saved under one lock per location
        def operation():
            pickup = repo.get(command.pickup_id)
            notifications = pickup.mark_ready(repo.active_codes_at(location_id))
            repo.add(pickup)
            return pickup, notifications

        pickup, notifications = run_serialized(pickup_code_key(location_id), operation)
        logger.info("pickup_ready", pickup_id=str(pickup.id), location_id=str(location_id))
        apply_effects(notifications)
        return pickup.code

    @handle(CompletePickup)
    def complete_pickup(self, command):
        repo = current_domain.repository_for(StorePickup)
        pickup = repo.get(command.pickup_id)
        try:
            effects = pickup.complete(command.code, awaiting=awaiting_backorders(pickup))
        except ValidationError as exc:
            logger.warning("pickup_completion_rejected", pickup_id=str(pickup.id), errors=exc.messages)
            raise
        apply_effects(effects, reference=str(pickup.order_id))
        repo.add(pickup)
        logger.info("pickup_completed", pickup_id=str(pickup.id), order_id=str(pickup.order_id))

    @handle(CancelPickup)
    def cancel_pickup(self, command):
        repo = current_domain.repository_for(StorePickup)
        pickup = repo.get(command.pickup_id)
        effects = pickup.cancel(command.reason)
        apply_effects(effects, reference=str(pickup.order_id))
        repo.add(pickup)
        logger.info("pickup_cancelled", pickup_id=str(pickup.id), reason=command.reason)

    @handle(ReschedulePickup)
    def reschedule_pickup(self, command):
        repo = current_domain.repository_for(StorePickup)
        pickup = repo.get(command.pickup_id)
        pickup.reschedule(command.scheduled_pickup_at)
        repo.add(pickup)
