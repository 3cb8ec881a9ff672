"""Domain events for the StorePickup aggregate."""

from protean.fields import DateTime, Identifier, String, Text

from omnistock.domain import omnistock


@omnistock.event(part_of="StorePickup")
class PickupCreated:
    """An order's items were assigned to in-store pickup."""

    __version__ = 1

    pickup_id = Identifier(required=True)
    order_id = Identifier(required=True)
    location_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of {variant_id, quantity}
    scheduled_pickup_at = DateTime()
    created_at = DateTime(required=True)


@omnistock.event(part_of="StorePickup")
class PickupReady:
    """Staff staged the items; the customer can come with the code."""

    __version__ = 1

    pickup_id = Identifier(required=True)
    order_id = Identifier(required=True)
    location_id = Identifier(required=True)
    ready_at = DateTime(required=True)


@omnistock.event(part_of="StorePickup")
class PickupCompleted:
    __version__ = 1

    pickup_id = Identifier(required=True)
    order_id = Identifier(required=True)
    location_id = Identifier(required=True)
    picked_up_at = DateTime(required=True)


@omnistock.event(part_of="StorePickup")
class PickupCancelled:
    __version__ = 1

    pickup_id = Identifier(required=True)
    order_id = Identifier(required=True)
    location_id = Identifier(required=True)
    previous_state = String(required=True)
    reason = String(max_length=500)
    cancelled_at = DateTime(required=True)


@omnistock.event(part_of="StorePickup")
class PickupRescheduled:
    __version__ = 1

    pickup_id = Identifier(required=True)
    previous_scheduled_pickup_at = DateTime()
    scheduled_pickup_at = DateTime(required=True)
    rescheduled_at = DateTime(required=True)
