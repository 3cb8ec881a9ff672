"""Order allocation: plan, reserve and (for pickup orders) open pickups.

The plan is built from a consistent snapshot of candidates, then every
allocation is reserved. If a reservation fails part-way, the ones already
made are released before the error propagates, so an order never holds
stock for only some of its lines.
"""

import json

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from omnistock.allocation.candidates import CustomerContext, FulfillmentMode
from omnistock.allocation.planner import FulfillmentPlan, FulfillmentPlanner
from omnistock.allocation.strategies import StrategyKind
from omnistock.domain import omnistock
from omnistock.location.registry import LocationRegistry
from omnistock.notification.port import NotificationChannel
from omnistock.pickup.pickup import StorePickup
from omnistock.stock.engine import ReservationEngine, get_engine
from omnistock.stock.stock_record import StockRecord
from omnistock.utils.logging import log_context

logger = structlog.get_logger(__name__)


@omnistock.command(part_of="StockRecord")
class AllocateOrder:
    """Choose fulfillment locations for an order and reserve its stock."""

    order_id = Identifier(required=True)
    lines = Text(required=True)  # JSON list of {variant_id, quantity}
    strategy = String(
        max_length=50,
        choices=StrategyKind,
        default=StrategyKind.NEAREST_LOCATION.value,
    )
    mode = String(max_length=20, choices=FulfillmentMode, default=FulfillmentMode.SHIP.value)
    customer_latitude = Float()
    customer_longitude = Float()
    preferred_location_id = Identifier()
    weight = Float()
    customer_contact = String(max_length=255)
    notification_channel = String(
        max_length=20,
        choices=NotificationChannel,
        default=NotificationChannel.EMAIL.value,
    )


def reserve_plan(plan: FulfillmentPlan, order_id: str, engine: ReservationEngine | None = None) -> None:
    """Reserve every planned allocation, all or nothing.

    On failure each earlier reservation is undone for this order only: its
    held units are released and any part that went to backorder is dropped
    from the queue.
    """
    engine = engine or get_engine()
    reserved: list[tuple[str, str, int]] = []
    try:
        for variant_id, location_id, quantity in plan.allocations:
            engine.reserve(variant_id, location_id, quantity, order_id=order_id)
            reserved.append((variant_id, location_id, quantity))
    except Exception:
        logger.warning("allocation_rolled_back", order_id=order_id, reserved=len(reserved))
        for variant_id, location_id, quantity in reversed(reserved):
            engine.release_for_order(variant_id, location_id, quantity, order_id)
        raise


@omnistock.command_handler(part_of=StockRecord)
class AllocationHandler:
    @handle(AllocateOrder)
    def allocate_order(self, command):
        order_id = str(command.order_id)
        lines = json.loads(command.lines) if isinstance(command.lines, str) else command.lines
        mode = FulfillmentMode(command.mode or FulfillmentMode.SHIP.value)
        context = CustomerContext(
            latitude=command.customer_latitude,
            longitude=command.customer_longitude,
            preferred_location_id=command.preferred_location_id,
            mode=mode,
            weight=command.weight,
        )

        with log_context(order_id=order_id):
            engine = get_engine()
            registry = LocationRegistry(engine)
            planner = FulfillmentPlanner(lambda variant_id: registry.candidates_for(variant_id, mode))
            plan = planner.plan(lines, command.strategy or StrategyKind.NEAREST_LOCATION.value, context)

            reserve_plan(plan, order_id, engine)

            result = plan.to_dict()
            result["order_id"] = order_id
            result["mode"] = mode.value
            result["pickup_ids"] = []

            if mode == FulfillmentMode.PICKUP:
                repo = current_domain.repository_for(StorePickup)
                for shipment in plan.shipments:
                    pickup = StorePickup.create(
                        order_id=order_id,
                        location_id=shipment.location_id,
                        items=[{"variant_id": i.variant_id, "quantity": i.quantity} for i in shipment.items],
                        customer_contact=command.customer_contact,
                        notification_channel=command.notification_channel or NotificationChannel.EMAIL.value,
                    )
                    repo.add(pickup)
                    result["pickup_ids"].append(str(pickup.id))

            logger.info(
                "order_allocated",
                strategy=plan.strategy,
                shipments=len(plan.shipments),
                pickups=len(result["pickup_ids"]),
            )
            return result
