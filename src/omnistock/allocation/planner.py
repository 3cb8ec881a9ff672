"""Fulfillment planning: allocate every order line and group by location.

A line is served from a single location whenever the strategy can find one.
Otherwise it is split greedily across the strategy's ranking, up to a
bounded number of locations. The resulting plan has one shipment per
location.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

import structlog

from omnistock import settings
from omnistock.allocation.candidates import Candidate, CustomerContext
from omnistock.allocation.strategies import StrategyKind, strategy_for
from omnistock.errors import NoFulfillableLocation

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OrderLine:
    variant_id: str
    quantity: int


@dataclass(frozen=True)
class Allocation:
    """``quantity`` units of a variant assigned to one location."""

    variant_id: str
    candidate: Candidate
    quantity: int

    @property
    def location_id(self) -> str:
        return self.candidate.location_id

    @property
    def backordered(self) -> int:
        return max(0, self.quantity - self.candidate.available)


def split_allocation(
    kind,
    candidates: list[Candidate],
    variant_id: str,
    quantity: int,
    context: CustomerContext | None = None,
    shipping_cost=None,
    max_locations: int | None = None,
) -> list[Allocation]:
    """Serve ``quantity`` from one location if possible, else from several."""
    context = context or CustomerContext()
    max_locations = max_locations or settings.max_split_locations()
    strategy = strategy_for(kind, shipping_cost)

    ranked = strategy.rank(candidates, quantity, context)
    single = next((c for c in ranked if c.available >= quantity), None)
    if single is not None:
        return [Allocation(variant_id, single, quantity)]

    allocations: list[Allocation] = []
    remaining = quantity
    for candidate in ranked:
        if remaining == 0 or len(allocations) == max_locations:
            break
        if candidate.available <= 0:
            continue
        take = min(candidate.available, remaining)
        allocations.append(Allocation(variant_id, candidate, take))
        remaining -= take

    if remaining:
        allocations = _backorder_remainder(allocations, ranked, variant_id, remaining, max_locations)
        if allocations is None:
            raise NoFulfillableLocation(
                f"Only {quantity - remaining} of {quantity} units of variant {variant_id} "
                f"can be allocated across {max_locations} locations"
            )
    return allocations


def _backorder_remainder(allocations, ranked, variant_id, remaining, max_locations):
    """Put the shortfall on the best backorderable location, or return None."""
    for index, allocation in enumerate(allocations):
        if allocation.candidate.backorderable:
            allocations[index] = Allocation(variant_id, allocation.candidate, allocation.quantity + remaining)
            return allocations

    if len(allocations) < max_locations:
        backorderable = next((c for c in ranked if c.backorderable), None)
        if backorderable is not None:
            return allocations + [Allocation(variant_id, backorderable, remaining)]
    return None


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PlannedItem:
    variant_id: str
    quantity: int
    backordered: int = 0


@dataclass
class ShipmentPlan:
    location_id: str
    location_name: str
    items: list[PlannedItem] = field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass
class FulfillmentPlan:
    strategy: str
    shipments: list[ShipmentPlan] = field(default_factory=list)

    @property
    def is_split(self) -> bool:
        return len(self.shipments) > 1

    @property
    def total_quantity(self) -> int:
        return sum(s.total_quantity for s in self.shipments)

    @property
    def is_fully_allocated(self) -> bool:
        """True when every planned unit is covered by stock on hand."""
        return all(i.backordered == 0 for s in self.shipments for i in s.items)

    @property
    def allocations(self) -> list[tuple[str, str, int]]:
        """(variant_id, location_id, quantity) for every planned item."""
        return [(i.variant_id, s.location_id, i.quantity) for s in self.shipments for i in s.items]

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "is_split": self.is_split,
            "is_fully_allocated": self.is_fully_allocated,
            "total_quantity": self.total_quantity,
            "shipments": [
                {
                    "location_id": s.location_id,
                    "location_name": s.location_name,
                    "items": [
                        {"variant_id": i.variant_id, "quantity": i.quantity, "backordered": i.backordered}
                        for i in s.items
                    ],
                }
                for s in self.shipments
            ],
        }


class FulfillmentPlanner:
    """Builds a FulfillmentPlan for a list of order lines.

    ``candidates_for`` maps a variant id to its current Candidates, normally
    ``LocationRegistry.candidates_for``.
    """

    def __init__(
        self,
        candidates_for: Callable[[str], list[Candidate]],
        shipping_cost=None,
        allow_split: bool = True,
        max_locations: int | None = None,
    ):
        self.candidates_for = candidates_for
        self.shipping_cost = shipping_cost
        self.allow_split = allow_split
        self.max_locations = max_locations

    @staticmethod
    def merge_lines(lines) -> list[OrderLine]:
        """Collapse repeated variants into one line each, keeping first-seen order."""
        merged: OrderedDict[str, int] = OrderedDict()
        for line in lines:
            if isinstance(line, dict):
                line = OrderLine(variant_id=str(line["variant_id"]), quantity=int(line["quantity"]))
            if line.quantity <= 0:
                raise NoFulfillableLocation(f"Line for variant {line.variant_id} has no quantity", field="quantity")
            merged[line.variant_id] = merged.get(line.variant_id, 0) + line.quantity
        return [OrderLine(variant_id, quantity) for variant_id, quantity in merged.items()]

    def allocate_line(self, kind, line: OrderLine, context: CustomerContext) -> list[Allocation]:
        candidates = self.candidates_for(line.variant_id)
        if self.allow_split:
            return split_allocation(
                kind,
                candidates,
                line.variant_id,
                line.quantity,
                context,
                shipping_cost=self.shipping_cost,
                max_locations=self.max_locations,
            )

        chosen = strategy_for(kind, self.shipping_cost).select(candidates, line.variant_id, line.quantity, context)
        return [Allocation(line.variant_id, chosen, line.quantity)]

    def plan(self, lines, kind=StrategyKind.NEAREST_LOCATION, context: CustomerContext | None = None) -> FulfillmentPlan:
        kind = StrategyKind(kind)
        context = context or CustomerContext()
        shipments: OrderedDict[str, ShipmentPlan] = OrderedDict()

        for line in self.merge_lines(lines):
            for allocation in self.allocate_line(kind, line, context):
                shipment = shipments.get(allocation.location_id)
                if shipment is None:
                    shipment = shipments[allocation.location_id] = ShipmentPlan(
                        location_id=allocation.location_id,
                        location_name=allocation.candidate.name,
                    )
                shipment.items.append(
                    PlannedItem(
                        variant_id=line.variant_id,
                        quantity=allocation.quantity,
                        backordered=allocation.backordered,
                    )
                )

        plan = FulfillmentPlan(strategy=kind.value, shipments=list(shipments.values()))
        logger.info(
            "fulfillment_planned",
            strategy=plan.strategy,
            shipments=len(plan.shipments),
            total_quantity=plan.total_quantity,
        )
        return plan
