"""Application tests for allocating an order end to end."""

import json

import pytest
from protean import current_domain

from omnistock.allocation.allocate import AllocateOrder, reserve_plan
from omnistock.allocation.planner import FulfillmentPlan, PlannedItem, ShipmentPlan
from omnistock.errors import InsufficientStock, NoFulfillableLocation
from omnistock.location.location import Location, LocationType
from omnistock.pickup.pickup import PickupState, StorePickup


def _add_location(name, **kwargs):
    location = Location.create(name=name, **kwargs)
    current_domain.repository_for(Location).add(location)
    return str(location.id)


@pytest.fixture()
def saigon(engine):
    """Two stores near the customer, one warehouse further out."""
    district1 = _add_location(
        "District 1",
        location_type=LocationType.RETAIL_STORE.value,
        pickup_enabled=True,
        latitude=10.7900,
        longitude=106.7019,
    )
    district7 = _add_location(
        "District 7",
        location_type=LocationType.RETAIL_STORE.value,
        pickup_enabled=True,
        latitude=10.7320,
        longitude=106.7220,
    )
    central = _add_location("Central", latitude=10.8500, longitude=106.6300)
    engine.initialize("var-shirt", district1, 20)
    engine.initialize("var-shirt", district7, 30)
    engine.initialize("var-shirt", central, 100)
    return {"district1": district1, "district7": district7, "central": central}


def _allocate(lines, **kwargs):
    defaults = {
        "order_id": "ord-001",
        "lines": json.dumps(lines),
        "customer_latitude": 10.7756,
        "customer_longitude": 106.7019,
    }
    defaults.update(kwargs)
    return current_domain.process(AllocateOrder(**defaults), asynchronous=False)


class TestAllocateOrder:
    def test_nearest_location_is_reserved(self, saigon, engine):
        result = _allocate([{"variant_id": "var-shirt", "quantity": 5}])

        assert result["order_id"] == "ord-001"
        assert result["shipments"][0]["location_id"] == saigon["district1"]
        assert engine.get_stock_record("var-shirt", saigon["district1"]).quantity_reserved == 5
        assert engine.get_stock_record("var-shirt", saigon["district7"]).quantity_reserved == 0

    def test_highest_stock(self, saigon, engine):
        result = _allocate([{"variant_id": "var-shirt", "quantity": 5}], strategy="HighestStock")
        assert result["shipments"][0]["location_id"] == saigon["central"]
        assert engine.get_stock_record("var-shirt", saigon["central"]).count_available == 95

    def test_preferred_location(self, saigon):
        result = _allocate(
            [{"variant_id": "var-shirt", "quantity": 5}],
            strategy="PreferredWithFallback",
            preferred_location_id=saigon["district7"],
        )
        assert result["shipments"][0]["location_id"] == saigon["district7"]

    def test_large_order_is_split(self, saigon, engine):
        result = _allocate([{"variant_id": "var-shirt", "quantity": 140}], strategy="HighestStock")
        assert result["is_split"] is True
        assert result["total_quantity"] == 140
        assert engine.available_by_location("var-shirt") == {
            saigon["district1"]: 10,
            saigon["district7"]: 0,
            saigon["central"]: 0,
        }

    def test_unfulfillable_order_reserves_nothing(self, saigon, engine):
        with pytest.raises(NoFulfillableLocation):
            _allocate([{"variant_id": "var-shirt", "quantity": 500}])
        assert sum(engine.available_by_location("var-shirt").values()) == 150

    def test_nearest_needs_customer_coordinates(self, saigon):
        with pytest.raises(NoFulfillableLocation):
            _allocate(
                [{"variant_id": "var-shirt", "quantity": 1}],
                customer_latitude=None,
                customer_longitude=None,
            )


class TestPickupAllocation:
    def test_pickup_order_opens_a_pickup(self, saigon):
        result = _allocate(
            [{"variant_id": "var-shirt", "quantity": 2}],
            mode="Pickup",
            customer_contact="an@example.com",
        )

        assert result["mode"] == "Pickup"
        assert len(result["pickup_ids"]) == 1
        pickup = current_domain.repository_for(StorePickup).get(result["pickup_ids"][0])
        assert pickup.state == PickupState.PENDING.value
        assert str(pickup.location_id) == saigon["district1"]
        assert [(str(i.variant_id), i.quantity) for i in pickup.held_items] == [("var-shirt", 2)]

    def test_pickup_skips_locations_without_pickup(self, saigon, engine):
        result = _allocate(
            [{"variant_id": "var-shirt", "quantity": 40}],
            mode="Pickup",
            strategy="HighestStock",
        )
        assert saigon["central"] not in {s["location_id"] for s in result["shipments"]}


class TestReservePlan:
    def test_failure_releases_earlier_reservations(self, engine):
        engine.initialize("var-a", "loc-1", 5)
        engine.initialize("var-b", "loc-2", 1)
        plan = FulfillmentPlan(
            strategy="HighestStock",
            shipments=[
                ShipmentPlan("loc-1", "One", [PlannedItem("var-a", 3)]),
                ShipmentPlan("loc-2", "Two", [PlannedItem("var-b", 2)]),
            ],
        )

        with pytest.raises(InsufficientStock):
            reserve_plan(plan, "ord-001", engine)

        assert engine.get_stock_record("var-a", "loc-1").quantity_reserved == 0
        assert engine.get_stock_record("var-b", "loc-2").quantity_reserved == 0

    def test_success_reserves_everything(self, engine):
        engine.initialize("var-a", "loc-1", 5)
        plan = FulfillmentPlan(
            strategy="HighestStock",
            shipments=[ShipmentPlan("loc-1", "One", [PlannedItem("var-a", 3)])],
        )
        reserve_plan(plan, "ord-001", engine)
        assert engine.get_stock_record("var-a", "loc-1").quantity_reserved == 3

    def test_failure_gives_back_only_this_orders_backorderable_stock(self, engine):
        engine.initialize("var-a", "loc-b", 10, backorderable=True)
        engine.initialize("var-a", "loc-x", 0)
        engine.reserve("var-a", "loc-b", 8, order_id="ord-other")
        plan = FulfillmentPlan(
            strategy="HighestStock",
            shipments=[
                ShipmentPlan("loc-b", "Backorderable", [PlannedItem("var-a", 5, backordered=3)]),
                ShipmentPlan("loc-x", "Empty", [PlannedItem("var-a", 1)]),
            ],
        )

        with pytest.raises(InsufficientStock):
            reserve_plan(plan, "ord-001", engine)

        record = engine.get_stock_record("var-a", "loc-b")
        assert record.quantity_reserved == 8
        assert record.quantity_backordered == 0
        assert record.outstanding_for("ord-001") == 0

    def test_undo_covers_units_filled_since_reservation(self, engine):
        engine.initialize("var-a", "loc-b", 2, backorderable=True)
        engine.reserve("var-a", "loc-b", 5, order_id="ord-001")
        engine.adjust("var-a", "loc-b", 2)
        engine.release_for_order("var-a", "loc-b", 5, "ord-001")

        record = engine.get_stock_record("var-a", "loc-b")
        assert record.quantity_on_hand == 4
        assert record.quantity_reserved == 0
        assert record.quantity_backordered == 0
