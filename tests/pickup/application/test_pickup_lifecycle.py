"""Application tests for the store pickup workflow and its stock effects."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from omnistock.errors import AwaitingBackorder, CodeMismatch
from omnistock.pickup.lifecycle import (
    CancelPickup,
    CompletePickup,
    CreatePickup,
    MarkPickupReady,
    ReschedulePickup,
    apply_effects,
)
from omnistock.pickup.pickup import PickupState, StorePickup


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _get(pickup_id):
    return current_domain.repository_for(StorePickup).get(pickup_id)


@pytest.fixture()
def held_stock(engine):
    """Two shirts reserved at the store for the order."""
    engine.initialize("var-shirt", "store-001", 10)
    engine.reserve("var-shirt", "store-001", 2, order_id="ord-001")


@pytest.fixture()
def partly_backordered(engine):
    """Another order holds 3 of 4 shirts; ord-001 holds 1 and waits for 1 more."""
    engine.initialize("var-shirt", "store-001", 4, backorderable=True)
    engine.reserve("var-shirt", "store-001", 3, order_id="ord-other")
    engine.reserve("var-shirt", "store-001", 2, order_id="ord-001")


def _create_pickup(**overrides):
    defaults = {
        "order_id": "ord-001",
        "location_id": "store-001",
        "items": json.dumps([{"variant_id": "var-shirt", "quantity": 2}]),
        "customer_contact": "+84900000000",
        "notification_channel": "SMS",
    }
    defaults.update(overrides)
    return _process(CreatePickup(**defaults))


class TestCreatePickup:
    def test_create_persists(self, held_stock):
        pickup_id = _create_pickup()
        pickup = _get(pickup_id)
        assert pickup.state == PickupState.PENDING.value
        assert pickup.held_items[0].quantity == 2


class TestMarkReady:
    def test_ready_returns_code_and_notifies(self, held_stock, dispatcher):
        pickup_id = _create_pickup()
        code = _process(MarkPickupReady(pickup_id=pickup_id))

        assert _get(pickup_id).code == code
        assert len(dispatcher.sent_messages) == 1
        message = dispatcher.sent_messages[0]
        assert message["channel"] == "SMS"
        assert code in message["body"]

    def test_notification_failure_does_not_fail_command(self, held_stock, dispatcher):
        dispatcher.configure(should_raise=True)
        pickup_id = _create_pickup()
        _process(MarkPickupReady(pickup_id=pickup_id))
        assert _get(pickup_id).state == PickupState.READY.value

    def test_codes_unique_per_location(self, engine, monkeypatch):
        engine.initialize("var-shirt", "store-001", 10)
        monkeypatch.setenv("OMNISTOCK_PICKUP_CODE_LENGTH", "2")
        picks = iter("ABABCD")
        monkeypatch.setattr("omnistock.pickup.codes.secrets.choice", lambda alphabet: next(picks))

        first = _process(MarkPickupReady(pickup_id=_create_pickup(order_id="ord-001")))
        second = _process(MarkPickupReady(pickup_id=_create_pickup(order_id="ord-002")))

        assert first == "AB"
        assert second == "CD"


class TestCompletePickup:
    def test_complete_confirms_held_stock(self, held_stock, engine):
        pickup_id = _create_pickup()
        code = _process(MarkPickupReady(pickup_id=pickup_id))

        _process(CompletePickup(pickup_id=pickup_id, code=code))

        assert _get(pickup_id).state == PickupState.PICKED_UP.value
        record = engine.get_stock_record("var-shirt", "store-001")
        assert record.quantity_on_hand == 8
        assert record.quantity_reserved == 0

    def test_wrong_code_leaves_stock_held(self, held_stock, engine):
        pickup_id = _create_pickup()
        _process(MarkPickupReady(pickup_id=pickup_id))

        with pytest.raises(CodeMismatch):
            _process(CompletePickup(pickup_id=pickup_id, code="ZZZZZZ9"))

        assert _get(pickup_id).state == PickupState.READY.value
        assert engine.get_stock_record("var-shirt", "store-001").quantity_reserved == 2

    def test_complete_before_ready(self, held_stock):
        pickup_id = _create_pickup()
        with pytest.raises(ValidationError):
            _process(CompletePickup(pickup_id=pickup_id, code="ABC234"))

    def test_backordered_items_cannot_be_handed_over(self, partly_backordered, engine):
        pickup_id = _create_pickup()
        code = _process(MarkPickupReady(pickup_id=pickup_id))

        with pytest.raises(AwaitingBackorder):
            _process(CompletePickup(pickup_id=pickup_id, code=code))

        assert _get(pickup_id).state == PickupState.READY.value
        record = engine.get_stock_record("var-shirt", "store-001")
        assert record.quantity_on_hand == 4
        assert record.quantity_reserved == 4

    def test_completes_once_backorder_is_filled(self, partly_backordered, engine):
        pickup_id = _create_pickup()
        code = _process(MarkPickupReady(pickup_id=pickup_id))
        engine.adjust("var-shirt", "store-001", 1)

        _process(CompletePickup(pickup_id=pickup_id, code=code))

        record = engine.get_stock_record("var-shirt", "store-001")
        assert record.quantity_on_hand == 3
        assert record.quantity_reserved == 3
        assert record.quantity_backordered == 0


class TestCancelPickup:
    def test_cancel_releases_held_stock(self, held_stock, engine):
        pickup_id = _create_pickup()
        _process(CancelPickup(pickup_id=pickup_id, reason="customer request"))

        assert _get(pickup_id).state == PickupState.CANCELLED.value
        record = engine.get_stock_record("var-shirt", "store-001")
        assert record.quantity_reserved == 0
        assert record.quantity_on_hand == 10

    def test_cancel_ready_pickup(self, held_stock, engine):
        pickup_id = _create_pickup()
        _process(MarkPickupReady(pickup_id=pickup_id))
        _process(CancelPickup(pickup_id=pickup_id))
        assert engine.get_stock_record("var-shirt", "store-001").count_available == 10

    def test_cancel_gives_back_only_this_orders_stock(self, partly_backordered, engine):
        pickup_id = _create_pickup()
        _process(CancelPickup(pickup_id=pickup_id))

        record = engine.get_stock_record("var-shirt", "store-001")
        assert record.quantity_reserved == 3
        assert record.quantity_backordered == 0
        assert record.outstanding_for("ord-001") == 0

    def test_cancel_completed_pickup(self, held_stock):
        pickup_id = _create_pickup()
        code = _process(MarkPickupReady(pickup_id=pickup_id))
        _process(CompletePickup(pickup_id=pickup_id, code=code))
        with pytest.raises(ValidationError):
            _process(CancelPickup(pickup_id=pickup_id))


class TestReschedulePickup:
    def test_reschedule(self, held_stock):
        pickup_id = _create_pickup()
        when = datetime.now(UTC) + timedelta(days=3)
        _process(ReschedulePickup(pickup_id=pickup_id, scheduled_pickup_at=when))
        assert _get(pickup_id).scheduled_pickup_at is not None


class TestApplyEffects:
    def test_unknown_effect(self):
        with pytest.raises(TypeError):
            apply_effects([object()])
