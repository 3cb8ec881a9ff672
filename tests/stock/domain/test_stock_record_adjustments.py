"""Tests for on-hand adjustments, write-offs and record invariants."""

import pytest
from protean.exceptions import ValidationError

from omnistock.errors import InvalidAdjustment, NegativeOnHand
from omnistock.stock.events import StockAdjusted, StockRecordInitialized, StockSoftZeroed
from omnistock.stock.stock_record import (
    MovementAction,
    MovementOriginator,
    StockRecord,
    action_for,
)


def _make_record(quantity_on_hand=10, **overrides):
    record = StockRecord.create(
        variant_id=overrides.pop("variant_id", "var-001"),
        location_id=overrides.pop("location_id", "loc-001"),
        quantity_on_hand=quantity_on_hand,
        **overrides,
    )
    record._events.clear()
    return record


class TestCreate:
    def test_new_record_has_no_reservations(self):
        record = StockRecord.create(variant_id="var-001", location_id="loc-001", quantity_on_hand=25)
        assert record.quantity_on_hand == 25
        assert record.quantity_reserved == 0
        assert record.quantity_backordered == 0
        assert record.count_available == 25

    def test_create_raises_initialized_event(self):
        record = StockRecord.create(variant_id="var-001", location_id="loc-001", quantity_on_hand=5)
        assert isinstance(record._events[0], StockRecordInitialized)
        assert record._events[0].quantity_on_hand == 5

    def test_initial_stock_is_journalled_as_received(self):
        record = StockRecord.create(variant_id="var-001", location_id="loc-001", quantity_on_hand=5)
        assert len(record.movements) == 1
        assert record.movements[0].action == MovementAction.RECEIVED.value

    def test_empty_record_has_no_movements(self):
        record = StockRecord.create(variant_id="var-001", location_id="loc-001")
        assert record.quantity_on_hand == 0
        assert len(record.movements) == 0

    def test_negative_initial_stock_fails(self):
        with pytest.raises(NegativeOnHand):
            StockRecord.create(variant_id="var-001", location_id="loc-001", quantity_on_hand=-1)


class TestAdjust:
    def test_restock(self):
        record = _make_record()
        assert record.adjust(5, originator=MovementOriginator.SUPPLIER) == 15
        assert record.quantity_on_hand == 15

    def test_shrinkage(self):
        record = _make_record()
        record.adjust(-3, originator=MovementOriginator.DAMAGE, reference="broken pallet")
        assert record.quantity_on_hand == 7
        assert record.movements[-1].action == MovementAction.DAMAGED.value
        assert record.movements[-1].reference == "broken pallet"

    def test_zero_delta_fails(self):
        record = _make_record()
        with pytest.raises(InvalidAdjustment):
            record.adjust(0)

    def test_adjust_below_zero_fails(self):
        record = _make_record()
        with pytest.raises(NegativeOnHand):
            record.adjust(-11)
        assert record.quantity_on_hand == 10

    def test_adjust_below_reserved_fails(self):
        record = _make_record()
        record.reserve(8)
        with pytest.raises(NegativeOnHand):
            record.adjust(-3)
        assert record.quantity_on_hand == 10
        assert record.quantity_reserved == 8

    def test_adjust_down_to_reserved_is_allowed(self):
        record = _make_record()
        record.reserve(8)
        assert record.adjust(-2) == 0

    def test_originator_accepts_plain_value(self):
        record = _make_record()
        record.adjust(2, originator="Return")
        assert record.movements[-1].originator == MovementOriginator.RETURN.value
        assert record.movements[-1].action == MovementAction.RETURNED.value

    def test_adjust_raises_event(self):
        record = _make_record()
        record.adjust(-1, originator=MovementOriginator.LOSS)
        event = record._events[0]
        assert isinstance(event, StockAdjusted)
        assert event.delta == -1
        assert event.originator == "Loss"
        assert event.on_hand_after == 9


class TestActionFor:
    @pytest.mark.parametrize(
        "originator, delta, action",
        [
            (MovementOriginator.SUPPLIER, 5, MovementAction.RECEIVED),
            (MovementOriginator.STOCK_TRANSFER, 5, MovementAction.RECEIVED),
            (MovementOriginator.CUSTOMER, 1, MovementAction.RETURNED),
            (MovementOriginator.DAMAGE, -1, MovementAction.DAMAGED),
            (MovementOriginator.LOSS, -1, MovementAction.LOST),
            (MovementOriginator.RECOUNT, -4, MovementAction.ADJUSTMENT),
            (MovementOriginator.FOUND, 2, MovementAction.ADJUSTMENT),
        ],
    )
    def test_classification(self, originator, delta, action):
        assert action_for(originator, delta) == action


class TestSoftZero:
    def test_writes_off_unreserved_stock(self):
        record = _make_record()
        record.reserve(3)
        assert record.soft_zero(reference="store closing") == 7
        assert record.quantity_on_hand == 3
        assert record.quantity_reserved == 3
        assert record.count_available == 0

    def test_soft_zero_of_empty_record(self):
        record = _make_record(quantity_on_hand=0)
        assert record.soft_zero() == 0
        assert isinstance(record._events[0], StockSoftZeroed)
        assert record._events[0].written_off == 0


class TestInvariants:
    def test_reserved_cannot_exceed_on_hand(self):
        record = _make_record(quantity_on_hand=2)
        with pytest.raises(ValidationError) as exc_info:
            record.quantity_reserved = 3
        assert "quantity_reserved" in exc_info.value.messages

    def test_backordered_must_match_demand(self):
        record = _make_record()
        with pytest.raises(ValidationError) as exc_info:
            record.quantity_backordered = 4
        assert "quantity_backordered" in exc_info.value.messages

    def test_counters_cannot_be_negative(self):
        record = _make_record()
        with pytest.raises(ValidationError):
            record.quantity_on_hand = -1
