"""Application tests for stock commands processed through the domain."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from omnistock.errors import (
    DuplicateStockRecord,
    InsufficientStock,
    InvalidAdjustment,
    InvalidReleaseQuantity,
    NegativeOnHand,
    ReservationMismatch,
)
from omnistock.stock.adjustment import AdjustStock, RecordStockCount, SoftZeroStock
from omnistock.stock.initialization import InitializeStockRecord
from omnistock.stock.reservation import CancelBackorder, ConfirmStock, ReleaseStock, ReserveStock
from omnistock.stock.stock_record import MovementOriginator, StockRecord


def _initialize(**overrides):
    defaults = {
        "variant_id": "var-001",
        "location_id": "loc-001",
        "quantity_on_hand": 10,
    }
    defaults.update(overrides)
    return current_domain.process(InitializeStockRecord(**defaults), asynchronous=False)


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _record(engine, variant_id="var-001", location_id="loc-001"):
    return engine.get_stock_record(variant_id, location_id)


class TestInitializeStockRecord:
    def test_initialize_persists(self, engine):
        record_id = _initialize(quantity_on_hand=25)
        record = current_domain.repository_for(StockRecord).get(record_id)
        assert record.quantity_on_hand == 25
        assert record.quantity_reserved == 0

    def test_initialize_with_zero_stock(self, engine):
        _initialize(quantity_on_hand=0)
        assert _record(engine).quantity_on_hand == 0

    def test_duplicate_pair_is_rejected(self):
        _initialize()
        with pytest.raises(DuplicateStockRecord):
            _initialize(quantity_on_hand=5)

    def test_same_variant_at_another_location(self, engine):
        _initialize()
        _initialize(location_id="loc-002", quantity_on_hand=3)
        assert engine.available_by_location("var-001") == {"loc-001": 10, "loc-002": 3}


class TestReservationCommands:
    def test_reserve_returns_available(self, engine):
        _initialize()
        available = _process(ReserveStock(variant_id="var-001", location_id="loc-001", quantity=4, order_id="ord-1"))
        assert available == 6
        assert _record(engine).quantity_reserved == 4

    def test_reserve_insufficient(self, engine):
        _initialize(quantity_on_hand=2)
        with pytest.raises(InsufficientStock):
            _process(ReserveStock(variant_id="var-001", location_id="loc-001", quantity=3))
        assert _record(engine).quantity_reserved == 0

    def test_reserve_zero_is_rejected_by_command(self):
        _initialize()
        with pytest.raises(ValidationError):
            ReserveStock(variant_id="var-001", location_id="loc-001", quantity=0)

    def test_release(self, engine):
        _initialize()
        _process(ReserveStock(variant_id="var-001", location_id="loc-001", quantity=4))
        available = _process(ReleaseStock(variant_id="var-001", location_id="loc-001", quantity=4))
        assert available == 10
        assert _record(engine).quantity_reserved == 0

    def test_release_zero(self):
        _initialize()
        with pytest.raises(InvalidReleaseQuantity):
            _process(ReleaseStock(variant_id="var-001", location_id="loc-001", quantity=0))

    def test_release_without_quantity(self):
        _initialize()
        with pytest.raises(InvalidReleaseQuantity):
            _process(ReleaseStock(variant_id="var-001", location_id="loc-001"))

    def test_confirm(self, engine):
        _initialize()
        _process(ReserveStock(variant_id="var-001", location_id="loc-001", quantity=4))
        _process(ConfirmStock(variant_id="var-001", location_id="loc-001", quantity=4, reference="ord-1"))
        record = _record(engine)
        assert record.quantity_on_hand == 6
        assert record.quantity_reserved == 0

    def test_confirm_mismatch(self, engine):
        _initialize()
        _process(ReserveStock(variant_id="var-001", location_id="loc-001", quantity=1))
        with pytest.raises(ReservationMismatch):
            _process(ConfirmStock(variant_id="var-001", location_id="loc-001", quantity=2))

    def test_cancel_backorder(self, engine):
        _initialize(quantity_on_hand=1, backorderable=True)
        _process(ReserveStock(variant_id="var-001", location_id="loc-001", quantity=3, order_id="ord-1"))
        dropped = _process(CancelBackorder(variant_id="var-001", location_id="loc-001", order_id="ord-1"))
        assert dropped == 2
        assert _record(engine).quantity_backordered == 0


class TestAdjustmentCommands:
    def test_adjust_up(self, engine):
        _initialize()
        available = _process(
            AdjustStock(variant_id="var-001", location_id="loc-001", delta=5, originator=MovementOriginator.SUPPLIER.value)
        )
        assert available == 15

    def test_adjust_zero(self):
        _initialize()
        with pytest.raises(InvalidAdjustment):
            _process(AdjustStock(variant_id="var-001", location_id="loc-001", delta=0))

    def test_adjust_below_reserved(self):
        _initialize()
        _process(ReserveStock(variant_id="var-001", location_id="loc-001", quantity=8))
        with pytest.raises(NegativeOnHand):
            _process(AdjustStock(variant_id="var-001", location_id="loc-001", delta=-5))

    def test_adjust_creates_missing_record_on_restock(self, engine):
        _process(AdjustStock(variant_id="var-new", location_id="loc-001", delta=7))
        assert _record(engine, "var-new").quantity_on_hand == 7

    def test_recount(self, engine):
        _initialize()
        available = _process(RecordStockCount(variant_id="var-001", location_id="loc-001", counted=6))
        assert available == 6
        record = _record(engine)
        assert record.movements[-1].originator == MovementOriginator.RECOUNT.value

    def test_recount_matching_count_changes_nothing(self, engine):
        _initialize()
        _process(RecordStockCount(variant_id="var-001", location_id="loc-001", counted=10))
        assert len(_record(engine).movements) == 1

    def test_soft_zero(self, engine):
        _initialize()
        _process(ReserveStock(variant_id="var-001", location_id="loc-001", quantity=2))
        written_off = _process(SoftZeroStock(variant_id="var-001", location_id="loc-001", reference="closing"))
        assert written_off == 8
        assert _record(engine).count_available == 0
