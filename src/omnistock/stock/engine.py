"""Reservation engine: serialized reserve/release/confirm/adjust on stock records.

Every operation on a (variant, location) pair runs under that pair's row lock:
the record is loaded, mutated and persisted before the lock is released, so
concurrent callers can neither lose updates nor oversell. Each mutating
operation returns the record's available count after the change.
"""

from typing import Callable

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from omnistock.errors import DuplicateStockRecord, InsufficientSourceStock
from omnistock.stock.locking import RowLocks, get_row_locks, in_own_transaction, run_serialized
from omnistock.stock.stock_record import MovementOriginator, StockRecord

logger = structlog.get_logger(__name__)


def stock_key(variant_id, location_id) -> tuple:
    return ("stock", str(variant_id), str(location_id))


class ReservationEngine:
    def __init__(self, locks: RowLocks | None = None):
        self._locks = locks

    @property
    def locks(self) -> RowLocks:
        return self._locks or get_row_locks()

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    @staticmethod
    def _repo():
        return current_domain.repository_for(StockRecord)

    def stock_record(self, variant_id, location_id) -> StockRecord | None:
        return self._repo().find_for(variant_id, location_id)

    def get_stock_record(self, variant_id, location_id) -> StockRecord:
        record = self.stock_record(variant_id, location_id)
        if record is None:
            raise ObjectNotFoundError(f"No stock record for variant {variant_id} at location {location_id}")
        return record

    def records_for_variant(self, variant_id) -> list[StockRecord]:
        return self._repo().for_variant(variant_id)

    def available_by_location(self, variant_id) -> dict[str, int]:
        return {str(r.location_id): r.count_available for r in self.records_for_variant(variant_id)}

    # -------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------
    def _serialized(self, variant_id, location_id, operation: Callable[[], int]) -> int:
        key = stock_key(variant_id, location_id)
        if self._locks is None:
            return run_serialized(key, operation)

        with self._locks.hold(key):
            return in_own_transaction(operation)

    def _mutate(self, variant_id, location_id, mutation: Callable[[StockRecord], int]) -> int:
        def operation():
            record = self.get_stock_record(variant_id, location_id)
            result = mutation(record)
            self._repo().add(record)
            return result

        return self._serialized(variant_id, location_id, operation)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def initialize(self, variant_id, location_id, quantity_on_hand=0, backorderable=False, reference=None) -> str:
        """Create the stock record for a pair. Returns the new record id."""

        def operation():
            if self.stock_record(variant_id, location_id) is not None:
                raise DuplicateStockRecord(f"Variant {variant_id} is already stocked at location {location_id}")
            record = StockRecord.create(
                variant_id=str(variant_id),
                location_id=str(location_id),
                quantity_on_hand=quantity_on_hand,
                backorderable=backorderable,
                reference=reference,
            )
            self._repo().add(record)
            return str(record.id)

        record_id = self._serialized(variant_id, location_id, operation)
        logger.info(
            "stock_record_initialized",
            variant_id=str(variant_id),
            location_id=str(location_id),
            quantity_on_hand=quantity_on_hand,
        )
        return record_id

    # -------------------------------------------------------------------
    # Reservation operations
    # -------------------------------------------------------------------
    def reserve(self, variant_id, location_id, quantity: int, order_id=None) -> int:
        available = self._mutate(variant_id, location_id, lambda r: r.reserve(quantity, order_id=order_id))
        logger.info(
            "stock_reserved",
            variant_id=str(variant_id),
            location_id=str(location_id),
            quantity=quantity,
            order_id=order_id,
            available=available,
        )
        return available

    def release(self, variant_id, location_id, quantity: int, reference=None) -> int:
        available = self._mutate(variant_id, location_id, lambda r: r.release(quantity, reference=reference))
        logger.info(
            "stock_released",
            variant_id=str(variant_id),
            location_id=str(location_id),
            quantity=quantity,
            available=available,
        )
        return available

    def release_for_order(self, variant_id, location_id, quantity: int, order_id, reference=None) -> int:
        """Give back an order's reservation, dropping whatever of it is still backordered."""
        available = self._mutate(
            variant_id,
            location_id,
            lambda r: r.release_for_order(quantity, order_id, reference=reference or order_id),
        )
        logger.info(
            "order_stock_released",
            variant_id=str(variant_id),
            location_id=str(location_id),
            quantity=quantity,
            order_id=str(order_id),
            available=available,
        )
        return available

    def confirm(self, variant_id, location_id, quantity: int, reference=None, order_id=None) -> int:
        available = self._mutate(
            variant_id,
            location_id,
            lambda r: r.confirm(quantity, reference=reference, order_id=order_id),
        )
        logger.info(
            "stock_confirmed",
            variant_id=str(variant_id),
            location_id=str(location_id),
            quantity=quantity,
            available=available,
        )
        return available

    def outstanding_backorder(self, variant_id, location_id, order_id) -> int:
        record = self.stock_record(variant_id, location_id)
        return record.outstanding_for(order_id) if record is not None else 0

    def adjust(
        self,
        variant_id,
        location_id,
        delta: int,
        originator=MovementOriginator.ADJUSTMENT,
        reference=None,
        create_missing: bool = True,
    ) -> int:
        """Change on hand by ``delta``.

        A positive delta at a pair with no record yet stocks it first, which is
        how a transfer's destination gets its first units.
        """

        def operation():
            record = self.stock_record(variant_id, location_id)
            if record is None:
                if not (create_missing and delta > 0):
                    raise ObjectNotFoundError(f"No stock record for variant {variant_id} at location {location_id}")
                record = StockRecord.create(variant_id=str(variant_id), location_id=str(location_id))
            available = record.adjust(delta, originator=originator, reference=reference)
            self._repo().add(record)
            return available

        available = self._serialized(variant_id, location_id, operation)
        logger.info(
            "stock_adjusted",
            variant_id=str(variant_id),
            location_id=str(location_id),
            delta=delta,
            originator=MovementOriginator(originator).value,
            available=available,
        )
        return available

    def withdraw(self, variant_id, location_id, quantity: int, originator=MovementOriginator.STOCK_TRANSFER, reference=None) -> int:
        """Take unreserved stock out of a location, e.g. when a transfer ships."""

        def mutation(record: StockRecord) -> int:
            if record.count_available < quantity:
                raise InsufficientSourceStock(
                    f"Only {record.count_available} available at source, {quantity} requested"
                )
            return record.adjust(-quantity, originator=originator, reference=reference)

        try:
            return self._mutate(variant_id, location_id, mutation)
        except ObjectNotFoundError:
            raise InsufficientSourceStock(f"Variant {variant_id} is not stocked at location {location_id}")

    def record_count(self, variant_id, location_id, counted: int, reference=None) -> int:
        """Reconcile on hand with a physical count."""

        def mutation(record: StockRecord) -> int:
            delta = counted - record.quantity_on_hand
            if delta == 0:
                return record.count_available
            return record.adjust(delta, originator=MovementOriginator.RECOUNT, reference=reference)

        return self._mutate(variant_id, location_id, mutation)

    def cancel_backorder(self, variant_id, location_id, order_id) -> int:
        """Drop an order's outstanding demand. Returns the quantity dropped."""
        return self._mutate(variant_id, location_id, lambda r: r.cancel_backorder(order_id))

    def soft_zero(self, variant_id, location_id, reference=None) -> int:
        """Write off unreserved stock. Returns the quantity written off."""
        written_off = self._mutate(variant_id, location_id, lambda r: r.soft_zero(reference=reference))
        logger.info(
            "stock_soft_zeroed",
            variant_id=str(variant_id),
            location_id=str(location_id),
            written_off=written_off,
        )
        return written_off


_engine_instance = None


def get_engine() -> ReservationEngine:
    """Return the shared reservation engine (singleton)."""
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = ReservationEngine()
    return _engine_instance


def reset_engine():
    """Reset the engine singleton (useful for testing)."""
    global _engine_instance
    _engine_instance = None
