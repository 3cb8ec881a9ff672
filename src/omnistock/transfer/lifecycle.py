"""Stock transfer lifecycle: commands and handler."""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from omnistock.domain import omnistock
from omnistock.errors import LocationUnavailable
from omnistock.location.registry import LocationRegistry
from omnistock.stock.engine import get_engine
from omnistock.stock.locking import run_serialized
from omnistock.stock.stock_record import MovementOriginator
from omnistock.transfer.transfer import StockTransfer, format_transfer_number

logger = structlog.get_logger(__name__)


def next_transfer_number(repo, now: datetime | None = None) -> str:
    """Next free number for today's transfers."""
    now = now or datetime.now(UTC)
    prefix = format_transfer_number(now, 0)[:-4]
    counter = repo.count_numbered(prefix) + 1
    number = format_transfer_number(now, counter)
    while repo.find_by_number(number) is not None:
        counter += 1
        number = format_transfer_number(now, counter)
    return number


@omnistock.command(part_of="StockTransfer")
class CreateTransfer:
    source_location_id = Identifier(required=True)
    destination_location_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    expected_quantity = Integer(required=True, min_value=1)
    reference = String(max_length=255)


@omnistock.command(part_of="StockTransfer")
class InitiateTransfer:
    """Ship the transfer: debit the source and mark it in transit."""

    transfer_id = Identifier(required=True)
    tracking_number = String(max_length=100)


@omnistock.command(part_of="StockTransfer")
class ReceiveTransfer:
    """Record arrival at the destination and credit what actually arrived."""

    transfer_id = Identifier(required=True)
    received_quantity = Integer(min_value=0)


@omnistock.command(part_of="StockTransfer")
class CancelTransfer:
    transfer_id = Identifier(required=True)
    reason = String(max_length=500)


@omnistock.command_handler(part_of=StockTransfer)
class TransferLifecycleHandler:
    @handle(CreateTransfer)
    def create_transfer(self, command):
        registry = LocationRegistry()
        registry.require_active(command.source_location_id)
        destination = registry.require_active(command.destination_location_id)
        if not destination.can_receive_transfers:
            raise LocationUnavailable(
                f"{destination.location_type} location {destination.name} cannot receive transfers",
                field="destination_location_id",
            )

        repo = current_domain.repository_for(StockTransfer)

        def operation():
            transfer = StockTransfer.create(
                source_location_id=command.source_location_id,
                destination_location_id=command.destination_location_id,
                variant_id=command.variant_id,
                expected_quantity=command.expected_quantity,
                number=next_transfer_number(repo),
                reference=command.reference,
            )
            repo.add(transfer)
            return transfer

        transfer = run_serialized(("transfer-numbers",), operation)
        logger.info(
            "transfer_created",
            transfer_id=str(transfer.id),
            number=transfer.number,
            variant_id=str(command.variant_id),
            expected_quantity=command.expected_quantity,
        )
        return str(transfer.id)

    @handle(InitiateTransfer)
    def initiate_transfer(self, command):
        repo = current_domain.repository_for(StockTransfer)
        transfer = repo.get(command.transfer_id)
        transfer.assert_can_initiate()

        get_engine().withdraw(
            transfer.variant_id,
            transfer.source_location_id,
            transfer.expected_quantity,
            originator=MovementOriginator.STOCK_TRANSFER,
            reference=transfer.number,
        )
        transfer.initiate(command.tracking_number)
        repo.add(transfer)
        logger.info("transfer_initiated", transfer_id=str(transfer.id), number=transfer.number)

    @handle(ReceiveTransfer)
    def receive_transfer(self, command):
        repo = current_domain.repository_for(StockTransfer)
        transfer = repo.get(command.transfer_id)
        actual = command.received_quantity
        if actual is None:
            actual = transfer.expected_quantity

        discrepancy = transfer.receive(actual)
        if actual > 0:
            get_engine().adjust(
                transfer.variant_id,
                transfer.destination_location_id,
                actual,
                originator=MovementOriginator.STOCK_TRANSFER,
                reference=transfer.number,
            )
        repo.add(transfer)

        if discrepancy:
            logger.warning(
                "transfer_discrepancy",
                transfer_id=str(transfer.id),
                number=transfer.number,
                expected=transfer.expected_quantity,
                received=actual,
            )
        else:
            logger.info("transfer_received", transfer_id=str(transfer.id), number=transfer.number)
        return discrepancy

    @handle(CancelTransfer)
    def cancel_transfer(self, command):
        repo = current_domain.repository_for(StockTransfer)
        transfer = repo.get(command.transfer_id)
        transfer.cancel(command.reason)
        repo.add(transfer)
