"""Effects returned by aggregate transitions for the calling handler to perform.

Aggregates never touch other aggregates or external channels themselves. A
transition that needs stock confirmed, stock released or a customer notified
returns these values, and the command handler executes them.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ConfirmHeldStock:
    variant_id: str
    location_id: str
    quantity: int
    order_id: str | None = None


@dataclass(frozen=True)
class ReleaseHeldStock:
    variant_id: str
    location_id: str
    quantity: int
    order_id: str | None = None


@dataclass(frozen=True)
class NotifyCustomer:
    channel: str
    recipient: str
    subject: str
    body: str
