"""Shipping cost port: abstract interface for quoting a shipment's cost.

The cost-optimized strategy programs against this port; adapters are swapped
via configuration.
"""

from abc import ABC, abstractmethod


class ShippingCostPort(ABC):
    """Abstract interface for shipping cost adapters."""

    @abstractmethod
    def quote(
        self,
        candidate,
        destination: tuple[float, float] | None,
        weight: float | None = None,
        quantity: int = 1,
    ) -> float:
        """Cost of shipping ``quantity`` units from ``candidate`` to ``destination``.

        Args:
            candidate: the allocation Candidate shipping the goods
            destination: (latitude, longitude) of the customer, if known
            weight: total parcel weight in kg, if known
            quantity: units shipped
        """
        ...
