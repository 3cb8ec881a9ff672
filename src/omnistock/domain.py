"""Omnistock bounded context: multi-location stock and fulfillment.

Tracks stock per (variant, location), reserves it for orders, chooses which
location fulfills an order line, and runs the store-pickup and inter-location
transfer workflows. All aggregates are CQRS (not event sourced).
"""

from protean.domain import Domain

from omnistock.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

omnistock = Domain(name="omnistock")
