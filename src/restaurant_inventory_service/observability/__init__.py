"""Logging, tracing and metrics for the inventory service."""

from restaurant_inventory_service.observability.config import configure_logging, setup_observability
from restaurant_inventory_service.observability.decorators import traced

__all__ = ["setup_observability", "configure_logging", "traced"]
