"""Inventory service applying reconciliation results to the application state."""

import logging
import time

from restaurant_inventory_service.models.app_state import RestaurantState
from restaurant_inventory_service.models.restaurant_models import CollectionName, Ingredient
from restaurant_inventory_service.observability import traced
from restaurant_inventory_service.observability.metrics import (
    record_reconciliation,
    record_reconciliation_duration,
)
from restaurant_inventory_service.repositories.collection_store import CollectionStore
from restaurant_inventory_service.services.reconciliation_engine import (
    ConsumptionEvent,
    InventoryReconciliationEngine,
    ReconciliationDirection,
)

logger = logging.getLogger(__name__)


class InventoryService:
    """Runs the reconciliation engine against the shared state.

    The in-memory ingredient snapshot is updated first so the next engine
    call sees the adjusted stock, then only the touched ingredients are
    written to the store. A failed write is logged and not rolled back.
    """

    def __init__(
        self,
        state: RestaurantState,
        store: CollectionStore,
        engine: InventoryReconciliationEngine | None = None,
    ) -> None:
        """Initialize the InventoryService.

        Args:
            state: Application state shared with the order controller
            store: Collection store used to persist ingredients
            engine: Reconciliation engine (a default one is created if omitted)
        """
        self.state = state
        self.store = store
        self.engine = engine or InventoryReconciliationEngine()

    @traced("reconcile_inventory")
    async def apply(
        self, events: list[ConsumptionEvent], *, direction: ReconciliationDirection
    ) -> list[Ingredient]:
        """Deduct or restore stock for a batch of consumption events.

        Args:
            events: Consumption events (an empty list is a no-op)
            direction: Deduct or restore

        Returns:
            list: The ingredients that changed (empty if nothing changed)
        """
        if not events:
            return []

        started = time.perf_counter()
        result = self.engine.reconcile(
            events, direction, self.state.menu_items, self.state.ingredients
        )
        record_reconciliation(direction.value, len(result.changed), len(result.clamped))

        if not result.changed:
            return []

        self.state.ingredients = result.ingredients
        logger.info(
            f"Inventory {direction.value}: {len(result.changed)} ingredients adjusted "
            f"for {len(events)} line items"
        )

        success = await self.store.bulk_update(
            CollectionName.INGREDIENTS, [ingredient.to_record() for ingredient in result.changed]
        )
        if not success:
            logger.error(f"Failed to persist inventory {direction.value}")  # pragma: no cover

        record_reconciliation_duration(direction.value, time.perf_counter() - started)
        return result.changed

    async def save_ingredients(self, ingredients: list[Ingredient]) -> bool:
        """Persist manual catalog edits (name, unit, cost or counted stock).

        Args:
            ingredients: Edited ingredient records

        Returns:
            bool: True if the store accepted every write
        """
        if not ingredients:
            return True

        edited = {ingredient.id: ingredient for ingredient in ingredients}
        self.state.ingredients = [edited.get(i.id, i) for i in self.state.ingredients]

        return await self.store.bulk_update(
            CollectionName.INGREDIENTS, [ingredient.to_record() for ingredient in ingredients]
        )

    async def add_ingredient(self, ingredient: Ingredient) -> bool:
        """Add a new ingredient to the catalog."""
        self.state.ingredients = [ingredient, *self.state.ingredients]
        return await self.store.add(CollectionName.INGREDIENTS, ingredient.to_record())
