"""Procurement service for restock requests."""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from restaurant_inventory_service.models.app_state import RestaurantState
from restaurant_inventory_service.models.restaurant_models import (
    CollectionName,
    Expense,
    Ingredient,
    RequisitionRequest,
    RequisitionStatus,
)
from restaurant_inventory_service.observability import traced
from restaurant_inventory_service.repositories.collection_store import CollectionStore

logger = logging.getLogger(__name__)


class ProcurementService:
    """Service for the requisition workflow.

    Staff raise requisitions, a manager marks them ordered or rejected, and
    receiving one adds the delivered quantity to inventory and logs the
    purchase as an expense.
    """

    def __init__(
        self,
        state: RestaurantState,
        store: CollectionStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the ProcurementService.

        Args:
            state: Application state shared with the order controller
            store: Collection store for requisitions, ingredients and expenses
            clock: Source of the current time
        """
        self.state = state
        self.store = store
        self.clock = clock or (lambda: datetime.now(UTC))

    async def add_requisition(self, requisition: RequisitionRequest) -> RequisitionRequest:
        """Record a new restock request."""
        self.state.requisitions = [requisition, *self.state.requisitions]
        await self.store.add(CollectionName.REQUISITIONS, requisition.to_record())
        return requisition

    async def update_requisition_status(
        self, *, requisition_id: str, status: RequisitionStatus
    ) -> RequisitionRequest | None:
        """Change the status of a requisition.

        Args:
            requisition_id: Requisition to update
            status: New status

        Returns:
            The updated requisition, or None if it does not exist
        """
        requisition = self.state.find_requisition(requisition_id)
        if requisition is None:
            return None

        updated = requisition.model_copy(update={"status": status})
        self._replace_requisition(updated)
        await self.store.update(CollectionName.REQUISITIONS, updated.to_record())
        return updated

    @traced("receive_requisition")
    async def receive_requisition(self, *, requisition_id: str) -> RequisitionRequest | None:
        """Receive delivered stock for a requisition.

        Adds the requested quantity to the ingredient (creating the ingredient
        if it no longer exists) and, when an estimated unit cost is known,
        updates the ingredient cost and logs the purchase as an expense.
        Receiving the same requisition twice has no further effect.

        Args:
            requisition_id: Requisition being received

        Returns:
            The received requisition, or None if it does not exist or was
            already received
        """
        requisition = self.state.find_requisition(requisition_id)
        if requisition is None:
            logger.warning(f"Cannot receive unknown requisition {requisition_id}")
            return None

        if requisition.status == RequisitionStatus.RECEIVED:
            logger.info(f"Requisition {requisition_id} already received")
            return None

        received = requisition.model_copy(update={"status": RequisitionStatus.RECEIVED})
        self._replace_requisition(received)
        await self.store.update(CollectionName.REQUISITIONS, received.to_record())

        await self._restock(received)

        if received.estimated_unit_cost:
            await self._log_expense(received)

        logger.info(
            f"Received {received.quantity} {received.unit} of {received.ingredient_name}"
        )
        return received

    async def _restock(self, requisition: RequisitionRequest) -> None:
        existing = self.state.find_ingredient(requisition.ingredient_id)

        if existing is not None:
            changes: dict[str, object] = {
                "stock_quantity": existing.stock_quantity + requisition.quantity
            }
            if requisition.estimated_unit_cost:
                changes["unit_cost"] = requisition.estimated_unit_cost
            updated = existing.model_copy(update=changes)
            self.state.ingredients = [
                updated if i.id == updated.id else i for i in self.state.ingredients
            ]
            await self.store.update(CollectionName.INGREDIENTS, updated.to_record())
            return

        created = Ingredient(
            id=requisition.ingredient_id,
            name=requisition.ingredient_name,
            category="Uncategorized",
            unit=requisition.unit,
            unit_cost=requisition.estimated_unit_cost or 0,
            stock_quantity=requisition.quantity,
        )
        self.state.ingredients = [created, *self.state.ingredients]
        await self.store.add(CollectionName.INGREDIENTS, created.to_record())

    async def _log_expense(self, requisition: RequisitionRequest) -> None:
        unit_cost = requisition.estimated_unit_cost or 0
        expense = Expense(
            id=f"e-auto-{uuid.uuid4().hex[:12]}",
            description=(
                f"Procurement: {requisition.ingredient_name} "
                f"({requisition.quantity:g} {requisition.unit})"
            ),
            category="Inventory",
            amount=unit_cost * requisition.quantity,
            date=self.clock(),
            reported_by="System",
        )
        self.state.expenses = [expense, *self.state.expenses]
        await self.store.add(CollectionName.EXPENSES, expense.to_record())

    def _replace_requisition(self, requisition: RequisitionRequest) -> None:
        self.state.requisitions = [
            requisition if r.id == requisition.id else r for r in self.state.requisitions
        ]
