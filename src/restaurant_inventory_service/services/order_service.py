"""Order lifecycle controller.

Owns the authoritative order list and keeps ingredient stock consistent with
it: stock reflects exactly the consumption of every order that is not
CANCELLED.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from restaurant_inventory_service.models.app_state import RestaurantState
from restaurant_inventory_service.models.restaurant_models import (
    CollectionName,
    CollectionRecord,
    LineItem,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    parse_records,
)
from restaurant_inventory_service.observability import traced
from restaurant_inventory_service.observability.metrics import record_order_placed
from restaurant_inventory_service.repositories.collection_store import CollectionStore
from restaurant_inventory_service.services.inventory_service import InventoryService
from restaurant_inventory_service.services.reconciliation_engine import (
    ConsumptionEvent,
    ReconciliationDirection,
    portion_ratio,
)
from restaurant_inventory_service.services.snapshot_service import PollingCollectionStore

logger = logging.getLogger(__name__)

# Forward progression of the kitchen workflow
STATUS_SEQUENCE = [
    OrderStatus.NEW,
    OrderStatus.IN_PROGRESS,
    OrderStatus.READY,
    OrderStatus.SERVED,
]

TERMINAL_STATUSES = {OrderStatus.SERVED, OrderStatus.CANCELLED}


def is_valid_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Check whether an order may move from ``current`` to ``target``.

    Forward moves along NEW → IN_PROGRESS → READY → SERVED are allowed,
    CANCELLED is reachable from any non-terminal status, and a cancelled
    order may be moved back to any other status.
    """
    if current == target:
        return True
    if current == OrderStatus.CANCELLED:
        return True
    if target == OrderStatus.CANCELLED:
        return current not in TERMINAL_STATUSES
    if current == OrderStatus.SERVED:
        return False
    return STATUS_SEQUENCE.index(target) > STATUS_SEQUENCE.index(current)


@dataclass
class ItemEditPlan:
    """Stock adjustments implied by replacing an order's line items.

    Attributes:
        to_deduct: Consumption added by the edit
        to_restore: Consumption removed by the edit
    """

    to_deduct: list[ConsumptionEvent] = field(default_factory=list)
    to_restore: list[ConsumptionEvent] = field(default_factory=list)


def plan_item_edit(old_items: list[LineItem], new_items: list[LineItem]) -> ItemEditPlan:
    """Compute per-line deltas between two item lists.

    Lines are matched by their own id, not by menu item, so re-adding the
    same dish as a new line counts as a new consumption plus the full
    removal of the old line. A matched line whose dish or portion size
    changed is treated the same way: the old line is restored in full and
    the new one deducted in full.

    Args:
        old_items: Items before the edit
        new_items: Items after the edit

    Returns:
        ItemEditPlan with the deduct and restore batches
    """
    plan = ItemEditPlan()
    old_by_id = {item.id: item for item in old_items}
    new_ids = {item.id for item in new_items}

    for item in new_items:
        previous = old_by_id.get(item.id)
        if previous is not None and not _same_consumption(previous, item):
            plan.to_restore.append(ConsumptionEvent.from_line_item(previous))
            plan.to_deduct.append(ConsumptionEvent.from_line_item(item))
            continue

        delta = item.quantity - (previous.quantity if previous else 0)
        if delta > 0:
            plan.to_deduct.append(ConsumptionEvent.from_line_item(item, delta))
        elif delta < 0:
            plan.to_restore.append(ConsumptionEvent.from_line_item(item, -delta))

    for item in old_items:
        if item.id not in new_ids:
            plan.to_restore.append(ConsumptionEvent.from_line_item(item))

    return plan


def _same_consumption(old: LineItem, new: LineItem) -> bool:
    return old.menu_item_id == new.menu_item_id and portion_ratio(old.portion) == portion_ratio(
        new.portion
    )


def _full_consumption(order: Order) -> list[ConsumptionEvent]:
    return [ConsumptionEvent.from_line_item(item) for item in order.items]


class OrderLifecycleController:
    """Orchestrates order changes and the inventory adjustments they imply.

    The controller is the only writer of ``orders`` and, through the
    inventory service, the only writer of ingredient stock. Every mutation
    updates the in-memory state first and then persists; persistence
    failures are logged and the optimistic state is kept.
    """

    def __init__(
        self,
        store: CollectionStore,
        state: RestaurantState | None = None,
        inventory_service: InventoryService | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            store: Collection store (a PollingCollectionStore enables subscriptions)
            state: Application state; a new empty one is created if omitted
            inventory_service: Inventory service sharing the same state
            clock: Source of the current time
        """
        self.store = store
        self.state = state or RestaurantState()
        self.inventory_service = inventory_service or InventoryService(self.state, store)
        self.clock = clock or (lambda: datetime.now(UTC))
        self._unsubscribers: list[Callable[[], None]] = []

    async def start(self) -> None:
        """Subscribe the state to every collection snapshot."""
        if not isinstance(self.store, PollingCollectionStore):
            await self.load()
            return

        for collection in CollectionName:
            unsubscribe = await self.store.subscribe(collection, self._snapshot_handler(collection))
            self._unsubscribers.append(unsubscribe)
        logger.info("Subscribed to all collections")

    def stop(self) -> None:
        """Cancel all subscriptions."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    async def load(self) -> None:
        """Load every collection once without subscribing."""
        for collection in CollectionName:
            records = await self.store.list_records(collection)
            if records is None:
                continue
            parsed, _ = parse_records(collection, records)
            self.state.replace(collection, parsed)

    def _snapshot_handler(
        self, collection: CollectionName
    ) -> Callable[[list[CollectionRecord]], None]:
        def handle(records: list[CollectionRecord]) -> None:
            self.state.replace(collection, records)

        return handle

    def get_order(self, order_id: str) -> Order | None:
        return self.state.find_order(order_id)

    @traced("place_order")
    async def place_order(self, order: Order) -> Order | None:
        """Record a new order and deduct its full consumption.

        Args:
            order: The new order (its status is forced to NEW)

        Returns:
            The stored order, or None if an order with the same id exists
        """
        if self.state.find_order(order.id) is not None:
            logger.warning(f"Rejected order {order.id}: id already in use")
            return None

        placed = order.model_copy(update={"status": OrderStatus.NEW})
        self.state.upsert_order(placed)
        record_order_placed(len(placed.items))
        logger.info(f"Order {placed.id} placed for table {placed.table_number}")

        await self._persist_order(placed, new=True)
        await self.inventory_service.apply(
            _full_consumption(placed), direction=ReconciliationDirection.DEDUCT
        )
        return placed

    @traced("edit_order_items")
    async def edit_order_items(self, *, order_id: str, items: list[LineItem]) -> Order | None:
        """Replace an order's line items and reconcile the difference.

        Increases are deducted, decreases and removed lines are restored. The
        deduct batch always runs before the restore batch. A cancelled order
        has no consumption on record, so its items are replaced without any
        stock adjustment.

        Args:
            order_id: Order to edit
            items: The complete new item list

        Returns:
            The updated order, or None if the order does not exist
        """
        order = self.state.find_order(order_id)
        if order is None:
            logger.warning(f"Cannot edit unknown order {order_id}")
            return None

        updated = order.model_copy(update={"items": list(items)})
        self.state.upsert_order(updated)
        await self._persist_order(updated)

        if order.status == OrderStatus.CANCELLED:
            return updated

        plan = plan_item_edit(order.items, updated.items)
        await self.inventory_service.apply(plan.to_deduct, direction=ReconciliationDirection.DEDUCT)
        await self.inventory_service.apply(
            plan.to_restore, direction=ReconciliationDirection.RESTORE
        )
        return updated

    @traced("update_order_status")
    async def update_order_status(self, *, order_id: str, status: OrderStatus) -> Order | None:
        """Move an order to a new status.

        Cancelling restores the order's consumption and un-cancelling deducts
        it again. The first move into SERVED or CANCELLED stamps the
        completion time.

        Args:
            order_id: Order to update
            status: Target status

        Returns:
            The updated order, or None if the order does not exist or the
            transition is not allowed
        """
        order = self.state.find_order(order_id)
        if order is None:
            logger.warning(f"Cannot update status of unknown order {order_id}")
            return None

        if order.status == status:
            return order

        if not is_valid_transition(order.status, status):
            logger.warning(
                f"Rejected status change for order {order_id}: {order.status.value} -> {status.value}"
            )
            return None

        changes: dict[str, object] = {"status": status}
        if status in TERMINAL_STATUSES and order.completed_at is None:
            changes["completed_at"] = self.clock()

        return await self._apply_status_change(order, changes)

    @traced("cancel_order")
    async def cancel_order(self, *, order_id: str) -> Order | None:
        """Cancel an order and its pending payment.

        Args:
            order_id: Order to cancel

        Returns:
            The cancelled order, or None if it does not exist or cannot be cancelled
        """
        order = self.state.find_order(order_id)
        if order is None:
            logger.warning(f"Cannot cancel unknown order {order_id}")
            return None

        if order.status != OrderStatus.CANCELLED and not is_valid_transition(
            order.status, OrderStatus.CANCELLED
        ):
            logger.warning(f"Rejected cancellation of {order.status.value} order {order_id}")
            return None

        changes: dict[str, object] = {"status": OrderStatus.CANCELLED}
        if order.payment_status == PaymentStatus.PENDING:
            changes["payment_status"] = PaymentStatus.CANCELLED
        if order.completed_at is None:
            changes["completed_at"] = self.clock()

        return await self._apply_status_change(order, changes)

    @traced("update_payment")
    async def update_payment(self, *, order_id: str, method: PaymentMethod) -> Order | None:
        """Mark an order as paid. Never touches inventory.

        Args:
            order_id: Order being paid
            method: Payment method used

        Returns:
            The updated order, or None if the order does not exist
        """
        order = self.state.find_order(order_id)
        if order is None:
            logger.warning(f"Cannot record payment for unknown order {order_id}")
            return None

        changes: dict[str, object] = {
            "payment_status": PaymentStatus.PAID,
            "payment_method": method,
        }
        if order.completed_at is None:
            changes["completed_at"] = self.clock()

        updated = order.model_copy(update=changes)
        self.state.upsert_order(updated)
        await self._persist_order(updated)
        logger.info(f"Order {order_id} paid via {method.value}")
        return updated

    async def _apply_status_change(self, order: Order, changes: dict[str, object]) -> Order:
        updated = order.model_copy(update=changes)
        self.state.upsert_order(updated)
        await self._persist_order(updated)

        was_cancelled = order.status == OrderStatus.CANCELLED
        is_cancelled = updated.status == OrderStatus.CANCELLED

        if is_cancelled and not was_cancelled:
            logger.info(f"Order {order.id} cancelled, restoring inventory")
            await self.inventory_service.apply(
                _full_consumption(updated), direction=ReconciliationDirection.RESTORE
            )
        elif was_cancelled and not is_cancelled:
            logger.info(f"Order {order.id} reinstated as {updated.status.value}, deducting inventory")
            await self.inventory_service.apply(
                _full_consumption(updated), direction=ReconciliationDirection.DEDUCT
            )

        return updated

    async def _persist_order(self, order: Order, new: bool = False) -> None:
        record = order.to_record()
        if new:
            success = await self.store.add(CollectionName.ORDERS, record)
        else:
            success = await self.store.update(CollectionName.ORDERS, record)

        if not success:
            logger.error(f"Failed to persist order {order.id}")  # pragma: no cover
