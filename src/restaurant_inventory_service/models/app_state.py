"""In-memory application state.

Holds the latest snapshot of every collection. The order lifecycle controller
owns one instance and passes it to the services that need it, so nothing
reads collection data from ambient scope.
"""

from dataclasses import dataclass, field

from restaurant_inventory_service.models.restaurant_models import (
    CollectionName,
    CollectionRecord,
    Customer,
    Expense,
    Ingredient,
    MenuItem,
    Order,
    RequisitionRequest,
    User,
)


@dataclass
class RestaurantState:
    """Snapshot of all collections held by one client."""

    orders: list[Order] = field(default_factory=list)
    menu_items: list[MenuItem] = field(default_factory=list)
    ingredients: list[Ingredient] = field(default_factory=list)
    users: list[User] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)
    requisitions: list[RequisitionRequest] = field(default_factory=list)
    customers: list[Customer] = field(default_factory=list)

    def replace(self, collection: CollectionName, records: list[CollectionRecord]) -> None:
        """Replace a whole collection with a fresh snapshot."""
        setattr(self, _ATTRIBUTES[collection], list(records))

    def find_order(self, order_id: str) -> Order | None:
        return next((o for o in self.orders if o.id == order_id), None)

    def find_ingredient(self, ingredient_id: str) -> Ingredient | None:
        return next((i for i in self.ingredients if i.id == ingredient_id), None)

    def find_requisition(self, requisition_id: str) -> RequisitionRequest | None:
        return next((r for r in self.requisitions if r.id == requisition_id), None)

    def upsert_order(self, order: Order) -> None:
        """Replace the order with the same id, or prepend it if new."""
        for index, existing in enumerate(self.orders):
            if existing.id == order.id:
                self.orders[index] = order
                return
        self.orders.insert(0, order)


_ATTRIBUTES: dict[CollectionName, str] = {
    CollectionName.ORDERS: "orders",
    CollectionName.MENU_ITEMS: "menu_items",
    CollectionName.INGREDIENTS: "ingredients",
    CollectionName.USERS: "users",
    CollectionName.EXPENSES: "expenses",
    CollectionName.REQUISITIONS: "requisitions",
    CollectionName.CUSTOMERS: "customers",
}
