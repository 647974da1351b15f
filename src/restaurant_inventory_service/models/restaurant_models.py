"""Restaurant domain models.

These models represent the records stored in the seven named collections
(orders, menuItems, ingredients, users, expenses, requisitions, customers).
Field names on the wire are camelCase; Python attributes are snake_case.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel


class CollectionName(str, Enum):
    """Names of the persisted collections."""

    ORDERS = "orders"
    MENU_ITEMS = "menuItems"
    INGREDIENTS = "ingredients"
    USERS = "users"
    EXPENSES = "expenses"
    REQUISITIONS = "requisitions"
    CUSTOMERS = "customers"


class OrderStatus(str, Enum):
    """Kitchen status of an order."""

    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    READY = "READY"
    SERVED = "SERVED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """Payment status of an order."""

    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    """Accepted payment methods."""

    CASH = "CASH"
    ONLINE = "ONLINE"
    PAYTM_POS = "PAYTM_POS"


class UserRole(str, Enum):
    """Staff roles."""

    MANAGER = "Manager"
    SERVER = "Server"
    CHEF = "Chef"
    BARTENDER = "Bartender"


class RequisitionStatus(str, Enum):
    """Lifecycle of a restock request."""

    PENDING = "PENDING"
    ORDERED = "ORDERED"
    RECEIVED = "RECEIVED"
    REJECTED = "REJECTED"


class RequisitionUrgency(str, Enum):
    """Urgency of a restock request."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def coerce_number(value: Any) -> Any:
    """Coerce malformed numeric input to 0.

    Strings that parse as numbers are converted; anything else that is not a
    finite number (None, garbage strings, NaN, infinity) becomes 0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return 0
        return parsed if math.isfinite(parsed) else 0
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0
    return parsed if math.isfinite(parsed) else 0


class CollectionRecord(BaseModel):
    """Base class for records persisted in a collection.

    Records are keyed by ``id`` and serialized with camelCase field names.
    Unknown wire fields are preserved so a round trip through this service
    never drops data written by other clients.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str = Field(..., description="Unique record identifier")

    def to_record(self) -> dict[str, Any]:
        """Convert to the wire/storage record format.

        Returns:
            dict: JSON-compatible representation with camelCase keys
        """
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "CollectionRecord":
        """Create a model from a wire/storage record.

        Args:
            record: Record dictionary with camelCase keys

        Returns:
            Parsed model instance
        """
        return cls.model_validate(record)


class RecipeLine(BaseModel):
    """One ingredient requirement of a menu item recipe.

    ``quantity`` is the consumption per one full-portion unit sold.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ingredient_id: str
    quantity: float = 0

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, v: Any) -> Any:
        """Coerce malformed quantities to 0."""
        return coerce_number(v)


class PortionPrices(BaseModel):
    """Optional per-portion prices of a menu item."""

    full: float | None = None
    half: float | None = None
    quarter: float | None = None


class MenuItem(CollectionRecord):
    """Menu item with its recipe."""

    name: str
    category: str | None = None
    price: float = Field(default=0, ge=0, description="Base (full portion) price")
    portion_prices: PortionPrices | None = None
    ingredients: list[RecipeLine] = Field(default_factory=list)
    available: bool = True

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v: Any) -> Any:
        """Coerce malformed prices to 0 and clamp negatives."""
        return max(0, coerce_number(v))

    @field_validator("ingredients", mode="before")
    @classmethod
    def validate_ingredients(cls, v: Any) -> Any:
        """Treat a missing recipe as an empty one."""
        return v if v is not None else []

    @property
    def has_recipe(self) -> bool:
        """Whether the item carries an explicit recipe."""
        return len(self.ingredients) > 0


class Ingredient(CollectionRecord):
    """Inventory ingredient."""

    name: str
    category: str | None = None
    unit: str = ""
    unit_cost: float = Field(default=0, ge=0)
    stock_quantity: float = 0
    barcode: str | None = None

    @field_validator("unit_cost", mode="before")
    @classmethod
    def validate_unit_cost(cls, v: Any) -> Any:
        """Coerce malformed costs to 0 and clamp negatives."""
        return max(0, coerce_number(v))

    @field_validator("stock_quantity", mode="before")
    @classmethod
    def validate_stock_quantity(cls, v: Any) -> Any:
        """Coerce malformed stock values to 0."""
        return coerce_number(v)


class LineItem(BaseModel):
    """A line of an order.

    ``name`` and ``price_at_order`` are snapshots taken when the order was
    placed and stay authoritative if the menu item changes later.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    menu_item_id: str = ""
    name: str | None = None
    quantity: int = Field(default=1, ge=0)
    portion: str | None = None
    price_at_order: float = 0
    modifiers: list[str] | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, v: Any) -> Any:
        """Coerce malformed quantities to a non-negative integer."""
        return max(0, int(coerce_number(v)))

    @field_validator("price_at_order", mode="before")
    @classmethod
    def validate_price_at_order(cls, v: Any) -> Any:
        """Coerce malformed prices to 0."""
        return coerce_number(v)


class Order(CollectionRecord):
    """Customer order.

    ``completed_at`` is set once, the first time the order is served,
    cancelled or paid.
    """

    table_number: int = 0
    server_name: str = ""
    items: list[LineItem] = Field(default_factory=list)
    status: OrderStatus = OrderStatus.NEW
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: PaymentMethod | None = None
    created_at: datetime
    completed_at: datetime | None = None
    tax_rate: float = 0
    discount: float = 0

    @field_validator("table_number", mode="before")
    @classmethod
    def validate_table_number(cls, v: Any) -> Any:
        """Coerce malformed table numbers to 0."""
        return int(coerce_number(v))

    @field_validator("tax_rate", "discount", mode="before")
    @classmethod
    def validate_amounts(cls, v: Any) -> Any:
        """Coerce malformed amounts to 0."""
        return coerce_number(v)


class User(CollectionRecord):
    """Staff member."""

    name: str
    email: str
    role: UserRole
    password: str | None = None
    permissions: list[str] = Field(default_factory=list)


class Expense(CollectionRecord):
    """Recorded expense."""

    description: str
    amount: float = 0
    category: str
    date: datetime
    reported_by: str
    receipt_image: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v: Any) -> Any:
        """Coerce malformed amounts to 0."""
        return coerce_number(v)


class RequisitionRequest(CollectionRecord):
    """Staff-originated restock request."""

    ingredient_id: str
    ingredient_name: str
    quantity: float = 0
    unit: str = ""
    urgency: RequisitionUrgency = RequisitionUrgency.MEDIUM
    status: RequisitionStatus = RequisitionStatus.PENDING
    requested_by: str
    requested_at: datetime
    notes: str | None = None
    estimated_unit_cost: float | None = None
    preferred_supplier: str | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, v: Any) -> Any:
        """Coerce malformed quantities to 0."""
        return coerce_number(v)

    @field_validator("estimated_unit_cost", mode="before")
    @classmethod
    def validate_estimated_unit_cost(cls, v: Any) -> Any:
        """Coerce malformed costs to 0, keeping an absent cost absent."""
        return None if v is None else coerce_number(v)


class Customer(CollectionRecord):
    """Loyalty customer."""

    name: str
    phone: str
    email: str | None = None
    loyalty_points: int = 0
    total_visits: int = 0
    last_visit: datetime | None = None
    notes: str | None = None


COLLECTION_MODELS: dict[CollectionName, type[CollectionRecord]] = {
    CollectionName.ORDERS: Order,
    CollectionName.MENU_ITEMS: MenuItem,
    CollectionName.INGREDIENTS: Ingredient,
    CollectionName.USERS: User,
    CollectionName.EXPENSES: Expense,
    CollectionName.REQUISITIONS: RequisitionRequest,
    CollectionName.CUSTOMERS: Customer,
}


def parse_records(
    collection: CollectionName, records: list[dict[str, Any]]
) -> tuple[list[CollectionRecord], int]:
    """Parse raw records of a collection into models.

    Args:
        collection: Collection the records belong to
        records: Raw record dictionaries

    Returns:
        Tuple of (parsed models, number of records that failed validation)
    """
    model = COLLECTION_MODELS[collection]
    parsed: list[CollectionRecord] = []
    invalid = 0
    for record in records:
        try:
            parsed.append(model.from_record(record))
        except (ValidationError, TypeError):
            invalid += 1
    return parsed, invalid
