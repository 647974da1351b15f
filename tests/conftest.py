"""Shared pytest fixtures and configuration for all tests."""

import os
from datetime import UTC, datetime

import pytest

os.environ.setdefault("ENVIRONMENT", "test")

from restaurant_inventory_service.models.restaurant_models import (  # noqa: E402
    Ingredient,
    LineItem,
    MenuItem,
    Order,
    RecipeLine,
)

FIXED_NOW = datetime(2024, 1, 15, 19, 30, tzinfo=UTC)


@pytest.fixture
def fixed_clock():
    """Fixture providing a clock frozen at a known instant."""
    return lambda: FIXED_NOW


@pytest.fixture
def sample_ingredients() -> list[Ingredient]:
    """Fixture providing a small ingredient catalog."""
    return [
        Ingredient(
            id="i-chk-bone",
            name="Chicken Curry Cut",
            category="Meat",
            unit="kg",
            unit_cost=220,
            stock_quantity=40,
        ),
        Ingredient(
            id="i-butter",
            name="Butter (Salted)",
            category="Dairy",
            unit="kg",
            unit_cost=520,
            stock_quantity=10,
        ),
        Ingredient(
            id="i-cabbage", name="Cabbage", category="Produce", unit="kg", unit_cost=20, stock_quantity=20
        ),
        Ingredient(
            id="i-lemon", name="Lemon", category="Produce", unit="pc", unit_cost=5, stock_quantity=100
        ),
    ]


@pytest.fixture
def sample_menu_items() -> list[MenuItem]:
    """Fixture providing menu items with and without recipes."""
    return [
        MenuItem(
            id="m-butter-chicken",
            name="Butter Chicken",
            category="Main Course",
            price=320,
            ingredients=[
                RecipeLine(ingredient_id="i-chk-bone", quantity=0.25),
                RecipeLine(ingredient_id="i-butter", quantity=0.05),
            ],
        ),
        MenuItem(id="m-spring-roll", name="Veg Spring Roll", category="Starters", price=150),
        MenuItem(id="m-lemon-soda", name="Fresh Lemon Soda", category="Beverages", price=80),
    ]


def make_line(
    line_id: str,
    menu_item_id: str = "m-butter-chicken",
    quantity: int = 1,
    portion: str | None = "Full",
    price: float = 320,
) -> LineItem:
    """Build a line item for tests."""
    return LineItem(
        id=line_id,
        menu_item_id=menu_item_id,
        quantity=quantity,
        portion=portion,
        price_at_order=price,
    )


def make_order(order_id: str = "ord-1", items: list[LineItem] | None = None, **overrides) -> Order:
    """Build an order for tests."""
    return Order(
        id=order_id,
        table_number=overrides.pop("table_number", 4),
        server_name=overrides.pop("server_name", "Ravi"),
        items=items if items is not None else [make_line("line-1", quantity=2)],
        created_at=overrides.pop("created_at", datetime(2024, 1, 15, 19, 0, tzinfo=UTC)),
        **overrides,
    )


@pytest.fixture
def order_factory():
    """Fixture exposing the order builder."""
    return make_order


@pytest.fixture
def line_factory():
    """Fixture exposing the line item builder."""
    return make_line
