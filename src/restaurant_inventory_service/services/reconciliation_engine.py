"""Inventory reconciliation engine.

Translates order line-item consumption into signed stock adjustments. The
engine is pure: it works on snapshots of menu items and ingredients passed in
by the caller and returns new ingredient records without persisting anything.

Consumption per unit sold comes from one of two strategies:

- ``RecipeConsumptionStrategy`` when the menu item has an explicit recipe
- ``EstimateConsumptionStrategy`` otherwise, which guesses ingredients from
  the item name and a unit-based default quantity (approximate by nature)
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from restaurant_inventory_service.models.restaurant_models import (
    Ingredient,
    LineItem,
    MenuItem,
    coerce_number,
)

logger = logging.getLogger(__name__)

PORTION_RATIOS: dict[str, float] = {
    "Half": 0.5,
    "Quarter": 0.25,
}

BULK_UNITS = {"kg", "l", "liter", "litre", "kgs"}
SMALL_UNITS = {"g", "gm", "ml", "gms"}

BULK_UNIT_DEFAULT = 0.25
SMALL_UNIT_DEFAULT = 250.0
COUNT_UNIT_DEFAULT = 1.0

# Dishes whose main ingredients never appear in their name
DISH_KEYWORD_INGREDIENTS: dict[str, tuple[str, ...]] = {
    "spring roll": ("cabbage",),
    "manchurian": ("cabbage",),
    "chowmein": ("cabbage",),
}

MIN_MATCH_NAME_LENGTH = 3


class ReconciliationDirection(str, Enum):
    """Direction of a stock adjustment."""

    DEDUCT = "deduct"
    RESTORE = "restore"


@dataclass(frozen=True)
class ConsumptionEvent:
    """Sale (or reversal) of a quantity of one menu item.

    Attributes:
        menu_item_id: Menu item that was sold
        quantity: Units sold
        portion: Portion label ("Full", "Half", "Quarter"); None means Full
    """

    menu_item_id: str
    quantity: float
    portion: str | None = None

    @classmethod
    def from_line_item(cls, item: LineItem, quantity: float | None = None) -> "ConsumptionEvent":
        """Build an event from an order line, optionally overriding the quantity."""
        return cls(
            menu_item_id=item.menu_item_id,
            quantity=item.quantity if quantity is None else quantity,
            portion=item.portion,
        )


def portion_ratio(portion: Any) -> float:
    """Scale factor of a portion label.

    Labels are matched case-sensitively; anything unrecognised is a full
    portion.
    """
    if isinstance(portion, str):
        return PORTION_RATIOS.get(portion, 1.0)
    return 1.0


def default_quantity_for_unit(unit: str) -> float:
    """Estimated consumption of one unit sold, based on the ingredient's unit."""
    normalized = (unit or "").strip().lower()
    if normalized in BULK_UNITS:
        return BULK_UNIT_DEFAULT
    if normalized in SMALL_UNITS:
        return SMALL_UNIT_DEFAULT
    return COUNT_UNIT_DEFAULT


class ConsumptionStrategy(ABC):
    """Resolves how much of each ingredient one full portion of an item uses."""

    @abstractmethod
    def per_unit_consumption(
        self, menu_item: MenuItem, ingredients: dict[str, Ingredient]
    ) -> list[tuple[str, float]]:
        """Return ``(ingredient_id, quantity)`` pairs for one full-portion unit.

        Args:
            menu_item: Item being sold
            ingredients: Ingredient catalog keyed by id

        Returns:
            list: Consumption pairs; ingredients absent from the catalog are omitted
        """


class RecipeConsumptionStrategy(ConsumptionStrategy):
    """Exact consumption from the item's explicit recipe."""

    def per_unit_consumption(
        self, menu_item: MenuItem, ingredients: dict[str, Ingredient]
    ) -> list[tuple[str, float]]:
        consumption = []
        for line in menu_item.ingredients:
            # Ingredient deleted from the catalog after the recipe was written
            if line.ingredient_id not in ingredients:
                continue
            consumption.append((line.ingredient_id, line.quantity))
        return consumption


class EstimateConsumptionStrategy(ConsumptionStrategy):
    """Approximate consumption for items entered without a recipe.

    An ingredient is assumed to be used when its lower-cased name (longer
    than two characters) appears in the lower-cased item name, or when the
    item name contains a known dish keyword associated with it. Each match
    consumes a default quantity chosen by the ingredient's unit.
    """

    def __init__(self, dish_keywords: dict[str, tuple[str, ...]] | None = None) -> None:
        self.dish_keywords = DISH_KEYWORD_INGREDIENTS if dish_keywords is None else dish_keywords

    def per_unit_consumption(
        self, menu_item: MenuItem, ingredients: dict[str, Ingredient]
    ) -> list[tuple[str, float]]:
        item_name = menu_item.name.lower()
        associated = [
            keyword
            for dish, keywords in self.dish_keywords.items()
            if dish in item_name
            for keyword in keywords
        ]

        consumption = []
        for ingredient in ingredients.values():
            if self._matches(ingredient.name.lower(), item_name, associated):
                consumption.append((ingredient.id, default_quantity_for_unit(ingredient.unit)))
        return consumption

    @staticmethod
    def _matches(ingredient_name: str, item_name: str, associated: list[str]) -> bool:
        if len(ingredient_name) < MIN_MATCH_NAME_LENGTH:
            return False
        if ingredient_name in item_name:
            return True
        return any(keyword in ingredient_name for keyword in associated)


@dataclass
class ReconciliationResult:
    """Outcome of a reconciliation run.

    Attributes:
        ingredients: Full ingredient collection with touched records replaced
        changed: Only the touched records, in catalog order
        clamped: Ids of ingredients whose deduction was floor-clamped at zero
    """

    ingredients: list[Ingredient]
    changed: list[Ingredient] = field(default_factory=list)
    clamped: list[str] = field(default_factory=list)


class InventoryReconciliationEngine:
    """Computes stock adjustments for a batch of consumption events."""

    def __init__(
        self,
        recipe_strategy: ConsumptionStrategy | None = None,
        estimate_strategy: ConsumptionStrategy | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            recipe_strategy: Strategy for items with a recipe
            estimate_strategy: Strategy for items without one
        """
        self.recipe_strategy = recipe_strategy or RecipeConsumptionStrategy()
        self.estimate_strategy = estimate_strategy or EstimateConsumptionStrategy()

    def select_strategy(self, menu_item: MenuItem) -> ConsumptionStrategy:
        """Pick the recipe strategy when a recipe exists, the estimate otherwise."""
        return self.recipe_strategy if menu_item.has_recipe else self.estimate_strategy

    def accumulate(
        self,
        events: Iterable[ConsumptionEvent],
        menu_items: Iterable[MenuItem],
        ingredients: Iterable[Ingredient],
    ) -> dict[str, float]:
        """Total the ingredient amounts implied by a batch of events.

        Events for unknown menu items are ignored.

        Returns:
            dict: Ingredient id to total amount
        """
        menu_by_id = {item.id: item for item in menu_items}
        catalog = {ingredient.id: ingredient for ingredient in ingredients}

        totals: dict[str, float] = {}
        for event in events:
            menu_item = menu_by_id.get(event.menu_item_id)
            if menu_item is None:
                continue

            units = coerce_number(event.quantity) * portion_ratio(event.portion)
            strategy = self.select_strategy(menu_item)
            for ingredient_id, per_unit in strategy.per_unit_consumption(menu_item, catalog):
                totals[ingredient_id] = totals.get(ingredient_id, 0.0) + per_unit * units

        return totals

    def reconcile(
        self,
        events: Iterable[ConsumptionEvent],
        direction: ReconciliationDirection,
        menu_items: Iterable[MenuItem],
        ingredients: Iterable[Ingredient],
    ) -> ReconciliationResult:
        """Apply the consumption of a batch of events to the ingredient stock.

        Deductions are floor-clamped at zero and the shortfall is dropped.
        Restorations are not capped.

        Args:
            events: Consumption events to apply
            direction: Deduct or restore
            menu_items: Menu item snapshot
            ingredients: Ingredient snapshot

        Returns:
            ReconciliationResult with the new collection and the touched subset
        """
        ingredient_list = list(ingredients)
        totals = self.accumulate(events, menu_items, ingredient_list)

        result = ReconciliationResult(ingredients=[])
        for ingredient in ingredient_list:
            amount = totals.get(ingredient.id, 0.0)
            if amount == 0:
                result.ingredients.append(ingredient)
                continue

            if direction == ReconciliationDirection.DEDUCT:
                new_stock = ingredient.stock_quantity - amount
                if new_stock < 0:
                    result.clamped.append(ingredient.id)
                    new_stock = 0.0
            else:
                new_stock = ingredient.stock_quantity + amount

            updated = ingredient.model_copy(update={"stock_quantity": new_stock})
            # Only the first record per id is adjusted
            totals.pop(ingredient.id)
            result.ingredients.append(updated)
            result.changed.append(updated)

        if result.clamped:
            logger.debug(f"Stock clamped at zero for: {', '.join(result.clamped)}")

        return result
