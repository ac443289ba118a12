"""Client-side normalized cache of catalog, inventory and availability.

The cache mirrors the server's recipe-ingredient index and inventory so a
kiosk can answer availability questions with set lookups. It is only ever
rebuilt from pushed events; it never writes back.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from coffee_vending.domain.availability import AvailabilitySnapshot
from coffee_vending.domain.catalog import Recipe
from coffee_vending.domain.machines import InventoryItem
from coffee_vending.services.availability import AvailabilityEngine, apply_recipe_status
from coffee_vending.services.payloads import (
    parse_inventory_item,
    parse_recipe,
    parse_recipe_ingredient,
)
from coffee_vending.services.realtime import (
    MACHINE_INVENTORY_UPDATE,
    MACHINE_STATUS_UPDATE,
    MACHINE_TEMPERATURE_UPDATE,
    RECIPE_AVAILABILITY_UPDATE,
    RECIPE_INGREDIENT_UPDATE,
    RECIPE_UPDATE,
)
from coffee_vending.services.recipe_index import RecipeIngredientIndex

_logger = logging.getLogger(__name__)


@dataclass
class RecipeCache:
    """Recipes by id, in arrival order and grouped by category."""

    by_id: dict[str, Recipe] = field(default_factory=dict)
    by_category: dict[str | None, list[str]] = field(default_factory=dict)

    def replace(self, recipes: list[Recipe]) -> None:
        self.by_id = {recipe.id: recipe for recipe in recipes}
        self.by_category = {}
        for recipe in self.by_id.values():
            self.by_category.setdefault(recipe.category_id, []).append(recipe.id)

    def get(self, recipe_id: str) -> Recipe | None:
        return self.by_id.get(recipe_id)

    def all(self) -> list[Recipe]:
        return list(self.by_id.values())

    def in_category(self, category_id: str | None) -> list[Recipe]:
        return [self.by_id[rid] for rid in self.by_category.get(category_id, [])]


@dataclass
class InventoryCache:
    """Inventory rows keyed by machine and ingredient."""

    by_machine: dict[str, dict[str, InventoryItem]] = field(default_factory=dict)

    def replace(self, machine_id: str, items: list[InventoryItem]) -> None:
        self.by_machine[machine_id] = {item.ingredient_id: item for item in items}

    def items_for(self, machine_id: str) -> list[InventoryItem]:
        return list(self.by_machine.get(machine_id, {}).values())

    def quantity(self, machine_id: str, ingredient_id: str) -> float:
        item = self.by_machine.get(machine_id, {}).get(ingredient_id)
        return item.quantity if item else 0.0

    def has_in_stock(
        self, machine_id: str, ingredient_id: str, required: float
    ) -> bool:
        return self.quantity(machine_id, ingredient_id) >= required

    def quantities_for(self, machine_id: str) -> dict[str, float]:
        return {
            ingredient_id: item.quantity
            for ingredient_id, item in self.by_machine.get(machine_id, {}).items()
        }


@dataclass
class KioskCache:
    """Everything one kiosk needs to render its machine's menu.

    `apply_event` merges a pushed event and reports whether local
    availability must be recomputed; the caller decides when to run
    `recompute`, which keeps recomputation out of the merge path.
    """

    machine_id: str
    recipes: RecipeCache = field(default_factory=RecipeCache)
    inventory: InventoryCache = field(default_factory=InventoryCache)
    index: RecipeIngredientIndex = field(default_factory=RecipeIngredientIndex)
    machine_status: dict[str, object] = field(default_factory=dict)
    temperature_c: float | None = None
    engine: AvailabilityEngine = field(init=False, repr=False)
    _memo: dict[str, list[Recipe]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.engine = AvailabilityEngine(catalog=self, inventory=self)

    def recipe_ids(self) -> list[str]:
        return list(self.recipes.by_id)

    def has_recipe(self, recipe_id: str) -> bool:
        return recipe_id in self.recipes.by_id

    def recipe_index(self) -> RecipeIngredientIndex:
        return self.index

    def quantities_for(self, machine_id: str) -> dict[str, float]:
        return self.inventory.quantities_for(machine_id)

    @property
    def availability(self) -> AvailabilitySnapshot:
        snapshot = self.engine.snapshots.get(self.machine_id)
        if snapshot is None:
            snapshot = self.recompute()
        return snapshot

    def inventory_items(self) -> list[InventoryItem]:
        return self.inventory.items_for(self.machine_id)

    def is_recipe_available(self, recipe_id: str) -> bool:
        snapshot = self.engine.snapshots.get(self.machine_id)
        return snapshot is not None and recipe_id in snapshot.available

    def missing_ingredients(self, recipe_id: str) -> list[str]:
        snapshot = self.engine.snapshots.get(self.machine_id)
        return snapshot.missing_for(recipe_id) if snapshot else []

    def available_recipes(self) -> list[Recipe]:
        return self._memoized("available", self.availability.available_ids)

    def unavailable_recipes(self) -> list[Recipe]:
        return self._memoized("unavailable", self.availability.unavailable_ids)

    def recompute(self) -> AvailabilitySnapshot:
        """Rebuild the local availability view from cached data."""
        self._memo.clear()
        snapshot = self.engine.compute_availability(self.machine_id)
        _logger.debug(
            "Local availability recomputed: available=%s unavailable=%s",
            len(snapshot.available),
            len(snapshot.unavailable),
        )
        return snapshot

    def apply_event(self, event: str, data: object) -> bool:
        """Merge one pushed event; return True when a recompute is due."""
        if event == RECIPE_UPDATE and isinstance(data, list):
            self.recipes.replace([parse_recipe(row) for row in data])
            self._memo.clear()
            return True
        if event == RECIPE_INGREDIENT_UPDATE and isinstance(data, list):
            self.index = RecipeIngredientIndex.build(
                parse_recipe_ingredient(row) for row in data
            )
            return True
        if not isinstance(data, Mapping) or not self._for_this_machine(data):
            return False
        if event == MACHINE_INVENTORY_UPDATE:
            rows = data.get("inventory") or []
            self.inventory.replace(
                self.machine_id, [parse_inventory_item(row) for row in rows]
            )
            return True
        if event == MACHINE_STATUS_UPDATE:
            self._merge_status(data)
        elif event == MACHINE_TEMPERATURE_UPDATE:
            temperature = data.get("temperature_c")
            self.temperature_c = (
                float(temperature) if isinstance(temperature, int | float) else None
            )
        elif event == RECIPE_AVAILABILITY_UPDATE:
            self._merge_availability(data)
        return False

    def _for_this_machine(self, data: Mapping[str, object]) -> bool:
        machine_id = data.get("machine_id")
        return machine_id is None or str(machine_id) == self.machine_id

    def _merge_status(self, data: Mapping[str, object]) -> None:
        delta = data.get("delta")
        if isinstance(delta, Mapping):
            self.machine_status.update(delta)
            return
        self.machine_status = {
            key: value for key, value in data.items() if key != "machine_id"
        }

    def _merge_availability(self, data: Mapping[str, object]) -> None:
        missing = data.get("missingIngredientsByRecipe") or {}
        self._memo.clear()
        if data.get("delta"):
            snapshot = self.engine.snapshots.setdefault(
                self.machine_id, AvailabilitySnapshot(machine_id=self.machine_id)
            )
            for recipe_id in data.get("available") or []:
                apply_recipe_status(snapshot, str(recipe_id), [])
            for recipe_id in data.get("unavailable") or []:
                apply_recipe_status(
                    snapshot, str(recipe_id), list(missing.get(recipe_id) or [])
                )
            return
        snapshot = AvailabilitySnapshot(machine_id=self.machine_id)
        for recipe_id in data.get("availableRecipes") or []:
            snapshot.available[str(recipe_id)] = None
        for recipe_id in data.get("unavailableRecipes") or []:
            snapshot.unavailable[str(recipe_id)] = None
            snapshot.missing_by_recipe[str(recipe_id)] = list(
                missing.get(recipe_id) or []
            )
        self.engine.snapshots[self.machine_id] = snapshot

    def _memoized(self, key: str, recipe_ids: list[str]) -> list[Recipe]:
        if key not in self._memo:
            self._memo[key] = [
                self.recipes.by_id[rid]
                for rid in recipe_ids
                if rid in self.recipes.by_id
            ]
        return list(self._memo[key])
