"""Shared test fixtures."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from uuid import uuid4

import pytest

from coffee_vending.adapters.websocket_hub import WebSocketHub
from coffee_vending.config import Settings
from coffee_vending.containers import AppContainer, Repositories, assemble_container
from coffee_vending.domain.catalog import Ingredient, Recipe, RecipeIngredient
from coffee_vending.domain.machines import InventoryItem, InventoryWarning, Machine
from coffee_vending.domain.orders import Order
from coffee_vending.services.catalog import CatalogRepository
from coffee_vending.services.inventory import InventoryRepository, WarningRepository
from coffee_vending.services.machines import MachineRepository
from coffee_vending.services.orders import OrderRepository
from coffee_vending.services.payloads import (
    parse_ingredient,
    parse_order,
    parse_recipe,
)


@dataclass
class InMemoryCatalogRepository(CatalogRepository):
    """In-memory catalog repository for tests."""

    ingredients: dict[str, Ingredient] = field(default_factory=dict)
    recipes: dict[str, Recipe] = field(default_factory=dict)
    rows: list[RecipeIngredient] = field(default_factory=list)

    def add_ingredient(self, ingredient_id: str, unit: str = "g") -> Ingredient:
        ingredient = Ingredient(id=ingredient_id, name=ingredient_id.title(), unit=unit)
        self.ingredients[ingredient_id] = ingredient
        return ingredient

    def add_recipe(
        self,
        recipe_id: str,
        requirements: dict[str, float],
        price: float = 3.5,
        category_id: str | None = "coffee",
    ) -> Recipe:
        recipe = Recipe(
            id=recipe_id,
            name=recipe_id.title(),
            description="",
            category_id=category_id,
            price=price,
        )
        self.recipes[recipe_id] = recipe
        for ingredient_id, quantity in requirements.items():
            self.rows.append(RecipeIngredient(recipe_id, ingredient_id, quantity))
        return recipe

    def list_ingredients(self) -> list[Ingredient]:
        return list(self.ingredients.values())

    def get_ingredient(self, ingredient_id: str) -> Ingredient | None:
        return self.ingredients.get(ingredient_id)

    def create_ingredient(self, payload: dict[str, object]) -> Ingredient:
        ingredient = parse_ingredient({"id": uuid4().hex, **payload})
        self.ingredients[ingredient.id] = ingredient
        return ingredient

    def update_ingredient(
        self, ingredient_id: str, payload: dict[str, object]
    ) -> Ingredient | None:
        ingredient = self.ingredients.get(ingredient_id)
        if ingredient is None:
            return None
        updated = replace(ingredient, **payload)
        self.ingredients[ingredient_id] = updated
        return updated

    def delete_ingredient(self, ingredient_id: str) -> None:
        self.ingredients.pop(ingredient_id, None)

    def list_recipes(self, category_id: str | None = None) -> list[Recipe]:
        return [
            recipe
            for recipe in self.recipes.values()
            if category_id is None or recipe.category_id == category_id
        ]

    def get_recipe(self, recipe_id: str) -> Recipe | None:
        return self.recipes.get(recipe_id)

    def create_recipe(self, payload: dict[str, object]) -> Recipe:
        recipe = parse_recipe({"id": uuid4().hex, **payload})
        self.recipes[recipe.id] = recipe
        return recipe

    def update_recipe(
        self, recipe_id: str, payload: dict[str, object]
    ) -> Recipe | None:
        recipe = self.recipes.get(recipe_id)
        if recipe is None:
            return None
        fields = {key: value for key, value in payload.items() if key != "nutrition"}
        updated = replace(recipe, **fields)
        self.recipes[recipe_id] = updated
        return updated

    def delete_recipe(self, recipe_id: str) -> None:
        self.recipes.pop(recipe_id, None)
        self.rows = [row for row in self.rows if row.recipe_id != recipe_id]

    def list_recipe_ingredients(
        self, recipe_id: str | None = None
    ) -> list[RecipeIngredient]:
        return [
            row for row in self.rows if recipe_id is None or row.recipe_id == recipe_id
        ]

    def replace_recipe_ingredients(
        self, recipe_id: str, rows: list[RecipeIngredient]
    ) -> None:
        self.rows = [row for row in self.rows if row.recipe_id != recipe_id] + rows


@dataclass
class InMemoryInventoryRepository(InventoryRepository):
    """In-memory inventory repository with injectable contention and failures."""

    items: dict[str, InventoryItem] = field(default_factory=dict)
    contended_writes: int = 0
    failing_ingredients: set[str] = field(default_factory=set)
    cas_calls: int = 0

    def seed(self, machine_id: str, quantities: dict[str, float]) -> None:
        for ingredient_id, quantity in quantities.items():
            self.upsert_item(machine_id, ingredient_id, quantity, None)

    def quantity(self, machine_id: str, ingredient_id: str) -> float | None:
        item = self.get_item(machine_id, ingredient_id)
        return item.quantity if item else None

    def list_inventory(self, machine_id: str) -> list[InventoryItem]:
        return [item for item in self.items.values() if item.machine_id == machine_id]

    def list_all_inventory(self) -> list[InventoryItem]:
        return list(self.items.values())

    def get_item(self, machine_id: str, ingredient_id: str) -> InventoryItem | None:
        for item in self.items.values():
            if item.machine_id == machine_id and item.ingredient_id == ingredient_id:
                return item
        return None

    def upsert_item(
        self,
        machine_id: str,
        ingredient_id: str,
        quantity: float,
        max_capacity: float | None,
    ) -> InventoryItem:
        existing = self.get_item(machine_id, ingredient_id)
        item = InventoryItem(
            id=existing.id if existing else uuid4().hex,
            machine_id=machine_id,
            ingredient_id=ingredient_id,
            quantity=quantity,
            max_capacity=max_capacity
            if max_capacity is not None
            else (existing.max_capacity if existing else None),
        )
        self.items[item.id] = item
        return item

    def compare_and_set_quantity(
        self, item_id: str, expected: float, quantity: float
    ) -> bool:
        self.cas_calls += 1
        item = self.items.get(item_id)
        if item is None:
            return False
        if item.ingredient_id in self.failing_ingredients:
            raise OSError("store unavailable")
        if self.contended_writes > 0:
            self.contended_writes -= 1
            return False
        if item.quantity != expected:
            return False
        self.items[item_id] = replace(item, quantity=quantity)
        return True


@dataclass
class InMemoryWarningRepository(WarningRepository):
    """In-memory warning repository for tests."""

    warnings: list[InventoryWarning] = field(default_factory=list)

    def create_warning(self, warning: InventoryWarning) -> None:
        self.warnings.append(warning)

    def list_warnings(
        self, machine_id: str, status: str | None = None
    ) -> list[InventoryWarning]:
        return [
            warning
            for warning in self.warnings
            if warning.machine_id == machine_id
            and (status is None or warning.status == status)
        ]

    def resolve_warning(self, warning_id: str, resolved_at: datetime) -> bool:
        for position, warning in enumerate(self.warnings):
            if warning.id == warning_id:
                self.warnings[position] = replace(warning, status="resolved")
                return True
        return False


@dataclass
class InMemoryMachineRepository(MachineRepository):
    """In-memory machine repository for tests."""

    machines: dict[str, Machine] = field(default_factory=dict)

    def add_machine(self, machine_id: str, status: str = "active") -> Machine:
        machine = Machine(
            id=machine_id, location="Lobby", status=status, temperature_c=92.0
        )
        self.machines[machine_id] = machine
        return machine

    def list_machines(self) -> list[Machine]:
        return list(self.machines.values())

    def get_machine(self, machine_id: str) -> Machine | None:
        return self.machines.get(machine_id)

    def update_machine(
        self, machine_id: str, fields: dict[str, object]
    ) -> Machine | None:
        machine = self.machines.get(machine_id)
        if machine is None:
            return None
        updated = replace(machine, **fields)
        self.machines[machine_id] = updated
        return updated

    def increment_revenue(self, machine_id: str, amount: float) -> None:
        machine = self.machines[machine_id]
        self.machines[machine_id] = replace(
            machine, revenue_total=machine.revenue_total + amount
        )


@dataclass
class InMemoryOrderRepository(OrderRepository):
    """In-memory order repository for tests."""

    orders: dict[str, Order] = field(default_factory=dict)

    def create_order(self, payload: dict[str, object]) -> Order:
        order = parse_order({"id": uuid4().hex, **payload})
        self.orders[order.id] = order
        return order

    def get_order(self, order_id: str) -> Order | None:
        return self.orders.get(order_id)

    def claim_status(self, order_id: str, expected: str, status: str) -> Order | None:
        order = self.orders.get(order_id)
        if order is None or order.status != expected:
            return None
        updated = replace(order, status=status)
        self.orders[order_id] = updated
        return updated

    def set_rating(self, order_id: str, rating: int) -> Order | None:
        order = self.orders.get(order_id)
        if order is None:
            return None
        updated = replace(order, rating=rating)
        self.orders[order_id] = updated
        return updated

    def list_orders(
        self, machine_id: str | None = None, user_id: str | None = None
    ) -> list[Order]:
        return [
            order
            for order in self.orders.values()
            if (machine_id is None or order.machine_id == machine_id)
            and (user_id is None or order.user_id == user_id)
        ]


@dataclass
class RecordingHub(WebSocketHub):
    """Hub that records every emission before delivering it."""

    sent: list[tuple[str, str | None, str, object]] = field(default_factory=list)

    async def emit_to_room(self, room: str, event: str, data: object) -> None:
        self.sent.append(("room", room, event, data))
        await super().emit_to_room(room, event, data)

    async def emit_to(self, connection_id: str, event: str, data: object) -> None:
        self.sent.append(("connection", connection_id, event, data))
        await super().emit_to(connection_id, event, data)

    async def broadcast(self, event: str, data: object) -> None:
        self.sent.append(("all", None, event, data))
        for connection_id in list(self.connections):
            await super().emit_to(connection_id, event, data)

    def events(self, event: str) -> list[object]:
        return [data for _, _, name, data in self.sent if name == event]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="test.service.key",
        change_feed_mode="polling",
    )


@pytest.fixture
def repositories() -> Repositories:
    """Catalog and stock for one machine.

    espresso needs coffee and water, latte needs coffee and milk, sweet
    needs sugar (never stocked) and hot-water has no ingredients at all.
    """
    catalog = InMemoryCatalogRepository()
    for ingredient_id in ("coffee", "milk", "water", "sugar"):
        catalog.add_ingredient(ingredient_id)
    catalog.add_recipe("espresso", {"coffee": 30, "water": 50}, price=2.5)
    catalog.add_recipe("latte", {"coffee": 30, "milk": 90}, price=4.0)
    catalog.add_recipe("sweet", {"sugar": 10}, price=1.0, category_id="extras")
    catalog.add_recipe("hot-water", {}, price=0.5, category_id="extras")
    inventory = InMemoryInventoryRepository()
    inventory.seed("m1", {"coffee": 100, "milk": 200, "water": 500})
    machines = InMemoryMachineRepository()
    machines.add_machine("m1")
    machines.add_machine("m2", status="maintenance")
    return Repositories(
        catalog=catalog,
        inventory=inventory,
        warnings=InMemoryWarningRepository(),
        machines=machines,
        orders=InMemoryOrderRepository(),
    )


@pytest.fixture
def hub() -> RecordingHub:
    return RecordingHub()


@pytest.fixture
def container(
    settings: Settings, repositories: Repositories, hub: RecordingHub
) -> AppContainer:
    return assemble_container(settings, repositories, hub=hub)
