"""JSON payload conversion for domain objects."""

from datetime import datetime

from coffee_vending.domain.catalog import (
    Ingredient,
    Nutrition,
    Recipe,
    RecipeIngredient,
)
from coffee_vending.domain.machines import InventoryItem, InventoryWarning, Machine
from coffee_vending.domain.orders import Order


def serialize_ingredient(ingredient: Ingredient) -> dict[str, object]:
    return {"id": ingredient.id, "name": ingredient.name, "unit": ingredient.unit}


def serialize_recipe(recipe: Recipe) -> dict[str, object]:
    return {
        "id": recipe.id,
        "name": recipe.name,
        "description": recipe.description,
        "category_id": recipe.category_id,
        "price": recipe.price,
        "image_ref": recipe.image_ref,
        "nutrition": {
            "calories": recipe.nutrition.calories,
            "protein": recipe.nutrition.protein,
            "carbs": recipe.nutrition.carbs,
            "fat": recipe.nutrition.fat,
            "sugar": recipe.nutrition.sugar,
        },
        "created_at": _isoformat(recipe.created_at),
    }


def serialize_recipe_ingredient(row: RecipeIngredient) -> dict[str, object]:
    return {
        "recipe_id": row.recipe_id,
        "ingredient_id": row.ingredient_id,
        "quantity": row.quantity,
    }


def serialize_inventory_item(item: InventoryItem) -> dict[str, object]:
    return {
        "id": item.id,
        "machine_id": item.machine_id,
        "ingredient_id": item.ingredient_id,
        "quantity": item.quantity,
        "max_capacity": item.max_capacity,
        "updated_at": _isoformat(item.updated_at),
    }


def serialize_machine(machine: Machine) -> dict[str, object]:
    return {
        "id": machine.id,
        "location": machine.location,
        "status": machine.status,
        "temperature_c": machine.temperature_c,
        "cleaning_water_ml": machine.cleaning_water_ml,
        "revenue_total": machine.revenue_total,
        "updated_at": _isoformat(machine.updated_at),
    }


def serialize_warning(warning: InventoryWarning) -> dict[str, object]:
    return {
        "id": warning.id,
        "machine_id": warning.machine_id,
        "ingredient_id": warning.ingredient_id,
        "type": warning.type,
        "severity": warning.severity,
        "message": warning.message,
        "status": warning.status,
        "created_at": warning.created_at.isoformat(),
    }


def serialize_order(order: Order) -> dict[str, object]:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "machine_id": order.machine_id,
        "recipe_id": order.recipe_id,
        "bill": order.bill,
        "ordered_at": order.ordered_at.isoformat(),
        "status": order.status,
        "rating": order.rating,
    }


def parse_recipe(row: dict[str, object]) -> Recipe:
    nutrition = row.get("nutrition") or {}
    if not isinstance(nutrition, dict):
        nutrition = {}
    return Recipe(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        description=str(row.get("description") or ""),
        category_id=_optional_str(row.get("category_id")),
        price=_to_float(row.get("price")),
        image_ref=_optional_str(row.get("image_ref")),
        nutrition=Nutrition(
            calories=_to_float(nutrition.get("calories")),
            protein=_to_float(nutrition.get("protein")),
            carbs=_to_float(nutrition.get("carbs")),
            fat=_to_float(nutrition.get("fat")),
            sugar=_to_float(nutrition.get("sugar")),
        ),
        created_at=parse_timestamp(row.get("created_at")),
    )


def parse_recipe_ingredient(row: dict[str, object]) -> RecipeIngredient:
    return RecipeIngredient(
        recipe_id=str(row["recipe_id"]),
        ingredient_id=str(row["ingredient_id"]),
        quantity=_to_float(row.get("quantity")),
    )


def parse_ingredient(row: dict[str, object]) -> Ingredient:
    return Ingredient(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        unit=str(row.get("unit") or ""),
    )


def parse_inventory_item(row: dict[str, object]) -> InventoryItem:
    max_capacity = row.get("max_capacity")
    return InventoryItem(
        id=str(row["id"]),
        machine_id=str(row["machine_id"]),
        ingredient_id=str(row["ingredient_id"]),
        quantity=_to_float(row.get("quantity")),
        max_capacity=_to_float(max_capacity) if max_capacity is not None else None,
        updated_at=parse_timestamp(row.get("updated_at")),
    )


def parse_machine(row: dict[str, object]) -> Machine:
    temperature = row.get("temperature_c")
    water = row.get("cleaning_water_ml")
    return Machine(
        id=str(row["id"]),
        location=str(row.get("location") or ""),
        status=str(row.get("status") or ""),
        temperature_c=_to_float(temperature) if temperature is not None else None,
        cleaning_water_ml=_to_float(water) if water is not None else None,
        revenue_total=_to_float(row.get("revenue_total")),
        updated_at=parse_timestamp(row.get("updated_at")),
    )


def parse_warning(row: dict[str, object]) -> InventoryWarning:
    created_at = parse_timestamp(row.get("created_at"))
    if created_at is None:
        raise ValueError("Warning row is missing created_at")
    return InventoryWarning(
        id=str(row["id"]),
        machine_id=str(row["machine_id"]),
        ingredient_id=str(row.get("ingredient_id") or ""),
        type=str(row.get("type") or ""),
        severity=str(row.get("severity") or ""),
        message=str(row.get("message") or ""),
        status=str(row.get("status") or "active"),
        created_at=created_at,
    )


def parse_order(row: dict[str, object]) -> Order:
    ordered_at = parse_timestamp(row.get("ordered_at"))
    if ordered_at is None:
        raise ValueError("Order row is missing ordered_at")
    rating = row.get("rating")
    return Order(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        machine_id=str(row["machine_id"]),
        recipe_id=str(row["recipe_id"]),
        bill=_to_float(row.get("bill")),
        ordered_at=ordered_at,
        status=str(row["status"]),
        rating=int(rating) if isinstance(rating, int | float) else None,
    )


def parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _optional_str(value: object) -> str | None:
    return str(value) if value is not None else None


def _to_float(value: object) -> float:
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0
