"""Domain models for the drink catalog."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Ingredient:
    """Reference data for a dispensable ingredient."""

    id: str
    name: str
    unit: str


@dataclass(frozen=True)
class Nutrition:
    """Per-serving nutrition facts."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    sugar: float = 0.0


@dataclass(frozen=True)
class Recipe:
    """A drink that a machine can prepare."""

    id: str
    name: str
    description: str
    category_id: str | None
    price: float
    image_ref: str | None = None
    nutrition: Nutrition = field(default_factory=Nutrition)
    created_at: datetime | None = None


@dataclass(frozen=True)
class RecipeIngredient:
    """Amount of one ingredient required for a single preparation."""

    recipe_id: str
    ingredient_id: str
    quantity: float


@dataclass(frozen=True)
class IngredientRequirement:
    """Ingredient requirement as seen from a recipe."""

    ingredient_id: str
    quantity: float
