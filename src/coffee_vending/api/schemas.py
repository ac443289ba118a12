"""Pydantic models for request bodies."""

from pydantic import BaseModel, Field


class NutritionPayload(BaseModel):
    """Nutrition facts of a recipe."""

    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    sugar: float = 0


class RecipeIngredientPayload(BaseModel):
    """One ingredient requirement of a recipe."""

    ingredient_id: str
    quantity: float = Field(ge=0)


class RecipePayload(BaseModel):
    """Recipe fields accepted on create."""

    name: str
    description: str = ""
    category_id: str | None = None
    price: float = Field(ge=0)
    image_ref: str | None = None
    nutrition: NutritionPayload = Field(default_factory=NutritionPayload)
    ingredients: list[RecipeIngredientPayload] | None = None


class RecipeUpdatePayload(BaseModel):
    """Recipe fields accepted on update; omitted fields are left alone."""

    name: str | None = None
    description: str | None = None
    category_id: str | None = None
    price: float | None = Field(default=None, ge=0)
    image_ref: str | None = None
    nutrition: NutritionPayload | None = None


class RecipeIngredientsPayload(BaseModel):
    ingredients: list[RecipeIngredientPayload]


class IngredientPayload(BaseModel):
    name: str
    unit: str


class IngredientUpdatePayload(BaseModel):
    name: str | None = None
    unit: str | None = None


class InventoryPayload(BaseModel):
    """Absolute stock level of one ingredient on a machine."""

    ingredient_id: str
    quantity: float
    max_capacity: float | None = None


class MachineUpdatePayload(BaseModel):
    """Machine fields that operators and machines report."""

    status: str | None = None
    location: str | None = None
    temperature_c: float | None = None
    cleaning_water_ml: float | None = None


class OrderPayload(BaseModel):
    user_id: str
    machine_id: str
    recipe_id: str


class OrderStatusPayload(BaseModel):
    status: str


class RatingPayload(BaseModel):
    rating: int
