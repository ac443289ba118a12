"""Catalog service for ingredients, recipes and their associations."""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from coffee_vending.domain.catalog import Ingredient, Recipe, RecipeIngredient
from coffee_vending.domain.errors import ConflictError, NotFoundError, ValidationError
from coffee_vending.services.recipe_index import RecipeIngredientIndex

_logger = logging.getLogger(__name__)


class CatalogRepository(Protocol):
    """Persistence interface for catalog data."""

    def list_ingredients(self) -> list[Ingredient]:
        """Return all ingredients."""

    def get_ingredient(self, ingredient_id: str) -> Ingredient | None:
        """Return an ingredient by id, if present."""

    def create_ingredient(self, payload: dict[str, object]) -> Ingredient:
        """Create an ingredient and return it."""

    def update_ingredient(
        self, ingredient_id: str, payload: dict[str, object]
    ) -> Ingredient | None:
        """Update an ingredient and return it."""

    def delete_ingredient(self, ingredient_id: str) -> None:
        """Delete an ingredient."""

    def list_recipes(self, category_id: str | None = None) -> list[Recipe]:
        """Return recipes, optionally filtered by category."""

    def get_recipe(self, recipe_id: str) -> Recipe | None:
        """Return a recipe by id, if present."""

    def create_recipe(self, payload: dict[str, object]) -> Recipe:
        """Create a recipe and return it."""

    def update_recipe(
        self, recipe_id: str, payload: dict[str, object]
    ) -> Recipe | None:
        """Update a recipe and return it."""

    def delete_recipe(self, recipe_id: str) -> None:
        """Delete a recipe and its ingredient rows."""

    def list_recipe_ingredients(
        self, recipe_id: str | None = None
    ) -> list[RecipeIngredient]:
        """Return recipe-ingredient rows, optionally for one recipe."""

    def replace_recipe_ingredients(
        self, recipe_id: str, rows: list[RecipeIngredient]
    ) -> None:
        """Replace every ingredient row of a recipe."""


@dataclass
class CatalogService:
    """Catalog reads with a read-mostly in-process cache.

    The cached recipe list and recipe-ingredient index feed the availability
    engine. They are rebuilt by `refresh()`, which the propagation pipeline
    calls whenever the catalog changes.
    """

    repository: CatalogRepository
    _recipes: dict[str, Recipe] | None = field(default=None, init=False, repr=False)
    _index: RecipeIngredientIndex | None = field(default=None, init=False, repr=False)

    def refresh(self) -> tuple[dict[str, Recipe], RecipeIngredientIndex]:
        """Reload recipes and the recipe-ingredient index from storage."""
        recipes = self.repository.list_recipes()
        rows = self.repository.list_recipe_ingredients()
        self._recipes = {recipe.id: recipe for recipe in recipes}
        self._index = RecipeIngredientIndex.build(rows)
        _logger.info(
            "Catalog refreshed: recipes=%s recipe_ingredients=%s",
            len(recipes),
            len(rows),
        )
        return self._recipes, self._index

    def recipes(self) -> list[Recipe]:
        return list(self._cached_recipes().values())

    def recipe_ids(self) -> list[str]:
        return list(self._cached_recipes())

    def has_recipe(self, recipe_id: str) -> bool:
        return recipe_id in self._cached_recipes()

    def recipe_index(self) -> RecipeIngredientIndex:
        if self._index is None:
            return self.refresh()[1]
        return self._index

    def recipe_ingredients(self) -> list[RecipeIngredient]:
        return self.recipe_index().rows()

    def list_recipes(self, category_id: str | None = None) -> list[Recipe]:
        """Return recipes straight from storage."""
        return self.repository.list_recipes(category_id)

    def get_recipe(self, recipe_id: str) -> Recipe:
        """Return a recipe or raise NotFoundError."""
        recipe = self.repository.get_recipe(recipe_id)
        if recipe is None:
            raise NotFoundError("Recipe not found")
        return recipe

    def list_recipe_ingredients(
        self, recipe_id: str | None = None
    ) -> list[RecipeIngredient]:
        return self.repository.list_recipe_ingredients(recipe_id)

    def create_recipe(
        self,
        payload: dict[str, object],
        ingredients: list[dict[str, object]] | None = None,
    ) -> Recipe:
        """Create a recipe with an optional ingredient list."""
        recipe = self.repository.create_recipe(payload)
        if ingredients:
            self.set_recipe_ingredients(recipe.id, ingredients)
        return recipe

    def update_recipe(self, recipe_id: str, payload: dict[str, object]) -> Recipe:
        recipe = self.repository.update_recipe(recipe_id, payload)
        if recipe is None:
            raise NotFoundError("Recipe not found")
        return recipe

    def delete_recipe(self, recipe_id: str) -> None:
        self.get_recipe(recipe_id)
        self.repository.delete_recipe(recipe_id)

    def set_recipe_ingredients(
        self, recipe_id: str, ingredients: list[dict[str, object]]
    ) -> list[RecipeIngredient]:
        """Replace a recipe's ingredient list.

        Duplicate ingredient ids collapse to the last quantity given so that a
        recipe never holds two rows for the same ingredient.
        """
        rows: dict[str, RecipeIngredient] = {}
        for entry in ingredients:
            ingredient_id = str(entry.get("ingredient_id") or "")
            if not ingredient_id:
                raise ValidationError("Each recipe ingredient needs an ingredient_id")
            if self.repository.get_ingredient(ingredient_id) is None:
                raise NotFoundError(
                    "Ingredient not found", {"ingredient_id": ingredient_id}
                )
            quantity = _to_quantity(entry.get("quantity"))
            rows[ingredient_id] = RecipeIngredient(
                recipe_id=recipe_id, ingredient_id=ingredient_id, quantity=quantity
            )
        self.repository.replace_recipe_ingredients(recipe_id, list(rows.values()))
        return list(rows.values())

    def list_ingredients(self) -> list[Ingredient]:
        return self.repository.list_ingredients()

    def get_ingredient(self, ingredient_id: str) -> Ingredient:
        ingredient = self.repository.get_ingredient(ingredient_id)
        if ingredient is None:
            raise NotFoundError("Ingredient not found")
        return ingredient

    def create_ingredient(self, payload: dict[str, object]) -> Ingredient:
        return self.repository.create_ingredient(payload)

    def update_ingredient(
        self, ingredient_id: str, payload: dict[str, object]
    ) -> Ingredient:
        ingredient = self.repository.update_ingredient(ingredient_id, payload)
        if ingredient is None:
            raise NotFoundError("Ingredient not found")
        return ingredient

    def delete_ingredient(self, ingredient_id: str) -> None:
        """Delete an ingredient unless a recipe still uses it."""
        self.get_ingredient(ingredient_id)
        used_by = {
            row.recipe_id
            for row in self.repository.list_recipe_ingredients()
            if row.ingredient_id == ingredient_id
        }
        if used_by:
            raise ConflictError(
                "Ingredient is used by one or more recipes",
                {"recipeIds": sorted(used_by)},
            )
        self.repository.delete_ingredient(ingredient_id)

    def _cached_recipes(self) -> dict[str, Recipe]:
        if self._recipes is None:
            return self.refresh()[0]
        return self._recipes


def _to_quantity(value: object) -> float:
    if isinstance(value, bool):
        raise ValidationError("Quantity must be a number")
    if isinstance(value, int | float):
        quantity = float(value)
    elif isinstance(value, str):
        try:
            quantity = float(value)
        except ValueError as exc:
            raise ValidationError("Quantity must be a number") from exc
    else:
        raise ValidationError("Quantity must be a number")
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative")
    return quantity
