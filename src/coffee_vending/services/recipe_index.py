"""Bidirectional recipe <-> ingredient index."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from coffee_vending.domain.catalog import IngredientRequirement, RecipeIngredient


@dataclass
class RecipeIngredientIndex:
    """Maps recipes to their requirements and ingredients to the recipes using them.

    Both maps are updated together by every mutation. Keys whose list
    becomes empty are removed, so membership in `recipes_by_ingredient`
    always means "this ingredient affects at least one recipe".
    """

    ingredients_by_recipe: dict[str, list[IngredientRequirement]] = field(
        default_factory=dict
    )
    recipes_by_ingredient: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def build(cls, rows: Iterable[RecipeIngredient]) -> "RecipeIngredientIndex":
        """Build both maps in a single pass over the rows."""
        index = cls()
        for row in rows:
            index.upsert(row)
        return index

    def requirements_for(self, recipe_id: str) -> list[IngredientRequirement]:
        """Return the ingredient requirements of a recipe."""
        return self.ingredients_by_recipe.get(recipe_id, [])

    def recipes_using(self, ingredient_id: str) -> list[str]:
        """Return ids of recipes that require an ingredient."""
        return list(self.recipes_by_ingredient.get(ingredient_id, []))

    def is_ingredient_used(self, ingredient_id: str) -> bool:
        return ingredient_id in self.recipes_by_ingredient

    def get(self, recipe_id: str, ingredient_id: str) -> IngredientRequirement | None:
        """Return one recipe-ingredient association, if present."""
        for requirement in self.ingredients_by_recipe.get(recipe_id, []):
            if requirement.ingredient_id == ingredient_id:
                return requirement
        return None

    def upsert(self, row: RecipeIngredient) -> None:
        """Add an association or replace the quantity of an existing one."""
        requirement = IngredientRequirement(
            ingredient_id=row.ingredient_id, quantity=row.quantity
        )
        requirements = self.ingredients_by_recipe.setdefault(row.recipe_id, [])
        for position, existing in enumerate(requirements):
            if existing.ingredient_id == row.ingredient_id:
                requirements[position] = requirement
                break
        else:
            requirements.append(requirement)

        recipe_ids = self.recipes_by_ingredient.setdefault(row.ingredient_id, [])
        if row.recipe_id not in recipe_ids:
            recipe_ids.append(row.recipe_id)

    def remove(self, recipe_id: str, ingredient_id: str) -> None:
        """Remove one association from both maps."""
        requirements = self.ingredients_by_recipe.get(recipe_id)
        if requirements is not None:
            requirements[:] = [
                item for item in requirements if item.ingredient_id != ingredient_id
            ]
            if not requirements:
                del self.ingredients_by_recipe[recipe_id]

        recipe_ids = self.recipes_by_ingredient.get(ingredient_id)
        if recipe_ids is not None:
            if recipe_id in recipe_ids:
                recipe_ids.remove(recipe_id)
            if not recipe_ids:
                del self.recipes_by_ingredient[ingredient_id]

    def remove_recipe(self, recipe_id: str) -> None:
        """Drop every association of a recipe."""
        for requirement in list(self.ingredients_by_recipe.get(recipe_id, [])):
            self.remove(recipe_id, requirement.ingredient_id)

    def replace_recipe(self, recipe_id: str, rows: Iterable[RecipeIngredient]) -> None:
        """Replace a recipe's ingredient list."""
        self.remove_recipe(recipe_id)
        for row in rows:
            if row.recipe_id == recipe_id:
                self.upsert(row)

    def rows(self) -> list[RecipeIngredient]:
        """Return the index content as flat rows."""
        return [
            RecipeIngredient(
                recipe_id=recipe_id,
                ingredient_id=requirement.ingredient_id,
                quantity=requirement.quantity,
            )
            for recipe_id, requirements in self.ingredients_by_recipe.items()
            for requirement in requirements
        ]
