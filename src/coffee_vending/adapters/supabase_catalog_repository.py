"""Supabase implementation of the ingredient and recipe catalog."""

from dataclasses import dataclass

from supabase import Client

from coffee_vending.domain.catalog import Ingredient, Recipe, RecipeIngredient
from coffee_vending.services.catalog import CatalogRepository
from coffee_vending.services.payloads import (
    parse_ingredient,
    parse_recipe,
    parse_recipe_ingredient,
    serialize_recipe_ingredient,
)


@dataclass
class SupabaseCatalogRepository(CatalogRepository):
    """Supabase-backed catalog repository."""

    client: Client

    def list_ingredients(self) -> list[Ingredient]:
        response = self.client.table("ingredients").select("*").order("name").execute()
        return [parse_ingredient(row) for row in response.data or []]

    def get_ingredient(self, ingredient_id: str) -> Ingredient | None:
        response = (
            self.client.table("ingredients")
            .select("*")
            .eq("id", ingredient_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_ingredient(response.data[0])

    def create_ingredient(self, payload: dict[str, object]) -> Ingredient:
        response = self.client.table("ingredients").insert(payload).execute()
        if not response.data:
            raise RuntimeError("Failed to create ingredient")
        return parse_ingredient(response.data[0])

    def update_ingredient(
        self, ingredient_id: str, payload: dict[str, object]
    ) -> Ingredient | None:
        response = (
            self.client.table("ingredients")
            .update(payload)
            .eq("id", ingredient_id)
            .execute()
        )
        if not response.data:
            return None
        return parse_ingredient(response.data[0])

    def delete_ingredient(self, ingredient_id: str) -> None:
        self.client.table("ingredients").delete().eq("id", ingredient_id).execute()

    def list_recipes(self, category_id: str | None = None) -> list[Recipe]:
        """Return recipes, optionally limited to one category."""
        query = self.client.table("recipes").select("*")
        if category_id:
            query = query.eq("category_id", category_id)
        response = query.order("created_at").execute()
        return [parse_recipe(row) for row in response.data or []]

    def get_recipe(self, recipe_id: str) -> Recipe | None:
        response = (
            self.client.table("recipes")
            .select("*")
            .eq("id", recipe_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_recipe(response.data[0])

    def create_recipe(self, payload: dict[str, object]) -> Recipe:
        response = self.client.table("recipes").insert(payload).execute()
        if not response.data:
            raise RuntimeError("Failed to create recipe")
        return parse_recipe(response.data[0])

    def update_recipe(
        self, recipe_id: str, payload: dict[str, object]
    ) -> Recipe | None:
        response = (
            self.client.table("recipes").update(payload).eq("id", recipe_id).execute()
        )
        if not response.data:
            return None
        return parse_recipe(response.data[0])

    def delete_recipe(self, recipe_id: str) -> None:
        """Delete a recipe together with its ingredient rows."""
        self.client.table("recipe_ingredients").delete().eq(
            "recipe_id", recipe_id
        ).execute()
        self.client.table("recipes").delete().eq("id", recipe_id).execute()

    def list_recipe_ingredients(
        self, recipe_id: str | None = None
    ) -> list[RecipeIngredient]:
        query = self.client.table("recipe_ingredients").select(
            "recipe_id, ingredient_id, quantity"
        )
        if recipe_id:
            query = query.eq("recipe_id", recipe_id)
        response = query.execute()
        return [parse_recipe_ingredient(row) for row in response.data or []]

    def replace_recipe_ingredients(
        self, recipe_id: str, rows: list[RecipeIngredient]
    ) -> None:
        """Swap a recipe's ingredient rows for a new list."""
        self.client.table("recipe_ingredients").delete().eq(
            "recipe_id", recipe_id
        ).execute()
        if rows:
            self.client.table("recipe_ingredients").insert(
                [serialize_recipe_ingredient(row) for row in rows]
            ).execute()
