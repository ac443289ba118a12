"""Recipe and ingredient catalog endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request

from coffee_vending.api.schemas import (
    IngredientPayload,
    IngredientUpdatePayload,
    RecipeIngredientsPayload,
    RecipePayload,
    RecipeUpdatePayload,
)
from coffee_vending.services.payloads import (
    serialize_ingredient,
    serialize_recipe,
    serialize_recipe_ingredient,
)

if TYPE_CHECKING:
    from coffee_vending.containers import AppContainer

router = APIRouter(prefix="/api", tags=["catalog"])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.get("/recipes")
async def list_recipes(
    request: Request, category_id: str | None = None
) -> dict[str, object]:
    container = _container(request)
    recipes = container.catalog_service.list_recipes(category_id)
    return {"success": True, "data": [serialize_recipe(recipe) for recipe in recipes]}


@router.get("/recipes/{recipe_id}")
async def get_recipe(recipe_id: str, request: Request) -> dict[str, object]:
    recipe = _container(request).catalog_service.get_recipe(recipe_id)
    return {"success": True, "data": serialize_recipe(recipe)}


@router.post("/recipes", status_code=201)
async def create_recipe(payload: RecipePayload, request: Request) -> dict[str, object]:
    """Create a recipe and broadcast the new catalog."""
    container = _container(request)
    fields = payload.model_dump(exclude={"ingredients"})
    ingredients = [entry.model_dump() for entry in payload.ingredients or []]
    recipe = container.catalog_service.create_recipe(fields, ingredients)
    await container.pipeline.catalog_changed()
    return {"success": True, "data": serialize_recipe(recipe)}


@router.put("/recipes/{recipe_id}")
async def update_recipe(
    recipe_id: str, payload: RecipeUpdatePayload, request: Request
) -> dict[str, object]:
    container = _container(request)
    recipe = container.catalog_service.update_recipe(
        recipe_id, payload.model_dump(exclude_unset=True)
    )
    await container.pipeline.catalog_changed()
    return {"success": True, "data": serialize_recipe(recipe)}


@router.delete("/recipes/{recipe_id}")
async def delete_recipe(recipe_id: str, request: Request) -> dict[str, object]:
    container = _container(request)
    container.catalog_service.delete_recipe(recipe_id)
    await container.pipeline.catalog_changed()
    return {"success": True}


@router.put("/recipes/{recipe_id}/ingredients")
async def set_recipe_ingredients(
    recipe_id: str, payload: RecipeIngredientsPayload, request: Request
) -> dict[str, object]:
    """Replace a recipe's ingredient list."""
    container = _container(request)
    container.catalog_service.get_recipe(recipe_id)
    rows = container.catalog_service.set_recipe_ingredients(
        recipe_id, [entry.model_dump() for entry in payload.ingredients]
    )
    await container.pipeline.catalog_changed()
    return {"success": True, "data": [serialize_recipe_ingredient(row) for row in rows]}


@router.get("/recipe-ingredients")
async def list_recipe_ingredients(
    request: Request, recipe_id: str | None = None
) -> dict[str, object]:
    rows = _container(request).catalog_service.list_recipe_ingredients(recipe_id)
    return {"success": True, "data": [serialize_recipe_ingredient(row) for row in rows]}


@router.get("/ingredients")
async def list_ingredients(request: Request) -> dict[str, object]:
    ingredients = _container(request).catalog_service.list_ingredients()
    return {
        "success": True,
        "data": [serialize_ingredient(ingredient) for ingredient in ingredients],
    }


@router.post("/ingredients", status_code=201)
async def create_ingredient(
    payload: IngredientPayload, request: Request
) -> dict[str, object]:
    ingredient = _container(request).catalog_service.create_ingredient(
        payload.model_dump()
    )
    return {"success": True, "data": serialize_ingredient(ingredient)}


@router.put("/ingredients/{ingredient_id}")
async def update_ingredient(
    ingredient_id: str, payload: IngredientUpdatePayload, request: Request
) -> dict[str, object]:
    ingredient = _container(request).catalog_service.update_ingredient(
        ingredient_id, payload.model_dump(exclude_unset=True)
    )
    return {"success": True, "data": serialize_ingredient(ingredient)}


@router.delete("/ingredients/{ingredient_id}")
async def delete_ingredient(ingredient_id: str, request: Request) -> dict[str, object]:
    """Delete an ingredient; rejected while a recipe still uses it."""
    _container(request).catalog_service.delete_ingredient(ingredient_id)
    return {"success": True}
