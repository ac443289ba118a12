"""Tests for the recipe-ingredient index."""

from coffee_vending.domain.catalog import IngredientRequirement, RecipeIngredient
from coffee_vending.services.recipe_index import RecipeIngredientIndex


def _index() -> RecipeIngredientIndex:
    return RecipeIngredientIndex.build(
        [
            RecipeIngredient("latte", "coffee", 30),
            RecipeIngredient("latte", "milk", 90),
            RecipeIngredient("espresso", "coffee", 30),
        ]
    )


def test_build_maps_both_directions() -> None:
    index = _index()

    assert index.requirements_for("latte") == [
        IngredientRequirement("coffee", 30),
        IngredientRequirement("milk", 90),
    ]
    assert index.recipes_using("coffee") == ["latte", "espresso"]
    assert index.recipes_using("sugar") == []


def test_upsert_replaces_quantity_without_duplicates() -> None:
    index = _index()

    index.upsert(RecipeIngredient("latte", "milk", 120))

    assert index.get("latte", "milk") == IngredientRequirement("milk", 120)
    assert index.recipes_using("milk") == ["latte"]
    assert len(index.requirements_for("latte")) == 2


def test_remove_drops_empty_keys() -> None:
    index = _index()

    index.remove("latte", "milk")

    assert not index.is_ingredient_used("milk")
    assert "milk" not in index.recipes_by_ingredient

    index.remove("espresso", "coffee")

    assert "espresso" not in index.ingredients_by_recipe
    assert index.recipes_using("coffee") == ["latte"]


def test_remove_recipe_clears_reverse_entries() -> None:
    index = _index()

    index.remove_recipe("latte")

    assert index.requirements_for("latte") == []
    assert not index.is_ingredient_used("milk")
    assert index.recipes_using("coffee") == ["espresso"]


def test_recipes_using_returns_copy() -> None:
    index = _index()

    index.recipes_using("coffee").append("mocha")

    assert index.recipes_using("coffee") == ["latte", "espresso"]


def test_replace_recipe_swaps_ingredient_list() -> None:
    index = _index()

    index.replace_recipe(
        "latte",
        [RecipeIngredient("latte", "oat-milk", 90), RecipeIngredient("mocha", "x", 1)],
    )

    assert index.requirements_for("latte") == [IngredientRequirement("oat-milk", 90)]
    assert not index.is_ingredient_used("milk")
    assert not index.is_ingredient_used("x")
