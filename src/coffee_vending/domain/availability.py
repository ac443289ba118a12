"""Availability snapshot models."""

from dataclasses import dataclass, field


@dataclass
class AvailabilitySnapshot:
    """Partition of every recipe into available and unavailable for a machine.

    The partitions are insertion-ordered dicts used as ordered sets, which
    gives constant-time membership, insertion and removal while keeping a
    stable rendering order.
    """

    machine_id: str
    available: dict[str, None] = field(default_factory=dict)
    unavailable: dict[str, None] = field(default_factory=dict)
    missing_by_recipe: dict[str, list[str]] = field(default_factory=dict)
    stale: bool = False

    @property
    def available_ids(self) -> list[str]:
        return list(self.available)

    @property
    def unavailable_ids(self) -> list[str]:
        return list(self.unavailable)

    def is_available(self, recipe_id: str) -> bool:
        """Return True when the recipe can be prepared right now."""
        return recipe_id in self.available

    def missing_for(self, recipe_id: str) -> list[str]:
        """Return the ingredient ids that block a recipe."""
        return list(self.missing_by_recipe.get(recipe_id, []))

    def to_payload(self) -> dict[str, object]:
        """Serialize into the `recipe-availability-update` shape."""
        return {
            "machine_id": self.machine_id,
            "availableRecipes": self.available_ids,
            "unavailableRecipes": self.unavailable_ids,
            "missingIngredientsByRecipe": {
                recipe_id: list(missing)
                for recipe_id, missing in self.missing_by_recipe.items()
            },
            "stale": self.stale,
        }


@dataclass(frozen=True)
class AvailabilityChange:
    """Recipes whose status moved during an incremental update."""

    machine_id: str
    available: list[str]
    unavailable: list[str]
    missing_by_recipe: dict[str, list[str]]
    full_snapshot: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.available and not self.unavailable

    def to_payload(self) -> dict[str, object]:
        """Serialize as a delta `recipe-availability-update`."""
        return {
            "machine_id": self.machine_id,
            "delta": True,
            "available": list(self.available),
            "unavailable": list(self.unavailable),
            "missingIngredientsByRecipe": {
                recipe_id: list(missing)
                for recipe_id, missing in self.missing_by_recipe.items()
            },
        }
