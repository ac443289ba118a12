"""Recipe availability engine.

Availability is derived data: a recipe is available on a machine when every
ingredient it requires is on hand in at least the required quantity. A
missing inventory row counts as zero stock, a zero requirement never blocks,
and a recipe without ingredients is always available.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Protocol

from coffee_vending.domain.availability import AvailabilityChange, AvailabilitySnapshot
from coffee_vending.domain.catalog import IngredientRequirement
from coffee_vending.services.recipe_index import RecipeIngredientIndex

_logger = logging.getLogger(__name__)


class CatalogSource(Protocol):
    """Read access to the recipe catalog used for availability."""

    def recipe_ids(self) -> list[str]:
        """Return ids of every recipe in catalog order."""

    def has_recipe(self, recipe_id: str) -> bool:
        """Return True when the recipe exists in the catalog."""

    def recipe_index(self) -> RecipeIngredientIndex:
        """Return the recipe-ingredient index."""


class InventorySource(Protocol):
    """Read access to per-machine stock levels."""

    def quantities_for(self, machine_id: str) -> Mapping[str, float]:
        """Return ingredient id -> quantity on hand for a machine."""


def find_missing_ingredients(
    requirements: Iterable[IngredientRequirement], quantities: Mapping[str, float]
) -> list[str]:
    """Return ids of required ingredients that are short on a machine."""
    missing: list[str] = []
    for requirement in requirements:
        if requirement.quantity <= 0:
            continue
        if quantities.get(requirement.ingredient_id, 0.0) < requirement.quantity:
            missing.append(requirement.ingredient_id)
    return missing


def build_snapshot(
    machine_id: str,
    recipe_ids: Iterable[str],
    index: RecipeIngredientIndex,
    quantities: Mapping[str, float],
) -> AvailabilitySnapshot:
    """Classify every recipe from scratch."""
    snapshot = AvailabilitySnapshot(machine_id=machine_id)
    for recipe_id in recipe_ids:
        requirements = index.requirements_for(recipe_id)
        missing = find_missing_ingredients(requirements, quantities)
        if missing:
            snapshot.unavailable[recipe_id] = None
            snapshot.missing_by_recipe[recipe_id] = missing
        else:
            snapshot.available[recipe_id] = None
    return snapshot


def apply_recipe_status(
    snapshot: AvailabilitySnapshot, recipe_id: str, missing: list[str] | None
) -> bool:
    """Move one recipe into the right partition.

    `missing=None` removes the recipe from the snapshot altogether. Returns
    True when the recipe changed partition or its missing list changed.
    """
    was_available = snapshot.available.pop(recipe_id, False) is None
    was_unavailable = snapshot.unavailable.pop(recipe_id, False) is None
    previous_missing = snapshot.missing_by_recipe.pop(recipe_id, None)

    if missing is None:
        return was_available or was_unavailable
    if missing:
        snapshot.unavailable[recipe_id] = None
        snapshot.missing_by_recipe[recipe_id] = list(missing)
        return not was_unavailable or previous_missing != missing
    snapshot.available[recipe_id] = None
    return not was_available


@dataclass
class AvailabilityEngine:
    """Keeps one availability snapshot per machine.

    The engine never locks; it reads the catalog and inventory sources at
    call time and replaces or splices the cached snapshot.
    """

    catalog: CatalogSource
    inventory: InventorySource
    snapshots: dict[str, AvailabilitySnapshot] = field(default_factory=dict)

    def compute_availability(self, machine_id: str) -> AvailabilitySnapshot:
        """Recompute every recipe for a machine and replace its snapshot."""
        quantities = self.inventory.quantities_for(machine_id)
        snapshot = build_snapshot(
            machine_id,
            self.catalog.recipe_ids(),
            self.catalog.recipe_index(),
            quantities,
        )
        self.snapshots[machine_id] = snapshot
        _logger.debug(
            "Availability computed: machine=%s available=%s unavailable=%s",
            machine_id,
            len(snapshot.available),
            len(snapshot.unavailable),
        )
        return snapshot

    def snapshot_for(self, machine_id: str) -> AvailabilitySnapshot:
        """Return the current snapshot, recomputing it when absent or stale."""
        snapshot = self.snapshots.get(machine_id)
        if snapshot is None or snapshot.stale:
            return self.compute_availability(machine_id)
        return snapshot

    def update_recipe_availability(
        self,
        recipe_id: str,
        machine_id: str,
        quantities: Mapping[str, float] | None = None,
    ) -> AvailabilityChange:
        """Re-evaluate a single recipe and splice it into the snapshot."""
        snapshot = self.snapshots.get(machine_id)
        if snapshot is None:
            snapshot = AvailabilitySnapshot(machine_id=machine_id)
            self.snapshots[machine_id] = snapshot
        if quantities is None:
            quantities = self.inventory.quantities_for(machine_id)
        missing: list[str] | None = None
        if self.catalog.has_recipe(recipe_id):
            missing = find_missing_ingredients(
                self.catalog.recipe_index().requirements_for(recipe_id), quantities
            )
        changed = apply_recipe_status(snapshot, recipe_id, missing)
        return _change_for(machine_id, [recipe_id] if changed else [], snapshot)

    def update_availability_for_ingredient(
        self, ingredient_id: str, machine_id: str
    ) -> AvailabilityChange:
        """Re-evaluate only the recipes that use one ingredient.

        Without a fresh snapshot to splice into, this falls back to a full
        recompute and returns a change flagged `full_snapshot`.
        """
        if machine_id not in self.snapshots or self.snapshots[machine_id].stale:
            snapshot = self.compute_availability(machine_id)
            change = _change_for(
                machine_id,
                snapshot.available_ids + snapshot.unavailable_ids,
                snapshot,
            )
            return replace(change, full_snapshot=True)
        quantities = self.inventory.quantities_for(machine_id)
        changed: list[str] = []
        for recipe_id in self.catalog.recipe_index().recipes_using(ingredient_id):
            change = self.update_recipe_availability(recipe_id, machine_id, quantities)
            if not change.is_empty:
                changed.append(recipe_id)
        return _change_for(machine_id, changed, self.snapshots[machine_id])

    def mark_all_stale(self) -> None:
        """Flag every cached snapshot for recomputation on next use."""
        for snapshot in self.snapshots.values():
            snapshot.stale = True

    def forget(self, machine_id: str) -> None:
        self.snapshots.pop(machine_id, None)


def _change_for(
    machine_id: str, recipe_ids: list[str], snapshot: AvailabilitySnapshot
) -> AvailabilityChange:
    available = [rid for rid in recipe_ids if rid in snapshot.available]
    unavailable = [rid for rid in recipe_ids if rid in snapshot.unavailable]
    return AvailabilityChange(
        machine_id=machine_id,
        available=available,
        unavailable=unavailable,
        missing_by_recipe={
            rid: list(snapshot.missing_by_recipe[rid]) for rid in unavailable
        },
    )
