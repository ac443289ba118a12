"""Inventory-to-availability change propagation.

Every path that can change what a machine is able to prepare ends here:
completed orders, manual inventory edits, catalog edits and row changes
reported by the active change feed. The pipeline picks the right
availability recompute for each and publishes the result.
"""

import logging
from dataclasses import dataclass, field

from coffee_vending.domain.availability import AvailabilityChange, AvailabilitySnapshot
from coffee_vending.domain.machines import InventoryItem, InventoryWarning, Machine
from coffee_vending.services.availability import AvailabilityEngine
from coffee_vending.services.catalog import CatalogService
from coffee_vending.services.change_feed import (
    DELETE,
    INVENTORY_TABLE,
    MACHINES_TABLE,
    RECIPE_INGREDIENTS_TABLE,
    RECIPES_TABLE,
    ChangeEvent,
)
from coffee_vending.services.inventory import InventoryService
from coffee_vending.services.machines import MachineService
from coffee_vending.services.payloads import parse_machine
from coffee_vending.services.realtime import RealtimePublisher

_logger = logging.getLogger(__name__)


@dataclass
class ChangePropagationPipeline:
    """Routes inventory-affecting events to the availability engine."""

    catalog: CatalogService
    inventory: InventoryService
    machines: MachineService
    engine: AvailabilityEngine
    publisher: RealtimePublisher
    known_machines: dict[str, Machine] = field(default_factory=dict)

    async def order_completed(self, machine_id: str) -> AvailabilitySnapshot:
        """Recompute a machine from scratch after an order touched its stock."""
        snapshot = self.engine.compute_availability(machine_id)
        await self.publisher.publish_availability(snapshot)
        await self.publish_inventory(machine_id)
        return snapshot

    async def set_inventory(
        self,
        machine_id: str,
        ingredient_id: str,
        quantity: float,
        max_capacity: float | None = None,
    ) -> tuple[InventoryItem, InventoryWarning | None]:
        """Apply a manual stock edit and propagate it."""
        self.machines.get_machine(machine_id)
        self.catalog.get_ingredient(ingredient_id)
        item, warning = self.inventory.set_quantity(
            machine_id, ingredient_id, quantity, max_capacity
        )
        await self.inventory_changed(machine_id, ingredient_id)
        return item, warning

    async def inventory_changed(
        self, machine_id: str, ingredient_id: str
    ) -> AvailabilityChange:
        """Re-evaluate the recipes that use one ingredient and publish them."""
        change = self.engine.update_availability_for_ingredient(
            ingredient_id, machine_id
        )
        if change.full_snapshot:
            await self.publisher.publish_availability(self.engine.snapshots[machine_id])
        else:
            await self.publisher.publish_availability_change(change)
        await self.publish_inventory(machine_id)
        return change

    async def catalog_changed(self) -> None:
        """Reload the catalog, broadcast it and mark every snapshot stale."""
        self.catalog.refresh()
        self.engine.mark_all_stale()
        await self.publisher.publish_recipe_catalog(self.catalog.recipes())
        await self.publisher.publish_recipe_ingredients(
            self.catalog.recipe_ingredients()
        )

    async def machine_changed(self, before: Machine | None, after: Machine) -> None:
        await self.machines.publish_changes(before, after)
        self.known_machines[after.id] = after

    async def update_machine(
        self, machine_id: str, fields: dict[str, object]
    ) -> Machine:
        machine = await self.machines.update_machine(machine_id, fields)
        self.known_machines[machine.id] = machine
        return machine

    async def publish_inventory(self, machine_id: str) -> None:
        await self.publisher.publish_inventory(
            machine_id, self.inventory.list_inventory(machine_id)
        )

    async def handle_change(self, event: ChangeEvent) -> None:
        """Feed one change-feed event into the matching path."""
        if event.table == INVENTORY_TABLE:
            await self._handle_inventory_event(event)
        elif event.table in (RECIPES_TABLE, RECIPE_INGREDIENTS_TABLE):
            await self.catalog_changed()
        elif event.table == MACHINES_TABLE:
            await self._handle_machine_event(event)
        else:
            _logger.debug("Ignoring change on table %s", event.table)

    async def _handle_inventory_event(self, event: ChangeEvent) -> None:
        row = event.record if event.operation != DELETE else event.old_record or {}
        machine_id = row.get("machine_id")
        ingredient_id = row.get("ingredient_id")
        if not machine_id or not ingredient_id:
            # Deletes may only carry the primary key.
            _logger.warning(
                "Inventory change without machine or ingredient id",
                extra={"operation": event.operation},
            )
            self.engine.mark_all_stale()
            return
        await self.inventory_changed(str(machine_id), str(ingredient_id))

    async def _handle_machine_event(self, event: ChangeEvent) -> None:
        if event.operation == DELETE:
            machine_id = str((event.old_record or event.record).get("id", ""))
            self.known_machines.pop(machine_id, None)
            self.engine.forget(machine_id)
            return
        after = parse_machine(event.record)
        before = self.known_machines.get(after.id)
        if before is None and event.old_record and "status" in event.old_record:
            before = parse_machine(event.old_record)
        await self.machine_changed(before, after)
