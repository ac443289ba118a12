"""Per-connection handling of client room messages."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from coffee_vending.domain.errors import VendingError
from coffee_vending.services.availability import AvailabilityEngine
from coffee_vending.services.catalog import CatalogService
from coffee_vending.services.inventory import InventoryService
from coffee_vending.services.machines import MachineService
from coffee_vending.services.payloads import (
    serialize_inventory_item,
    serialize_recipe,
    serialize_recipe_ingredient,
)
from coffee_vending.services.realtime import (
    ERROR,
    JOIN_MACHINE,
    LEAVE_MACHINE,
    MACHINE_INVENTORY_UPDATE,
    MACHINE_STATUS_UPDATE,
    MACHINE_TEMPERATURE_UPDATE,
    RECIPE_AVAILABILITY_UPDATE,
    RECIPE_INGREDIENT_UPDATE,
    RECIPE_UPDATE,
    REQUEST_DATA,
    Transport,
    machine_room,
    status_payload,
)

_logger = logging.getLogger(__name__)


@dataclass
class MachineRoomHandler:
    """Handles join, leave and request-data messages from one connection."""

    transport: Transport
    catalog: CatalogService
    inventory: InventoryService
    machines: MachineService
    engine: AvailabilityEngine

    async def handle_message(
        self, connection_id: str, message: Mapping[str, object]
    ) -> None:
        event = message.get("event")
        machine_id = _machine_id(message.get("data"))
        if event not in (JOIN_MACHINE, LEAVE_MACHINE, REQUEST_DATA):
            await self.transport.emit_to(
                connection_id, ERROR, {"message": f"Unknown event: {event}"}
            )
            return
        if not machine_id:
            await self.transport.emit_to(
                connection_id, ERROR, {"message": "machine_id is required"}
            )
            return

        if event == JOIN_MACHINE:
            await self.transport.join_room(connection_id, machine_room(machine_id))
            _logger.info(
                "Connection joined machine room",
                extra={"connection_id": connection_id, "machine_id": machine_id},
            )
        elif event == LEAVE_MACHINE:
            await self.transport.leave_room(connection_id, machine_room(machine_id))
        else:
            await self.send_snapshot(connection_id, machine_id)

    async def send_snapshot(self, connection_id: str, machine_id: str) -> None:
        """Send every topic's current state to one connection only."""
        try:
            machine = self.machines.get_machine(machine_id)
        except VendingError as exc:
            await self.transport.emit_to(connection_id, ERROR, exc.to_dict())
            return
        emit = self.transport.emit_to
        await emit(
            connection_id,
            RECIPE_UPDATE,
            [serialize_recipe(recipe) for recipe in self.catalog.recipes()],
        )
        await emit(
            connection_id,
            RECIPE_INGREDIENT_UPDATE,
            [
                serialize_recipe_ingredient(row)
                for row in self.catalog.recipe_ingredients()
            ],
        )
        await emit(connection_id, MACHINE_STATUS_UPDATE, status_payload(machine))
        await emit(
            connection_id,
            MACHINE_TEMPERATURE_UPDATE,
            {"machine_id": machine.id, "temperature_c": machine.temperature_c},
        )
        await emit(
            connection_id,
            MACHINE_INVENTORY_UPDATE,
            {
                "machine_id": machine.id,
                "inventory": [
                    serialize_inventory_item(item)
                    for item in self.inventory.list_inventory(machine.id)
                ],
            },
        )
        snapshot = self.engine.snapshot_for(machine.id)
        await emit(connection_id, RECIPE_AVAILABILITY_UPDATE, snapshot.to_payload())


def _machine_id(data: object) -> str:
    if isinstance(data, Mapping):
        data = data.get("machine_id")
    if data is None:
        return ""
    return str(data)
