"""Room-scoped realtime publishing.

Every machine has a room named `machine-<id>`. Catalog updates go to every
connection; status, temperature, inventory and availability updates go to
the machine's room only. There is no durable queue: a client that drops off
misses deltas and must send `request-data` after rejoining.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from coffee_vending.domain.availability import AvailabilityChange, AvailabilitySnapshot
from coffee_vending.domain.catalog import Recipe, RecipeIngredient
from coffee_vending.domain.machines import InventoryItem, Machine
from coffee_vending.services.payloads import (
    serialize_inventory_item,
    serialize_recipe,
    serialize_recipe_ingredient,
)

RECIPE_UPDATE = "recipe-update"
RECIPE_INGREDIENT_UPDATE = "recipe-ingredient-update"
MACHINE_STATUS_UPDATE = "machine-status-update"
MACHINE_TEMPERATURE_UPDATE = "machine-temperature-update"
MACHINE_INVENTORY_UPDATE = "machine-inventory-update"
RECIPE_AVAILABILITY_UPDATE = "recipe-availability-update"
ERROR = "error"

JOIN_MACHINE = "join-machine"
LEAVE_MACHINE = "leave-machine"
REQUEST_DATA = "request-data"

_logger = logging.getLogger(__name__)


def machine_room(machine_id: str) -> str:
    """Return the room name for a machine."""
    return f"machine-{machine_id}"


class Transport(Protocol):
    """Publish/subscribe transport with rooms."""

    async def emit_to_room(self, room: str, event: str, data: object) -> None:
        """Send an event to every connection in a room."""

    async def emit_to(self, connection_id: str, event: str, data: object) -> None:
        """Send an event to one connection."""

    async def broadcast(self, event: str, data: object) -> None:
        """Send an event to every connection."""

    async def join_room(self, connection_id: str, room: str) -> None:
        """Add a connection to a room."""

    async def leave_room(self, connection_id: str, room: str) -> None:
        """Remove a connection from a room."""


@dataclass
class TemperatureThrottle:
    """Coalesces temperature readings to one emission per machine per window."""

    transport: Transport
    window_seconds: float = 2.0
    pending: dict[str, dict[str, object]] = field(default_factory=dict)
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    def submit(self, machine_id: str, temperature_c: float | None) -> None:
        """Record the latest reading; older pending readings are dropped."""
        self.pending[machine_id] = {
            "machine_id": machine_id,
            "temperature_c": temperature_c,
        }

    async def flush(self) -> int:
        """Emit the latest pending reading for every machine."""
        batch, self.pending = self.pending, {}
        for machine_id, payload in batch.items():
            await self.transport.emit_to_room(
                machine_room(machine_id), MACHINE_TEMPERATURE_UPDATE, payload
            )
        return len(batch)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        await self.flush()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.window_seconds)
            try:
                await self.flush()
            except Exception:
                _logger.exception("Failed to flush temperature updates")


@dataclass
class RealtimePublisher:
    """Typed emitters for every realtime topic."""

    transport: Transport
    temperature_throttle: TemperatureThrottle
    clock: Callable[[], float] = time.time

    async def publish_recipe_catalog(self, recipes: list[Recipe]) -> None:
        await self.transport.broadcast(
            RECIPE_UPDATE, [serialize_recipe(recipe) for recipe in recipes]
        )

    async def publish_recipe_ingredients(self, rows: list[RecipeIngredient]) -> None:
        await self.transport.broadcast(
            RECIPE_INGREDIENT_UPDATE, [serialize_recipe_ingredient(row) for row in rows]
        )

    async def publish_machine_status(self, machine: Machine) -> None:
        """Send a full status replacement to the machine's room."""
        await self.transport.emit_to_room(
            machine_room(machine.id),
            MACHINE_STATUS_UPDATE,
            status_payload(machine),
        )

    async def publish_machine_status_delta(
        self, machine_id: str, changed: dict[str, object]
    ) -> None:
        """Send only the changed status fields."""
        await self.transport.emit_to_room(
            machine_room(machine_id),
            MACHINE_STATUS_UPDATE,
            {
                "machine_id": machine_id,
                "delta": dict(changed),
                "timestamp": int(self.clock() * 1000),
            },
        )

    def queue_temperature(self, machine: Machine) -> None:
        """Hand a temperature reading to the throttle."""
        self.temperature_throttle.submit(machine.id, machine.temperature_c)

    async def publish_inventory(
        self, machine_id: str, inventory: list[InventoryItem]
    ) -> None:
        await self.transport.emit_to_room(
            machine_room(machine_id),
            MACHINE_INVENTORY_UPDATE,
            {
                "machine_id": machine_id,
                "inventory": [serialize_inventory_item(item) for item in inventory],
            },
        )

    async def publish_availability(self, snapshot: AvailabilitySnapshot) -> None:
        await self.transport.emit_to_room(
            machine_room(snapshot.machine_id),
            RECIPE_AVAILABILITY_UPDATE,
            snapshot.to_payload(),
        )

    async def publish_availability_change(self, change: AvailabilityChange) -> None:
        if change.is_empty:
            return
        await self.transport.emit_to_room(
            machine_room(change.machine_id),
            RECIPE_AVAILABILITY_UPDATE,
            change.to_payload(),
        )


def status_payload(machine: Machine) -> dict[str, object]:
    return {
        "machine_id": machine.id,
        "status": machine.status,
        "location": machine.location,
    }
