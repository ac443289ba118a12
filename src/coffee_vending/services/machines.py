"""Machine status service."""

from dataclasses import dataclass
from typing import Protocol

from coffee_vending.domain.errors import NotFoundError
from coffee_vending.domain.machines import Machine
from coffee_vending.services.realtime import RealtimePublisher

ACTIVE = "active"

_STATUS_FIELDS = ("status", "location")


class MachineRepository(Protocol):
    """Persistence interface for machines."""

    def list_machines(self) -> list[Machine]:
        """Return all machines."""

    def get_machine(self, machine_id: str) -> Machine | None:
        """Return a machine by id, if present."""

    def update_machine(
        self, machine_id: str, fields: dict[str, object]
    ) -> Machine | None:
        """Update machine fields and return the new row."""

    def increment_revenue(self, machine_id: str, amount: float) -> None:
        """Add an order's bill to the machine's revenue total."""


@dataclass
class MachineService:
    """Reads machines and publishes status changes."""

    repository: MachineRepository
    publisher: RealtimePublisher

    def list_machines(self) -> list[Machine]:
        return self.repository.list_machines()

    def get_machine(self, machine_id: str) -> Machine:
        """Return a machine or raise NotFoundError."""
        machine = self.repository.get_machine(machine_id)
        if machine is None:
            raise NotFoundError("Machine not found")
        return machine

    async def update_machine(
        self, machine_id: str, fields: dict[str, object]
    ) -> Machine:
        """Persist machine fields and push what changed to the machine's room."""
        current = self.get_machine(machine_id)
        updated = self.repository.update_machine(machine_id, fields)
        if updated is None:
            raise NotFoundError("Machine not found")
        await self.publish_changes(current, updated)
        return updated

    async def publish_changes(self, before: Machine | None, after: Machine) -> None:
        """Emit a status delta and a throttled temperature for changed fields."""
        if before is None:
            await self.publisher.publish_machine_status(after)
            self.publisher.queue_temperature(after)
            return
        changed = {
            name: getattr(after, name)
            for name in _STATUS_FIELDS
            if getattr(before, name) != getattr(after, name)
        }
        if changed:
            await self.publisher.publish_machine_status_delta(after.id, changed)
        if before.temperature_c != after.temperature_c:
            self.publisher.queue_temperature(after)

    def record_revenue(self, machine_id: str, amount: float) -> None:
        self.repository.increment_revenue(machine_id, amount)
