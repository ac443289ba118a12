"""Supabase-backed machine repository."""

from dataclasses import dataclass

from supabase import Client

from coffee_vending.domain.machines import Machine
from coffee_vending.services.machines import MachineRepository
from coffee_vending.services.payloads import parse_machine

_REVENUE_ATTEMPTS = 3


@dataclass
class SupabaseMachineRepository(MachineRepository):
    """Supabase implementation for machines."""

    client: Client

    def list_machines(self) -> list[Machine]:
        response = self.client.table("machines").select("*").order("id").execute()
        return [parse_machine(row) for row in response.data or []]

    def get_machine(self, machine_id: str) -> Machine | None:
        response = (
            self.client.table("machines")
            .select("*")
            .eq("id", machine_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_machine(response.data[0])

    def update_machine(
        self, machine_id: str, fields: dict[str, object]
    ) -> Machine | None:
        response = (
            self.client.table("machines").update(fields).eq("id", machine_id).execute()
        )
        if not response.data:
            return None
        return parse_machine(response.data[0])

    def increment_revenue(self, machine_id: str, amount: float) -> None:
        """Add to the revenue total with a compare-and-set on the old value."""
        for _ in range(_REVENUE_ATTEMPTS):
            machine = self.get_machine(machine_id)
            if machine is None:
                raise RuntimeError(f"Machine {machine_id} not found")
            response = (
                self.client.table("machines")
                .update({"revenue_total": machine.revenue_total + amount})
                .eq("id", machine_id)
                .eq("revenue_total", machine.revenue_total)
                .execute()
            )
            if response.data:
                return
        raise RuntimeError("Failed to update machine revenue")
