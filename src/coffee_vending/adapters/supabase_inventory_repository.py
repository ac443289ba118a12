"""Supabase repositories for machine inventory and low-stock warnings."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from coffee_vending.domain.machines import InventoryItem, InventoryWarning
from coffee_vending.services.inventory import InventoryRepository, WarningRepository
from coffee_vending.services.payloads import (
    parse_inventory_item,
    parse_warning,
    serialize_warning,
)

_INVENTORY_TABLE = "machine_ingredient_inventory"


@dataclass
class SupabaseInventoryRepository(InventoryRepository):
    """Supabase-backed inventory repository."""

    client: Client

    def list_inventory(self, machine_id: str) -> list[InventoryItem]:
        response = (
            self.client.table(_INVENTORY_TABLE)
            .select("*")
            .eq("machine_id", machine_id)
            .execute()
        )
        return [parse_inventory_item(row) for row in response.data or []]

    def list_all_inventory(self) -> list[InventoryItem]:
        response = self.client.table(_INVENTORY_TABLE).select("*").execute()
        return [parse_inventory_item(row) for row in response.data or []]

    def get_item(self, machine_id: str, ingredient_id: str) -> InventoryItem | None:
        response = (
            self.client.table(_INVENTORY_TABLE)
            .select("*")
            .eq("machine_id", machine_id)
            .eq("ingredient_id", ingredient_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_inventory_item(response.data[0])

    def upsert_item(
        self,
        machine_id: str,
        ingredient_id: str,
        quantity: float,
        max_capacity: float | None,
    ) -> InventoryItem:
        """Create or overwrite the row for one (machine, ingredient) pair."""
        payload: dict[str, object] = {
            "machine_id": machine_id,
            "ingredient_id": ingredient_id,
            "quantity": quantity,
        }
        if max_capacity is not None:
            payload["max_capacity"] = max_capacity
        response = (
            self.client.table(_INVENTORY_TABLE)
            .upsert(payload, on_conflict="machine_id,ingredient_id")
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to save inventory")
        return parse_inventory_item(response.data[0])

    def compare_and_set_quantity(
        self, item_id: str, expected: float, quantity: float
    ) -> bool:
        """Update the quantity only while it still holds the value we read."""
        response = (
            self.client.table(_INVENTORY_TABLE)
            .update({"quantity": quantity})
            .eq("id", item_id)
            .eq("quantity", expected)
            .execute()
        )
        return bool(response.data)


@dataclass
class SupabaseWarningRepository(WarningRepository):
    """Supabase-backed warning repository."""

    client: Client

    def create_warning(self, warning: InventoryWarning) -> None:
        self.client.table("inventory_warnings").insert(
            serialize_warning(warning)
        ).execute()

    def list_warnings(
        self, machine_id: str, status: str | None = None
    ) -> list[InventoryWarning]:
        query = (
            self.client.table("inventory_warnings")
            .select("*")
            .eq("machine_id", machine_id)
        )
        if status:
            query = query.eq("status", status)
        response = query.order("created_at", desc=True).execute()
        return [parse_warning(row) for row in response.data or []]

    def resolve_warning(self, warning_id: str, resolved_at: datetime) -> bool:
        response = (
            self.client.table("inventory_warnings")
            .update({"status": "resolved", "resolved_at": resolved_at.isoformat()})
            .eq("id", warning_id)
            .execute()
        )
        return bool(response.data)
