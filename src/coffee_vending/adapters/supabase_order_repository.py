"""Supabase-backed order repository."""

from dataclasses import dataclass

from supabase import Client

from coffee_vending.domain.orders import Order
from coffee_vending.services.orders import OrderRepository
from coffee_vending.services.payloads import parse_order


@dataclass
class SupabaseOrderRepository(OrderRepository):
    """Supabase implementation for orders."""

    client: Client

    def create_order(self, payload: dict[str, object]) -> Order:
        response = self.client.table("orders").insert(payload).execute()
        if not response.data:
            raise RuntimeError("Failed to create order")
        return parse_order(response.data[0])

    def get_order(self, order_id: str) -> Order | None:
        response = (
            self.client.table("orders")
            .select("*")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_order(response.data[0])

    def claim_status(self, order_id: str, expected: str, status: str) -> Order | None:
        """Move the order to `status` only if it is still in `expected`."""
        response = (
            self.client.table("orders")
            .update({"status": status})
            .eq("id", order_id)
            .eq("status", expected)
            .execute()
        )
        if not response.data:
            return None
        return parse_order(response.data[0])

    def set_rating(self, order_id: str, rating: int) -> Order | None:
        response = (
            self.client.table("orders")
            .update({"rating": rating})
            .eq("id", order_id)
            .execute()
        )
        if not response.data:
            return None
        return parse_order(response.data[0])

    def list_orders(
        self, machine_id: str | None = None, user_id: str | None = None
    ) -> list[Order]:
        query = self.client.table("orders").select("*")
        if machine_id:
            query = query.eq("machine_id", machine_id)
        if user_id:
            query = query.eq("user_id", user_id)
        response = query.order("ordered_at", desc=True).execute()
        return [parse_order(row) for row in response.data or []]
