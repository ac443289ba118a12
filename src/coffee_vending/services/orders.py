"""Order placement and lifecycle."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from coffee_vending.domain.catalog import IngredientRequirement
from coffee_vending.domain.errors import (
    ConflictError,
    DeductionError,
    InsufficientInventoryError,
    NotFoundError,
    ValidationError,
)
from coffee_vending.domain.orders import (
    COMPLETED,
    FAILED,
    ORDER_STATUSES,
    PENDING,
    PROCESSING,
    TERMINAL_STATUSES,
    Order,
)
from coffee_vending.services.catalog import CatalogService
from coffee_vending.services.finalization import OrderFinalizer
from coffee_vending.services.inventory import InventoryService
from coffee_vending.services.machines import ACTIVE, MachineService

_logger = logging.getLogger(__name__)


class OrderRepository(Protocol):
    """Persistence interface for orders."""

    def create_order(self, payload: dict[str, object]) -> Order:
        """Insert an order and return it."""

    def get_order(self, order_id: str) -> Order | None:
        """Return an order by id, if present."""

    def claim_status(self, order_id: str, expected: str, status: str) -> Order | None:
        """Set the status only if it still equals `expected`."""

    def set_rating(self, order_id: str, rating: int) -> Order | None:
        """Store a customer rating."""

    def list_orders(
        self, machine_id: str | None = None, user_id: str | None = None
    ) -> list[Order]:
        """Return orders, newest first."""


@dataclass
class OrderService:
    """Creates orders and moves them through their lifecycle.

    Both the direct order path and status updates from payment callbacks go
    through `transition`, which runs finalization exactly once.
    """

    repository: OrderRepository
    catalog: CatalogService
    inventory: InventoryService
    machines: MachineService
    finalizer: OrderFinalizer
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(tz=UTC))

    def check_availability(self, machine_id: str, recipe_id: str) -> list[str]:
        """Return the ingredient ids the machine is short of for a recipe."""
        requirements = [
            IngredientRequirement(row.ingredient_id, row.quantity)
            for row in self.catalog.list_recipe_ingredients(recipe_id)
        ]
        return self.inventory.missing_for(machine_id, requirements)

    async def place_order(self, user_id: str, machine_id: str, recipe_id: str) -> Order:
        """Create an order and complete it in the same call."""
        order = self.create_order(user_id, machine_id, recipe_id, PROCESSING)
        return await self.transition(order.id, COMPLETED)

    def create_order(
        self, user_id: str, machine_id: str, recipe_id: str, status: str = PENDING
    ) -> Order:
        """Validate and insert an order without finalizing it."""
        if not user_id:
            raise ValidationError("user_id is required")
        machine = self.machines.get_machine(machine_id)
        if machine.status != ACTIVE:
            raise ValidationError(
                "Machine is not accepting orders", {"status": machine.status}
            )
        recipe = self.catalog.get_recipe(recipe_id)
        missing = self.check_availability(machine_id, recipe_id)
        if missing:
            raise InsufficientInventoryError(missing)
        order = self.repository.create_order(
            {
                "user_id": user_id,
                "machine_id": machine_id,
                "recipe_id": recipe_id,
                "bill": recipe.price,
                "ordered_at": self.clock().isoformat(),
                "status": status,
            }
        )
        _logger.info(
            "Order created",
            extra={"order_id": order.id, "machine_id": machine_id, "status": status},
        )
        return order

    def get_order(self, order_id: str) -> Order:
        order = self.repository.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def list_orders(
        self, machine_id: str | None = None, user_id: str | None = None
    ) -> list[Order]:
        return self.repository.list_orders(machine_id, user_id)

    async def transition(self, order_id: str, status: str) -> Order:
        """Move an order to a new status.

        The status is claimed with a conditional update on the previous value,
        so concurrent callers cannot both finalize the same order. When the
        deduction behind a `completed` claim fails, the order is moved to
        `failed` and the error propagates. A `FinalizationError` raised after
        the stock was deducted leaves the order `completed`.
        """
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid order status", {"status": status})
        order = self.get_order(order_id)
        if order.status == status:
            return order
        if order.status in TERMINAL_STATUSES:
            raise ConflictError(
                "Order is already finished", {"status": order.status}
            )

        claimed = self.repository.claim_status(order_id, order.status, status)
        if claimed is None:
            current = self.get_order(order_id)
            if current.status == status:
                return current
            raise ConflictError(
                "Order status changed concurrently", {"status": current.status}
            )
        if status != COMPLETED:
            return claimed

        try:
            await self.finalizer.finalize(claimed)
        except (InsufficientInventoryError, DeductionError):
            _logger.error(
                "Finalization failed, marking order failed",
                extra={"order_id": order_id, "machine_id": claimed.machine_id},
            )
            self.repository.claim_status(order_id, COMPLETED, FAILED)
            raise
        return claimed

    def rate_order(self, order_id: str, rating: int) -> Order:
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationError("Rating must be an integer")
        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        order = self.get_order(order_id)
        if order.status != COMPLETED:
            raise ValidationError("Only completed orders can be rated")
        updated = self.repository.set_rating(order_id, rating)
        if updated is None:
            raise NotFoundError("Order not found")
        return updated
