"""Order finalization: the side effects of an order reaching `completed`."""

import logging
from dataclasses import dataclass

from coffee_vending.domain.catalog import IngredientRequirement
from coffee_vending.domain.errors import FinalizationError
from coffee_vending.domain.machines import InventoryWarning
from coffee_vending.domain.orders import Order
from coffee_vending.services.catalog import CatalogService
from coffee_vending.services.inventory import Deduction, InventoryService
from coffee_vending.services.machines import MachineService
from coffee_vending.services.propagation import ChangePropagationPipeline

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalizationResult:
    order_id: str
    deductions: list[Deduction]
    warnings: list[InventoryWarning]


@dataclass
class OrderFinalizer:
    """Deducts stock, raises warnings, books revenue and republishes.

    Callers must make sure this runs once per order; `OrderService.transition`
    does that by claiming the `completed` status before calling in.
    """

    catalog: CatalogService
    inventory: InventoryService
    machines: MachineService
    pipeline: ChangePropagationPipeline

    async def finalize(self, order: Order) -> FinalizationResult:
        requirements = [
            IngredientRequirement(row.ingredient_id, row.quantity)
            for row in self.catalog.list_recipe_ingredients(order.recipe_id)
        ]
        deductions = self.inventory.deduct(order.machine_id, requirements)
        # Stock has moved from here on, so the machine is republished even
        # when the bookkeeping below fails.
        warnings: list[InventoryWarning] = []
        try:
            for deduction in deductions:
                warning = self.inventory.raise_low_stock_warning(
                    order.machine_id, deduction.ingredient_id, deduction.after
                )
                if warning is not None:
                    warnings.append(warning)
            self.machines.record_revenue(order.machine_id, order.bill)
        except Exception as exc:
            _logger.exception(
                "Order bookkeeping failed after deduction",
                extra={"order_id": order.id, "machine_id": order.machine_id},
            )
            raise FinalizationError(
                "Order completed but finalization failed", {"order_id": order.id}
            ) from exc
        finally:
            await self.pipeline.order_completed(order.machine_id)
        _logger.info(
            "Order finalized: order=%s machine=%s deductions=%s warnings=%s",
            order.id,
            order.machine_id,
            len(deductions),
            len(warnings),
        )
        return FinalizationResult(
            order_id=order.id, deductions=deductions, warnings=warnings
        )
