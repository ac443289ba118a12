"""Machine inventory service."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import uuid4

from coffee_vending.domain.catalog import IngredientRequirement
from coffee_vending.domain.errors import (
    DeductionError,
    InsufficientInventoryError,
    ValidationError,
)
from coffee_vending.domain.machines import InventoryItem, InventoryWarning

_logger = logging.getLogger(__name__)

LOW_STOCK_WARNING_TYPE = "dispenser_level"
_CAS_ATTEMPTS = 3


class InventoryRepository(Protocol):
    """Persistence interface for machine inventory rows."""

    def list_inventory(self, machine_id: str) -> list[InventoryItem]:
        """Return every inventory row of a machine."""

    def list_all_inventory(self) -> list[InventoryItem]:
        """Return inventory rows of all machines."""

    def get_item(self, machine_id: str, ingredient_id: str) -> InventoryItem | None:
        """Return one inventory row, if present."""

    def upsert_item(
        self,
        machine_id: str,
        ingredient_id: str,
        quantity: float,
        max_capacity: float | None,
    ) -> InventoryItem:
        """Create or overwrite one inventory row."""

    def compare_and_set_quantity(
        self, item_id: str, expected: float, quantity: float
    ) -> bool:
        """Set the quantity only if it still equals `expected`."""


class WarningRepository(Protocol):
    """Persistence interface for low-stock warnings."""

    def create_warning(self, warning: InventoryWarning) -> None:
        """Persist a warning."""

    def list_warnings(
        self, machine_id: str, status: str | None = None
    ) -> list[InventoryWarning]:
        """Return warnings for a machine."""

    def resolve_warning(self, warning_id: str, resolved_at: datetime) -> bool:
        """Mark a warning resolved; return False when it does not exist."""


@dataclass(frozen=True)
class Deduction:
    """One applied inventory deduction."""

    item_id: str
    machine_id: str
    ingredient_id: str
    before: float
    after: float


def low_stock_severity(
    quantity: float, threshold: float = 10, critical_threshold: float = 5
) -> str | None:
    """Return the warning severity for a stock level, or None when healthy."""
    if quantity <= critical_threshold:
        return "critical"
    if quantity <= threshold:
        return "high"
    return None


@dataclass
class InventoryService:
    """Reads and writes per-machine ingredient stock."""

    repository: InventoryRepository
    warning_repository: WarningRepository
    low_stock_threshold: float = 10
    critical_stock_threshold: float = 5
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(tz=UTC))

    def list_inventory(self, machine_id: str) -> list[InventoryItem]:
        return self.repository.list_inventory(machine_id)

    def quantities_for(self, machine_id: str) -> dict[str, float]:
        """Return ingredient id -> quantity on hand for a machine."""
        return {
            item.ingredient_id: item.quantity
            for item in self.repository.list_inventory(machine_id)
        }

    def missing_for(
        self, machine_id: str, requirements: list[IngredientRequirement]
    ) -> list[str]:
        """Return ingredient ids a machine cannot cover for the requirements."""
        quantities = self.quantities_for(machine_id)
        return [
            requirement.ingredient_id
            for requirement in requirements
            if requirement.quantity > 0
            and quantities.get(requirement.ingredient_id, 0.0) < requirement.quantity
        ]

    def set_quantity(
        self,
        machine_id: str,
        ingredient_id: str,
        quantity: float,
        max_capacity: float | None = None,
    ) -> tuple[InventoryItem, InventoryWarning | None]:
        """Set the absolute quantity of one ingredient on a machine."""
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")
        item = self.repository.upsert_item(
            machine_id, ingredient_id, quantity, max_capacity
        )
        warning = self.raise_low_stock_warning(machine_id, ingredient_id, quantity)
        return item, warning

    def deduct(
        self, machine_id: str, requirements: list[IngredientRequirement]
    ) -> list[Deduction]:
        """Deduct the requirements of one preparation from a machine.

        Each row is decremented with a compare-and-set, so a concurrent order
        cannot push stock below zero. On any failure the deductions already
        applied are restored before the error propagates.
        """
        applied: list[Deduction] = []
        try:
            for requirement in requirements:
                if requirement.quantity <= 0:
                    continue
                applied.append(self._deduct_one(machine_id, requirement))
        except (InsufficientInventoryError, DeductionError):
            self.restore(applied)
            raise
        except Exception as exc:
            _logger.exception(
                "Inventory deduction failed",
                extra={"machine_id": machine_id, "applied": len(applied)},
            )
            self.restore(applied)
            raise DeductionError(
                "Failed to deduct machine inventory", {"machine_id": machine_id}
            ) from exc
        return applied

    def restore(self, deductions: list[Deduction]) -> None:
        """Add previously deducted quantities back."""
        for deduction in reversed(deductions):
            amount = deduction.before - deduction.after
            for _ in range(_CAS_ATTEMPTS):
                item = self.repository.get_item(
                    deduction.machine_id, deduction.ingredient_id
                )
                if item is None:
                    break
                current = item.quantity
                if self.repository.compare_and_set_quantity(
                    deduction.item_id, current, current + amount
                ):
                    break
            else:
                _logger.error(
                    "Failed to restore inventory after a rejected order",
                    extra={"item_id": deduction.item_id, "amount": amount},
                )

    def raise_low_stock_warning(
        self, machine_id: str, ingredient_id: str, quantity: float
    ) -> InventoryWarning | None:
        """Persist a low-stock warning when the quantity crossed a threshold."""
        severity = low_stock_severity(
            quantity, self.low_stock_threshold, self.critical_stock_threshold
        )
        if severity is None:
            return None
        warning = InventoryWarning(
            id=str(uuid4()),
            machine_id=machine_id,
            ingredient_id=ingredient_id,
            type=LOW_STOCK_WARNING_TYPE,
            severity=severity,
            message=(
                f"Ingredient ID {ingredient_id} is running low "
                f"({_format_quantity(quantity)} remaining)"
            ),
            status="active",
            created_at=self.clock(),
        )
        self.warning_repository.create_warning(warning)
        _logger.warning(
            "Low stock: machine=%s ingredient=%s quantity=%s severity=%s",
            machine_id,
            ingredient_id,
            quantity,
            severity,
        )
        return warning

    def list_warnings(
        self, machine_id: str, status: str | None = None
    ) -> list[InventoryWarning]:
        return self.warning_repository.list_warnings(machine_id, status)

    def resolve_warning(self, warning_id: str) -> bool:
        return self.warning_repository.resolve_warning(warning_id, self.clock())

    def _deduct_one(
        self, machine_id: str, requirement: IngredientRequirement
    ) -> Deduction:
        for _ in range(_CAS_ATTEMPTS):
            item = self.repository.get_item(machine_id, requirement.ingredient_id)
            if item is None or item.quantity < requirement.quantity:
                raise InsufficientInventoryError([requirement.ingredient_id])
            remaining = item.quantity - requirement.quantity
            if self.repository.compare_and_set_quantity(
                item.id, item.quantity, remaining
            ):
                return Deduction(
                    item_id=item.id,
                    machine_id=machine_id,
                    ingredient_id=requirement.ingredient_id,
                    before=item.quantity,
                    after=remaining,
                )
        raise DeductionError(
            "Inventory kept changing while deducting",
            {"ingredient_id": requirement.ingredient_id},
        )


def _format_quantity(quantity: float) -> str:
    return f"{quantity:g}"
