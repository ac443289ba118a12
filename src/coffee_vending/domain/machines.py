"""Domain models for machines and their stock."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Machine:
    """A vending machine."""

    id: str
    location: str
    status: str
    temperature_c: float | None = None
    cleaning_water_ml: float | None = None
    revenue_total: float = 0.0
    updated_at: datetime | None = None


@dataclass(frozen=True)
class InventoryItem:
    """Quantity of one ingredient loaded in one machine."""

    id: str
    machine_id: str
    ingredient_id: str
    quantity: float
    max_capacity: float | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class InventoryWarning:
    """Low-stock warning raised for a machine."""

    id: str
    machine_id: str
    ingredient_id: str
    type: str
    severity: str
    message: str
    status: str
    created_at: datetime
