"""Domain models for orders."""

from dataclasses import dataclass
from datetime import datetime

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

ORDER_STATUSES = (PENDING, PROCESSING, COMPLETED, FAILED, CANCELLED)
TERMINAL_STATUSES = frozenset({COMPLETED, FAILED, CANCELLED})


@dataclass(frozen=True)
class Order:
    """A customer order for one recipe on one machine."""

    id: str
    user_id: str
    machine_id: str
    recipe_id: str
    bill: float
    ordered_at: datetime
    status: str
    rating: int | None = None
