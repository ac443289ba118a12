"""Inventory and catalog change feeds.

Two interchangeable implementations deliver `ChangeEvent`s to one handler:
the store's native change notifications and a polling loop that diffs
periodic full reads. `select_change_feed` probes for the native feed at
startup and falls back to polling when it is not available.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

from coffee_vending.services.catalog import CatalogRepository
from coffee_vending.services.inventory import InventoryRepository
from coffee_vending.services.machines import MachineRepository
from coffee_vending.services.payloads import (
    serialize_inventory_item,
    serialize_machine,
    serialize_recipe,
    serialize_recipe_ingredient,
)

MACHINES_TABLE = "machines"
RECIPES_TABLE = "recipes"
RECIPE_INGREDIENTS_TABLE = "recipe_ingredients"
INVENTORY_TABLE = "machine_ingredient_inventory"

WATCHED_TABLES = (
    MACHINES_TABLE,
    RECIPES_TABLE,
    RECIPE_INGREDIENTS_TABLE,
    INVENTORY_TABLE,
)

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """A single row-level change."""

    table: str
    operation: str
    record: dict[str, object]
    old_record: dict[str, object] | None = None

    @property
    def changed_fields(self) -> set[str]:
        """Return the columns whose values differ from the old record."""
        if not self.old_record:
            return set(self.record)
        return {
            key
            for key, value in self.record.items()
            if key in self.old_record and self.old_record[key] != value
        }


ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]


class ChangeFeed(Protocol):
    """Source of row-level change events."""

    name: str

    async def start(self, handler: ChangeHandler) -> None:
        """Begin delivering events to the handler."""

    async def stop(self) -> None:
        """Stop delivering events and release resources."""


def diff_rows(
    table: str,
    previous: dict[str, dict[str, object]],
    current: dict[str, dict[str, object]],
) -> list[ChangeEvent]:
    """Compare two keyed table reads and describe the difference as events."""
    events: list[ChangeEvent] = []
    for key, row in current.items():
        before = previous.get(key)
        if before is None:
            events.append(ChangeEvent(table=table, operation=INSERT, record=row))
        elif before != row:
            events.append(
                ChangeEvent(
                    table=table, operation=UPDATE, record=row, old_record=before
                )
            )
    for key, row in previous.items():
        if key not in current:
            events.append(
                ChangeEvent(table=table, operation=DELETE, record=row, old_record=row)
            )
    return events


@dataclass
class PollingChangeFeed:
    """Change feed that polls full tables and diffs consecutive reads.

    The first read of each table only primes the baseline; later reads
    produce insert, update and delete events for the rows that moved.
    """

    machine_repository: MachineRepository
    catalog_repository: CatalogRepository
    inventory_repository: InventoryRepository
    machine_interval_seconds: float = 5.0
    catalog_interval_seconds: float = 30.0
    inventory_interval_seconds: float = 10.0
    name: str = "polling"
    _baselines: dict[str, dict[str, dict[str, object]]] = field(
        default_factory=dict, init=False, repr=False
    )
    _tasks: list[asyncio.Task[None]] = field(
        default_factory=list, init=False, repr=False
    )

    async def start(self, handler: ChangeHandler) -> None:
        self.poll_machines()
        self.poll_catalog()
        self.poll_inventory()
        self._tasks = [
            asyncio.create_task(
                self._loop(self.poll_machines, self.machine_interval_seconds, handler)
            ),
            asyncio.create_task(
                self._loop(self.poll_catalog, self.catalog_interval_seconds, handler)
            ),
            asyncio.create_task(
                self._loop(
                    self.poll_inventory, self.inventory_interval_seconds, handler
                )
            ),
        ]
        _logger.info("Polling change feed started")

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def poll_machines(self) -> list[ChangeEvent]:
        rows = {
            machine.id: serialize_machine(machine)
            for machine in self.machine_repository.list_machines()
        }
        return self._diff(MACHINES_TABLE, rows)

    def poll_catalog(self) -> list[ChangeEvent]:
        recipes = {
            recipe.id: serialize_recipe(recipe)
            for recipe in self.catalog_repository.list_recipes()
        }
        rows = {
            f"{row.recipe_id}:{row.ingredient_id}": serialize_recipe_ingredient(row)
            for row in self.catalog_repository.list_recipe_ingredients()
        }
        return self._diff(RECIPES_TABLE, recipes) + self._diff(
            RECIPE_INGREDIENTS_TABLE, rows
        )

    def poll_inventory(self) -> list[ChangeEvent]:
        rows = {
            item.id: serialize_inventory_item(item)
            for item in self.inventory_repository.list_all_inventory()
        }
        return self._diff(INVENTORY_TABLE, rows)

    def _diff(
        self, table: str, current: dict[str, dict[str, object]]
    ) -> list[ChangeEvent]:
        previous = self._baselines.get(table)
        self._baselines[table] = current
        if previous is None:
            return []
        return diff_rows(table, previous, current)

    async def _loop(
        self,
        poll: Callable[[], list[ChangeEvent]],
        interval: float,
        handler: ChangeHandler,
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                events = poll()
            except Exception:
                _logger.exception("Change feed poll failed")
                continue
            await _deliver(events, handler)


async def _deliver(events: Iterable[ChangeEvent], handler: ChangeHandler) -> None:
    for event in events:
        try:
            await handler(event)
        except Exception:
            _logger.exception(
                "Change handler failed",
                extra={"table": event.table, "operation": event.operation},
            )


async def select_change_feed(
    mode: str,
    polling_feed: ChangeFeed,
    native_feed_factory: Callable[[], Awaitable[ChangeFeed]] | None,
    handler: ChangeHandler,
    probe_timeout_seconds: float = 5.0,
) -> ChangeFeed:
    """Start the preferred change feed and return it.

    In `auto` mode the native feed is tried first; any failure to create or
    subscribe it within the timeout selects polling instead.
    """
    if mode != "polling" and native_feed_factory is not None:
        native_feed: ChangeFeed | None = None
        try:
            native_feed = await asyncio.wait_for(
                native_feed_factory(), timeout=probe_timeout_seconds
            )
            await asyncio.wait_for(
                native_feed.start(handler), timeout=probe_timeout_seconds
            )
        except Exception:
            if native_feed is not None:
                await _stop_quietly(native_feed)
            if mode == "realtime":
                raise
            _logger.warning(
                "Native change notifications unavailable, falling back to polling",
                exc_info=True,
            )
        else:
            _logger.info("Using %s change feed", native_feed.name)
            return native_feed
    await polling_feed.start(handler)
    _logger.info("Using %s change feed", polling_feed.name)
    return polling_feed


async def _stop_quietly(feed: ChangeFeed) -> None:
    try:
        await feed.stop()
    except Exception:
        _logger.exception("Failed to stop %s change feed", feed.name)
