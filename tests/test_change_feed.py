"""Tests for polling change detection and change feed selection."""

import asyncio
from dataclasses import dataclass, field

import pytest

from coffee_vending.services.change_feed import (
    ChangeEvent,
    PollingChangeFeed,
    diff_rows,
    select_change_feed,
)


def _feed(repositories) -> PollingChangeFeed:
    return PollingChangeFeed(
        machine_repository=repositories.machines,
        catalog_repository=repositories.catalog,
        inventory_repository=repositories.inventory,
    )


def test_diff_rows_reports_inserts_updates_and_deletes() -> None:
    previous = {"a": {"id": "a", "q": 1}, "b": {"id": "b", "q": 2}}
    current = {"a": {"id": "a", "q": 5}, "c": {"id": "c", "q": 3}}

    events = diff_rows("t", previous, current)

    assert [(e.operation, e.record["id"]) for e in events] == [
        ("update", "a"),
        ("insert", "c"),
        ("delete", "b"),
    ]
    assert events[0].changed_fields == {"q"}


def test_first_poll_only_sets_baseline(repositories) -> None:
    feed = _feed(repositories)

    assert feed.poll_inventory() == []
    assert feed.poll_machines() == []
    assert feed.poll_catalog() == []


def test_poll_inventory_detects_quantity_change(repositories) -> None:
    feed = _feed(repositories)
    feed.poll_inventory()
    repositories.inventory.seed("m1", {"milk": 5})

    [event] = feed.poll_inventory()

    assert event.table == "machine_ingredient_inventory"
    assert event.operation == "update"
    assert event.record["ingredient_id"] == "milk"
    assert event.changed_fields == {"quantity"}
    assert feed.poll_inventory() == []


def test_poll_catalog_detects_new_recipe_ingredient(repositories) -> None:
    feed = _feed(repositories)
    feed.poll_catalog()
    repositories.catalog.add_recipe("mocha", {"coffee": 30})

    events = feed.poll_catalog()

    assert {(e.table, e.operation) for e in events} == {
        ("recipes", "insert"),
        ("recipe_ingredients", "insert"),
    }


def test_polling_loop_delivers_events(repositories) -> None:
    feed = PollingChangeFeed(
        machine_repository=repositories.machines,
        catalog_repository=repositories.catalog,
        inventory_repository=repositories.inventory,
        machine_interval_seconds=0.01,
        catalog_interval_seconds=0.01,
        inventory_interval_seconds=0.01,
    )
    received: list[ChangeEvent] = []

    async def handler(event: ChangeEvent) -> None:
        received.append(event)

    async def scenario() -> None:
        await feed.start(handler)
        repositories.inventory.seed("m1", {"coffee": 1})
        for _ in range(50):
            if received:
                break
            await asyncio.sleep(0.01)
        await feed.stop()

    asyncio.run(scenario())

    assert received[0].record["ingredient_id"] == "coffee"


@dataclass
class FakeFeed:
    name: str
    fail_start: bool = False
    start_delay: float = 0.0
    started: list[object] = field(default_factory=list)
    stopped: bool = False

    async def start(self, handler) -> None:  # type: ignore[no-untyped-def]
        if self.fail_start:
            raise ConnectionError("realtime not enabled")
        await asyncio.sleep(self.start_delay)
        self.started.append(handler)

    async def stop(self) -> None:
        self.stopped = True


async def _noop(_event: ChangeEvent) -> None:
    return None


def test_select_prefers_native_feed() -> None:
    native = FakeFeed("native")
    polling = FakeFeed("polling")

    async def factory() -> FakeFeed:
        return native

    selected = asyncio.run(select_change_feed("auto", polling, factory, _noop))

    assert selected is native
    assert polling.started == []


def test_select_falls_back_to_polling() -> None:
    polling = FakeFeed("polling")

    async def factory() -> FakeFeed:
        return FakeFeed("native", fail_start=True)

    selected = asyncio.run(select_change_feed("auto", polling, factory, _noop))

    assert selected is polling
    assert polling.started == [_noop]


def test_select_falls_back_when_probe_times_out() -> None:
    polling = FakeFeed("polling")

    async def factory() -> FakeFeed:
        await asyncio.sleep(1)
        return FakeFeed("native")

    selected = asyncio.run(
        select_change_feed("auto", polling, factory, _noop, probe_timeout_seconds=0.01)
    )

    assert selected is polling


def test_native_feed_is_stopped_when_subscription_times_out() -> None:
    polling = FakeFeed("polling")
    native = FakeFeed("native", start_delay=10)

    async def factory() -> FakeFeed:
        return native

    selected = asyncio.run(
        select_change_feed("auto", polling, factory, _noop, probe_timeout_seconds=0.05)
    )

    assert selected is polling
    assert native.stopped is True
    assert native.started == []


def test_realtime_mode_does_not_fall_back() -> None:
    polling = FakeFeed("polling")
    native = FakeFeed("native", fail_start=True)

    async def factory() -> FakeFeed:
        return native

    with pytest.raises(ConnectionError):
        asyncio.run(select_change_feed("realtime", polling, factory, _noop))
    assert native.stopped is True
    assert polling.started == []


def test_polling_mode_skips_probe() -> None:
    polling = FakeFeed("polling")
    calls: list[str] = []

    async def factory() -> FakeFeed:
        calls.append("probe")
        return FakeFeed("native")

    selected = asyncio.run(select_change_feed("polling", polling, factory, _noop))

    assert selected is polling
    assert calls == []
