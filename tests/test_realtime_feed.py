"""Tests for the Supabase realtime change feed."""

import asyncio
from dataclasses import dataclass, field

from coffee_vending.adapters.supabase_realtime_feed import (
    SupabaseRealtimeChangeFeed,
    parse_postgres_change,
)
from coffee_vending.services.change_feed import (
    INVENTORY_TABLE,
    WATCHED_TABLES,
    ChangeEvent,
)


@dataclass
class FakeChannel:
    callbacks: dict[str, object] = field(default_factory=dict)

    def on_postgres_changes(  # type: ignore[no-untyped-def]
        self, event, schema, table, callback
    ):
        self.callbacks[table] = callback
        return self

    async def subscribe(self, callback):  # type: ignore[no-untyped-def]
        callback("SUBSCRIBED", None)
        return self


@dataclass
class FakeAsyncClient:
    channel_obj: FakeChannel = field(default_factory=FakeChannel)
    removed: bool = False

    def channel(self, _name: str) -> FakeChannel:
        return self.channel_obj

    async def remove_all_channels(self) -> None:
        self.removed = True


def test_parse_postgres_change_update() -> None:
    event = parse_postgres_change(
        {
            "data": {
                "table": INVENTORY_TABLE,
                "type": "UPDATE",
                "record": {"machine_id": "m1", "ingredient_id": "milk", "quantity": 3},
                "old_record": {"quantity": 9},
            }
        }
    )

    assert event == ChangeEvent(
        table=INVENTORY_TABLE,
        operation="update",
        record={"machine_id": "m1", "ingredient_id": "milk", "quantity": 3},
        old_record={"quantity": 9},
    )


def test_parse_postgres_change_delete_without_record() -> None:
    event = parse_postgres_change(
        {"table": "machines", "eventType": "DELETE", "old": {"id": "m2"}}
    )

    assert event is not None
    assert event.operation == "delete"
    assert event.record == {}
    assert event.old_record == {"id": "m2"}


def test_parse_postgres_change_rejects_unknown_payload() -> None:
    assert parse_postgres_change({"data": "oops"}) is None
    assert parse_postgres_change({"data": {"table": "machines"}}) is None


def test_feed_subscribes_and_dispatches() -> None:
    client = FakeAsyncClient()
    feed = SupabaseRealtimeChangeFeed(client=client)  # type: ignore[arg-type]
    received: list[ChangeEvent] = []

    async def handler(event: ChangeEvent) -> None:
        received.append(event)

    async def run() -> None:
        await feed.start(handler)
        callback = client.channel_obj.callbacks[INVENTORY_TABLE]
        callback(
            {
                "data": {
                    "table": INVENTORY_TABLE,
                    "type": "INSERT",
                    "record": {"machine_id": "m1", "ingredient_id": "milk"},
                }
            }
        )
        await asyncio.sleep(0)
        await feed.stop()

    asyncio.run(run())

    assert set(client.channel_obj.callbacks) == set(WATCHED_TABLES)
    assert [event.operation for event in received] == ["insert"]
    assert client.removed is True
