"""Change feed backed by Supabase realtime Postgres change notifications."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from supabase import AsyncClient, acreate_client

from coffee_vending.services.change_feed import (
    WATCHED_TABLES,
    ChangeEvent,
    ChangeFeed,
    ChangeHandler,
)

_logger = logging.getLogger(__name__)

_SUBSCRIBED = "SUBSCRIBED"


def parse_postgres_change(payload: Mapping[str, object]) -> ChangeEvent | None:
    """Convert a realtime postgres_changes payload into a ChangeEvent."""
    data = payload.get("data", payload)
    if not isinstance(data, Mapping):
        return None
    table = data.get("table")
    operation = data.get("type") or data.get("eventType")
    if not isinstance(table, str) or not isinstance(operation, str):
        return None
    record = data.get("record") or data.get("new") or {}
    old_record = data.get("old_record") or data.get("old") or None
    return ChangeEvent(
        table=table,
        operation=operation.lower(),
        record=dict(record) if isinstance(record, Mapping) else {},
        old_record=dict(old_record) if isinstance(old_record, Mapping) else None,
    )


@dataclass
class SupabaseRealtimeChangeFeed(ChangeFeed):
    """Subscribes to row changes of every watched table on one channel."""

    client: AsyncClient
    channel_name: str = "coffee-vending-changes"
    name: str = "supabase-realtime"
    _tasks: set[asyncio.Task[None]] = field(default_factory=set, init=False, repr=False)

    @classmethod
    async def create(cls, url: str, key: str) -> "SupabaseRealtimeChangeFeed":
        """Create a feed with its own async Supabase client."""
        return cls(client=await acreate_client(url, key))

    async def start(self, handler: ChangeHandler) -> None:
        """Subscribe and wait until the server confirms the subscription."""
        loop = asyncio.get_running_loop()
        subscribed: asyncio.Future[None] = loop.create_future()

        def on_change(payload: dict[str, object]) -> None:
            event = parse_postgres_change(payload)
            if event is None:
                _logger.warning("Ignoring unrecognized realtime payload")
                return
            task = loop.create_task(self._dispatch(handler, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        def on_status(status: object, error: Exception | None = None) -> None:
            if subscribed.done():
                return
            if error is not None:
                subscribed.set_exception(error)
            elif str(getattr(status, "value", status)) == _SUBSCRIBED:
                subscribed.set_result(None)

        channel = self.client.channel(self.channel_name)
        for table in WATCHED_TABLES:
            channel.on_postgres_changes(
                "*", schema="public", table=table, callback=on_change
            )
        await channel.subscribe(on_status)
        await subscribed
        _logger.info("Realtime change feed subscribed")

    async def stop(self) -> None:
        await self.client.remove_all_channels()
        for task in list(self._tasks):
            task.cancel()

    async def _dispatch(self, handler: ChangeHandler, event: ChangeEvent) -> None:
        try:
            await handler(event)
        except Exception:
            _logger.exception(
                "Change handler failed",
                extra={"table": event.table, "operation": event.operation},
            )
