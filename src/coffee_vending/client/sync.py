"""Keeps a KioskCache in step with the server's machine room."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from coffee_vending.adapters.vending_api_client import VendingApiClient
from coffee_vending.client.cache import KioskCache
from coffee_vending.services.realtime import (
    ERROR,
    JOIN_MACHINE,
    LEAVE_MACHINE,
    MACHINE_INVENTORY_UPDATE,
    RECIPE_AVAILABILITY_UPDATE,
    RECIPE_INGREDIENT_UPDATE,
    RECIPE_UPDATE,
    REQUEST_DATA,
)

_logger = logging.getLogger(__name__)


class SocketConnection(Protocol):
    """A JSON message connection to the server's realtime endpoint."""

    async def send_json(self, message: dict[str, object]) -> None:
        """Send one message."""

    async def receive_json(self) -> dict[str, object]:
        """Wait for the next message."""

    async def close(self) -> None:
        """Close the connection."""


Connect = Callable[[], Awaitable[SocketConnection]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RecomputeGate:
    """Debounces recompute requests and drops re-entrant ones.

    A request arriving within `delay_seconds` of the last run is deferred to
    the end of the window; later requests in the window replace it. A
    request made while the recompute itself is running is ignored.
    """

    recompute: Callable[[], object]
    delay_seconds: float = 1.0
    clock: Callable[[], float] = time.monotonic
    runs: int = 0
    _last_run: float | None = field(default=None, init=False, repr=False)
    _pending: asyncio.TimerHandle | None = field(default=None, init=False, repr=False)
    _running: bool = field(default=False, init=False, repr=False)

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def request(self) -> bool:
        """Ask for a recompute; return True when it ran immediately."""
        if self._running:
            return False
        now = self.clock()
        if self._last_run is None or now - self._last_run >= self.delay_seconds:
            self._cancel_pending()
            self._run()
            return True
        self._cancel_pending()
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(self.delay_seconds, self._run_pending)
        return False

    def flush(self) -> None:
        """Run a deferred recompute now."""
        if self._pending is not None:
            self.run_now()

    def run_now(self) -> None:
        self._cancel_pending()
        self._run()

    def _run_pending(self) -> None:
        self._pending = None
        self._run()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _run(self) -> None:
        self._running = True
        try:
            self.recompute()
        finally:
            self._running = False
            self._last_run = self.clock()
            self.runs += 1


@dataclass
class KioskSync:
    """Joins a machine room, resyncs on demand and survives disconnects.

    There is no replay of missed events: after every (re)connect the kiosk
    rejoins its room and pulls a full snapshot.
    """

    cache: KioskCache
    connect: Connect
    api_client: VendingApiClient | None = None
    sleep: Sleep = asyncio.sleep
    recovery_attempts: int = 3
    recovery_delay_seconds: float = 1.0
    reconnect_attempts: int = 10
    reconnect_delay_seconds: float = 1.0
    reconnect_delay_max_seconds: float = 5.0
    debounce_seconds: float = 1.0
    connection: SocketConnection | None = None
    using_fallback: bool = False
    gate: RecomputeGate = field(init=False)

    def __post_init__(self) -> None:
        self.gate = RecomputeGate(self.cache.recompute, self.debounce_seconds)

    @property
    def machine_id(self) -> str:
        return self.cache.machine_id

    async def start(self) -> None:
        """Connect, join the machine room and load a full snapshot."""
        try:
            self.connection = await self._connect_with_backoff()
        except ConnectionError:
            if not await self.load_fallback():
                raise
            return
        await self.join()
        await self.resync()

    async def join(self) -> None:
        await self._send(JOIN_MACHINE)

    async def leave(self) -> None:
        await self._send(LEAVE_MACHINE)

    async def request_data(self) -> None:
        await self._send(REQUEST_DATA)

    async def resync(self) -> None:
        """Pull a full snapshot, retrying while the inventory comes back empty.

        Right after a join the server may not have the machine's inventory
        loaded yet, so an empty inventory is re-requested with a growing
        delay before it is accepted.
        """
        await self._pull_snapshot()
        attempt = 0
        while not self.cache.inventory_items() and attempt < self.recovery_attempts:
            attempt += 1
            _logger.info(
                "Inventory empty after sync, retrying",
                extra={"machine_id": self.machine_id, "attempt": attempt},
            )
            await self.sleep(self.recovery_delay_seconds * attempt)
            await self._pull_snapshot()
        if not self.cache.inventory_items():
            _logger.warning(
                "Machine inventory still empty after recovery attempts",
                extra={"machine_id": self.machine_id},
            )
        self.gate.run_now()

    async def receive_one(self) -> str:
        """Apply the next pushed event and return its name."""
        event, _ = await self._receive()
        return event

    async def _receive(self) -> tuple[str, object]:
        if self.connection is None:
            raise ConnectionError("Not connected")
        message = await self.connection.receive_json()
        event = str(message.get("event", ""))
        data = message.get("data")
        if self.cache.apply_event(event, data):
            self.gate.request()
        return event, data

    async def run(self) -> None:
        """Apply pushed events until reconnecting is no longer possible."""
        while True:
            try:
                await self.receive_one()
            except asyncio.CancelledError:
                raise
            except Exception:
                _logger.warning(
                    "Realtime connection lost", extra={"machine_id": self.machine_id}
                )
                if not await self.reconnect():
                    return

    async def reconnect(self) -> bool:
        """Reconnect, rejoin and resync; fall back to REST when that fails."""
        await self._close_connection()
        try:
            self.connection = await self._connect_with_backoff()
        except ConnectionError:
            await self.load_fallback()
            return False
        self.using_fallback = False
        await self.join()
        await self.resync()
        return True

    async def load_fallback(self) -> bool:
        """Load catalog and inventory over REST when the socket is unusable."""
        if self.api_client is None:
            return False
        recipes = await self.api_client.get_recipes()
        rows = await self.api_client.get_recipe_ingredients()
        inventory = await self.api_client.get_machine_inventory(self.machine_id)
        self.cache.apply_event(RECIPE_UPDATE, recipes)
        self.cache.apply_event(RECIPE_INGREDIENT_UPDATE, rows)
        self.cache.apply_event(
            MACHINE_INVENTORY_UPDATE,
            {"machine_id": self.machine_id, "inventory": inventory},
        )
        self.gate.run_now()
        self.using_fallback = True
        _logger.warning(
            "Using REST fallback data", extra={"machine_id": self.machine_id}
        )
        return True

    async def close(self) -> None:
        await self._close_connection()

    async def _pull_snapshot(self) -> None:
        """Request data and apply messages up to the full availability snapshot.

        Room deltas pushed meanwhile are applied but do not end the pull.
        """
        await self.request_data()
        while True:
            event, data = await self._receive()
            if event == RECIPE_AVAILABILITY_UPDATE and not _is_delta(data):
                return
            if event == ERROR:
                _logger.warning(
                    "Server rejected data request",
                    extra={"machine_id": self.machine_id},
                )
                return

    async def _send(self, event: str) -> None:
        if self.connection is None:
            raise ConnectionError("Not connected")
        await self.connection.send_json({"event": event, "data": self.machine_id})

    async def _connect_with_backoff(self) -> SocketConnection:
        for attempt in range(1, self.reconnect_attempts + 1):
            try:
                return await self.connect()
            except Exception:
                _logger.warning(
                    "Connection attempt %s/%s failed",
                    attempt,
                    self.reconnect_attempts,
                )
            if attempt < self.reconnect_attempts:
                await self.sleep(
                    min(
                        self.reconnect_delay_seconds * attempt,
                        self.reconnect_delay_max_seconds,
                    )
                )
        raise ConnectionError("Could not connect to the realtime endpoint")

    async def _close_connection(self) -> None:
        connection, self.connection = self.connection, None
        if connection is None:
            return
        try:
            await connection.close()
        except Exception:
            _logger.debug("Ignoring error while closing connection", exc_info=True)


def _is_delta(data: object) -> bool:
    return isinstance(data, dict) and bool(data.get("delta"))
