"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from coffee_vending.adapters.supabase_catalog_repository import (
    SupabaseCatalogRepository,
)
from coffee_vending.adapters.supabase_inventory_repository import (
    SupabaseInventoryRepository,
    SupabaseWarningRepository,
)
from coffee_vending.adapters.supabase_machine_repository import (
    SupabaseMachineRepository,
)
from coffee_vending.adapters.supabase_order_repository import SupabaseOrderRepository
from coffee_vending.adapters.supabase_realtime_feed import SupabaseRealtimeChangeFeed
from coffee_vending.adapters.websocket_hub import WebSocketHub
from coffee_vending.config import Settings, parse_change_feed_mode
from coffee_vending.services.availability import AvailabilityEngine
from coffee_vending.services.catalog import CatalogRepository, CatalogService
from coffee_vending.services.change_feed import (
    ChangeFeed,
    PollingChangeFeed,
    select_change_feed,
)
from coffee_vending.services.finalization import OrderFinalizer
from coffee_vending.services.inventory import (
    InventoryRepository,
    InventoryService,
    WarningRepository,
)
from coffee_vending.services.machines import MachineRepository, MachineService
from coffee_vending.services.orders import OrderRepository, OrderService
from coffee_vending.services.payments import (
    GatewayCipher,
    PaymentService,
    PlainTextGatewayCipher,
)
from coffee_vending.services.propagation import ChangePropagationPipeline
from coffee_vending.services.realtime import RealtimePublisher, TemperatureThrottle
from coffee_vending.services.sessions import MachineRoomHandler

NativeFeedFactory = Callable[[], Awaitable[ChangeFeed]]


@dataclass
class Repositories:
    """Persistence adapters the services are built on."""

    catalog: CatalogRepository
    inventory: InventoryRepository
    warnings: WarningRepository
    machines: MachineRepository
    orders: OrderRepository


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    hub: WebSocketHub
    publisher: RealtimePublisher
    temperature_throttle: TemperatureThrottle
    catalog_service: CatalogService
    inventory_service: InventoryService
    machine_service: MachineService
    availability_engine: AvailabilityEngine
    pipeline: ChangePropagationPipeline
    room_handler: MachineRoomHandler
    order_service: OrderService
    payment_service: PaymentService
    polling_feed: PollingChangeFeed
    native_feed_factory: NativeFeedFactory | None
    close_resources: Callable[[], Awaitable[None]]
    active_feed: ChangeFeed | None = None

    async def start_background(self) -> None:
        """Start the temperature throttle and the selected change feed."""
        self.temperature_throttle.start()
        self.active_feed = await select_change_feed(
            parse_change_feed_mode(self.settings.change_feed_mode),
            self.polling_feed,
            self.native_feed_factory,
            self.pipeline.handle_change,
            self.settings.realtime_probe_timeout_seconds,
        )

    async def stop_background(self) -> None:
        if self.active_feed is not None:
            await self.active_feed.stop()
            self.active_feed = None
        await self.temperature_throttle.stop()


def assemble_container(
    settings: Settings,
    repositories: Repositories,
    native_feed_factory: NativeFeedFactory | None = None,
    hub: WebSocketHub | None = None,
    cipher: GatewayCipher | None = None,
    close_resources: Callable[[], Awaitable[None]] | None = None,
) -> AppContainer:
    """Wire services on top of the given repositories."""
    hub = hub if hub is not None else WebSocketHub()
    throttle = TemperatureThrottle(hub, settings.temperature_throttle_seconds)
    publisher = RealtimePublisher(hub, throttle)
    catalog_service = CatalogService(repositories.catalog)
    inventory_service = InventoryService(
        repositories.inventory,
        repositories.warnings,
        low_stock_threshold=settings.low_stock_threshold,
        critical_stock_threshold=settings.critical_stock_threshold,
    )
    machine_service = MachineService(repositories.machines, publisher)
    engine = AvailabilityEngine(catalog=catalog_service, inventory=inventory_service)
    pipeline = ChangePropagationPipeline(
        catalog=catalog_service,
        inventory=inventory_service,
        machines=machine_service,
        engine=engine,
        publisher=publisher,
    )
    finalizer = OrderFinalizer(
        catalog=catalog_service,
        inventory=inventory_service,
        machines=machine_service,
        pipeline=pipeline,
    )
    order_service = OrderService(
        repository=repositories.orders,
        catalog=catalog_service,
        inventory=inventory_service,
        machines=machine_service,
        finalizer=finalizer,
    )
    payment_service = PaymentService(
        orders=order_service,
        cipher=cipher or PlainTextGatewayCipher(),
        client_public_url=settings.client_public_url,
    )
    room_handler = MachineRoomHandler(
        transport=hub,
        catalog=catalog_service,
        inventory=inventory_service,
        machines=machine_service,
        engine=engine,
    )
    polling_feed = PollingChangeFeed(
        machine_repository=repositories.machines,
        catalog_repository=repositories.catalog,
        inventory_repository=repositories.inventory,
        machine_interval_seconds=settings.machine_poll_seconds,
        catalog_interval_seconds=settings.recipe_poll_seconds,
        inventory_interval_seconds=settings.inventory_poll_seconds,
    )

    async def close_nothing() -> None:
        return None

    return AppContainer(
        settings=settings,
        hub=hub,
        publisher=publisher,
        temperature_throttle=throttle,
        catalog_service=catalog_service,
        inventory_service=inventory_service,
        machine_service=machine_service,
        availability_engine=engine,
        pipeline=pipeline,
        room_handler=room_handler,
        order_service=order_service,
        payment_service=payment_service,
        polling_feed=polling_feed,
        native_feed_factory=native_feed_factory,
        close_resources=close_resources or close_nothing,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    repositories = Repositories(
        catalog=SupabaseCatalogRepository(supabase_client),
        inventory=SupabaseInventoryRepository(supabase_client),
        warnings=SupabaseWarningRepository(supabase_client),
        machines=SupabaseMachineRepository(supabase_client),
        orders=SupabaseOrderRepository(supabase_client),
    )

    async def create_native_feed() -> ChangeFeed:
        return await SupabaseRealtimeChangeFeed.create(
            resolved_settings.supabase_url, resolved_settings.supabase_service_key
        )

    return assemble_container(
        resolved_settings,
        repositories,
        native_feed_factory=create_native_feed,
    )
