"""Tests for container wiring."""

import asyncio

from coffee_vending.adapters.supabase_inventory_repository import (
    SupabaseInventoryRepository,
)
from coffee_vending.containers import build_container


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    repository = container.inventory_service.repository
    assert isinstance(repository, SupabaseInventoryRepository)
    assert container.availability_engine.catalog is container.catalog_service
    assert container.native_feed_factory is not None
    assert container.active_feed is None
    asyncio.run(container.close_resources())
