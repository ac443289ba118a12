"""Machine, inventory, availability and warning endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request

from coffee_vending.api.schemas import InventoryPayload, MachineUpdatePayload
from coffee_vending.domain.errors import NotFoundError
from coffee_vending.services.payloads import (
    serialize_inventory_item,
    serialize_machine,
    serialize_warning,
)

if TYPE_CHECKING:
    from coffee_vending.containers import AppContainer

router = APIRouter(prefix="/api", tags=["machines"])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.get("/machines")
async def list_machines(request: Request) -> dict[str, object]:
    machines = _container(request).machine_service.list_machines()
    return {"success": True, "data": [serialize_machine(m) for m in machines]}


@router.get("/machines/{machine_id}")
async def get_machine(machine_id: str, request: Request) -> dict[str, object]:
    machine = _container(request).machine_service.get_machine(machine_id)
    return {"success": True, "data": serialize_machine(machine)}


@router.patch("/machines/{machine_id}")
async def update_machine(
    machine_id: str, payload: MachineUpdatePayload, request: Request
) -> dict[str, object]:
    """Update status fields and push the changes to the machine's room."""
    machine = await _container(request).pipeline.update_machine(
        machine_id, payload.model_dump(exclude_unset=True)
    )
    return {"success": True, "data": serialize_machine(machine)}


@router.get("/machines/{machine_id}/inventory")
async def get_inventory(machine_id: str, request: Request) -> dict[str, object]:
    container = _container(request)
    container.machine_service.get_machine(machine_id)
    items = container.inventory_service.list_inventory(machine_id)
    return {"success": True, "data": [serialize_inventory_item(i) for i in items]}


@router.put("/machines/{machine_id}/inventory")
async def set_inventory(
    machine_id: str, payload: InventoryPayload, request: Request
) -> dict[str, object]:
    """Set the absolute quantity of one ingredient on a machine."""
    item, warning = await _container(request).pipeline.set_inventory(
        machine_id, payload.ingredient_id, payload.quantity, payload.max_capacity
    )
    return {
        "success": True,
        "data": serialize_inventory_item(item),
        "warning": serialize_warning(warning) if warning else None,
    }


@router.get("/machines/{machine_id}/availability")
async def get_availability(machine_id: str, request: Request) -> dict[str, object]:
    container = _container(request)
    container.machine_service.get_machine(machine_id)
    snapshot = container.availability_engine.snapshot_for(machine_id)
    return {"success": True, "data": snapshot.to_payload()}


@router.post("/machines/{machine_id}/availability/refresh")
async def refresh_availability(
    machine_id: str, request: Request
) -> dict[str, object]:
    """Recompute a machine from scratch and publish the snapshot."""
    container = _container(request)
    container.machine_service.get_machine(machine_id)
    snapshot = await container.pipeline.order_completed(machine_id)
    return {"success": True, "data": snapshot.to_payload()}


@router.get("/machines/{machine_id}/warnings")
async def list_warnings(
    machine_id: str, request: Request, status: str | None = None
) -> dict[str, object]:
    warnings = _container(request).inventory_service.list_warnings(machine_id, status)
    return {"success": True, "data": [serialize_warning(w) for w in warnings]}


@router.post("/warnings/{warning_id}/resolve")
async def resolve_warning(warning_id: str, request: Request) -> dict[str, object]:
    if not _container(request).inventory_service.resolve_warning(warning_id):
        raise NotFoundError("Warning not found")
    return {"success": True}
