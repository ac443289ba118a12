"""Order endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request

from coffee_vending.api.schemas import OrderPayload, OrderStatusPayload, RatingPayload
from coffee_vending.services.payloads import serialize_order

if TYPE_CHECKING:
    from coffee_vending.containers import AppContainer

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.post("", status_code=201)
async def place_order(payload: OrderPayload, request: Request) -> dict[str, object]:
    """Check stock, create the order and finalize it."""
    order = await _container(request).order_service.place_order(
        payload.user_id, payload.machine_id, payload.recipe_id
    )
    return {"success": True, "data": serialize_order(order)}


@router.post("/check")
async def check_availability(
    payload: OrderPayload, request: Request
) -> dict[str, object]:
    container = _container(request)
    container.machine_service.get_machine(payload.machine_id)
    container.catalog_service.get_recipe(payload.recipe_id)
    missing = container.order_service.check_availability(
        payload.machine_id, payload.recipe_id
    )
    return {"success": True, "available": not missing, "missingIngredients": missing}


@router.get("")
async def list_orders(
    request: Request, machine_id: str | None = None, user_id: str | None = None
) -> dict[str, object]:
    orders = _container(request).order_service.list_orders(machine_id, user_id)
    return {"success": True, "data": [serialize_order(order) for order in orders]}


@router.get("/{order_id}")
async def get_order(order_id: str, request: Request) -> dict[str, object]:
    order = _container(request).order_service.get_order(order_id)
    return {"success": True, "data": serialize_order(order)}


@router.patch("/{order_id}/status")
async def update_status(
    order_id: str, payload: OrderStatusPayload, request: Request
) -> dict[str, object]:
    order = await _container(request).order_service.transition(
        order_id, payload.status
    )
    return {"success": True, "data": serialize_order(order)}


@router.post("/{order_id}/rating")
async def rate_order(
    order_id: str, payload: RatingPayload, request: Request
) -> dict[str, object]:
    order = _container(request).order_service.rate_order(order_id, payload.rating)
    return {"success": True, "data": serialize_order(order)}
