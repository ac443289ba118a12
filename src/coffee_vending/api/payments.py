"""Payment gateway endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import parse_qs

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from coffee_vending.api.schemas import OrderPayload
from coffee_vending.domain.errors import ValidationError

if TYPE_CHECKING:
    from coffee_vending.containers import AppContainer

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/checkout", status_code=201)
async def start_checkout(payload: OrderPayload, request: Request) -> dict[str, object]:
    """Create a pending order and return the encrypted gateway request."""
    container: AppContainer = request.app.state.container
    checkout = container.payment_service.start_checkout(
        payload.user_id, payload.machine_id, payload.recipe_id
    )
    return {
        "success": True,
        "data": {
            "order_id": checkout.order_id,
            "amount": checkout.amount,
            "encRequest": checkout.encrypted_request,
        },
    }


@router.post("/gateway-response")
async def gateway_response(request: Request) -> RedirectResponse:
    """Apply the gateway's form-encoded callback and redirect the customer."""
    container: AppContainer = request.app.state.container
    form = parse_qs((await request.body()).decode())
    encrypted = form.get("encResp", [""])[0]
    if not encrypted:
        raise ValidationError("Missing encResp")
    url = await container.payment_service.handle_gateway_response(encrypted)
    return RedirectResponse(url, status_code=303)
