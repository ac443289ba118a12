"""Tests for the payment gateway flow."""

import asyncio
from urllib.parse import urlencode

from fastapi.testclient import TestClient

from coffee_vending.api.app import create_app
from coffee_vending.containers import AppContainer
from coffee_vending.domain.orders import CANCELLED, COMPLETED, FAILED, PENDING
from coffee_vending.services.payments import map_gateway_status, parse_gateway_response


def test_parse_gateway_response_decodes_values() -> None:
    fields = parse_gateway_response("order_id=abc&order_status=Success&note=a%20b&")

    assert fields == {"order_id": "abc", "order_status": "Success", "note": "a b"}


def test_map_gateway_status() -> None:
    assert map_gateway_status("Success") == COMPLETED
    assert map_gateway_status("Aborted") == CANCELLED
    assert map_gateway_status("Failure") == FAILED
    assert map_gateway_status("") == FAILED


def test_checkout_creates_pending_order(container: AppContainer) -> None:
    checkout = container.payment_service.start_checkout("u1", "m1", "latte")

    order = container.order_service.get_order(checkout.order_id)
    assert order.status == PENDING
    assert checkout.amount == "4.00"
    assert f"order_id={order.id}" in checkout.encrypted_request
    assert container.inventory_service.quantities_for("m1")["milk"] == 200


def test_successful_payment_finalizes_once(container: AppContainer) -> None:
    service = container.payment_service
    checkout = service.start_checkout("u1", "m1", "latte")
    response = f"order_id={checkout.order_id}&order_status=Success"

    first = asyncio.run(service.handle_gateway_response(response))
    second = asyncio.run(service.handle_gateway_response(response))

    assert first == second == (
        "http://localhost:3000/product/success?recipe=Latte&price=4.0"
    )
    assert container.inventory_service.quantities_for("m1")["milk"] == 110


def test_aborted_payment_cancels_order(container: AppContainer) -> None:
    service = container.payment_service
    checkout = service.start_checkout("u1", "m1", "latte")

    url = asyncio.run(
        service.handle_gateway_response(
            f"order_id={checkout.order_id}&order_status=Aborted"
        )
    )

    assert url == "http://localhost:3000/product/auth?payment=cancelled"
    assert container.order_service.get_order(checkout.order_id).status == CANCELLED
    assert container.inventory_service.quantities_for("m1")["milk"] == 200


def test_paid_order_without_stock_redirects_to_failure(
    container: AppContainer, repositories
) -> None:
    service = container.payment_service
    checkout = service.start_checkout("u1", "m1", "latte")
    repositories.inventory.seed("m1", {"milk": 0})

    url = asyncio.run(
        service.handle_gateway_response(
            f"order_id={checkout.order_id}&order_status=Success"
        )
    )

    assert url.endswith("/product/auth?payment=failed")
    assert container.order_service.get_order(checkout.order_id).status == FAILED


def test_gateway_callback_endpoint_redirects(container: AppContainer) -> None:
    client = TestClient(create_app(container, start_background=False))
    checkout = client.post(
        "/api/payments/checkout",
        json={"user_id": "u1", "machine_id": "m1", "recipe_id": "espresso"},
    ).json()["data"]
    body = urlencode(
        {"encResp": f"order_id={checkout['order_id']}&order_status=Success"}
    )

    response = client.post(
        "/api/payments/gateway-response",
        content=body,
        headers={"content-type": "application/x-www-form-urlencoded"},
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert "/product/success?recipe=Espresso" in response.headers["location"]


def test_gateway_callback_without_payload(container: AppContainer) -> None:
    client = TestClient(create_app(container, start_background=False))

    response = client.post("/api/payments/gateway-response", content=b"")

    assert response.status_code == 400


def test_late_callback_for_finished_order_redirects(container: AppContainer) -> None:
    service = container.payment_service
    checkout = service.start_checkout("u1", "m1", "latte")
    asyncio.run(
        service.handle_gateway_response(
            f"order_id={checkout.order_id}&order_status=Success"
        )
    )

    url = asyncio.run(
        service.handle_gateway_response(
            f"order_id={checkout.order_id}&order_status=Aborted"
        )
    )

    assert url.startswith("http://localhost:3000/product/success?recipe=Latte")
    assert container.order_service.get_order(checkout.order_id).status == COMPLETED
    assert container.inventory_service.quantities_for("m1")["milk"] == 110


def test_late_callback_after_cancel_redirects_with_current_status(
    container: AppContainer,
) -> None:
    service = container.payment_service
    checkout = service.start_checkout("u1", "m1", "latte")
    asyncio.run(container.order_service.transition(checkout.order_id, CANCELLED))

    url = asyncio.run(
        service.handle_gateway_response(
            f"order_id={checkout.order_id}&order_status=Success"
        )
    )

    assert url == "http://localhost:3000/product/auth?payment=cancelled"
    assert container.inventory_service.quantities_for("m1")["milk"] == 200
