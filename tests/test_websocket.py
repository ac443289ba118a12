"""Tests for the realtime WebSocket endpoint."""

from fastapi.testclient import TestClient

from coffee_vending.api.app import create_app
from coffee_vending.containers import AppContainer
from coffee_vending.services.realtime import (
    ERROR,
    MACHINE_INVENTORY_UPDATE,
    MACHINE_STATUS_UPDATE,
    MACHINE_TEMPERATURE_UPDATE,
    RECIPE_AVAILABILITY_UPDATE,
    RECIPE_INGREDIENT_UPDATE,
    RECIPE_UPDATE,
)

_SNAPSHOT_EVENTS = [
    RECIPE_UPDATE,
    RECIPE_INGREDIENT_UPDATE,
    MACHINE_STATUS_UPDATE,
    MACHINE_TEMPERATURE_UPDATE,
    MACHINE_INVENTORY_UPDATE,
    RECIPE_AVAILABILITY_UPDATE,
]


def test_join_then_request_data_sends_full_snapshot(container: AppContainer) -> None:
    app = create_app(container, start_background=False)
    server_rows = container.inventory_service.list_inventory("m1")

    with TestClient(app) as client, client.websocket_connect("/ws") as websocket:
        websocket.send_json({"event": "join-machine", "data": "m1"})
        websocket.send_json({"event": "request-data", "data": "m1"})
        messages = [websocket.receive_json() for _ in _SNAPSHOT_EVENTS]

    assert [message["event"] for message in messages] == _SNAPSHOT_EVENTS
    inventory = messages[4]["data"]["inventory"]
    assert len(inventory) == len(server_rows)
    availability = messages[5]["data"]
    assert set(availability["unavailableRecipes"]) == {"sweet"}
    assert availability["missingIngredientsByRecipe"] == {"sweet": ["sugar"]}


def test_room_members_receive_inventory_edits(container: AppContainer) -> None:
    app = create_app(container, start_background=False)

    with TestClient(app) as client, client.websocket_connect("/ws") as websocket:
        websocket.send_json({"event": "join-machine", "data": "m1"})
        websocket.send_json({"event": "request-data", "data": "m1"})
        for _ in _SNAPSHOT_EVENTS:
            websocket.receive_json()

        response = client.put(
            "/api/machines/m1/inventory",
            json={"ingredient_id": "milk", "quantity": 0},
        )
        availability = websocket.receive_json()
        echo = websocket.receive_json()

    assert response.status_code == 200
    assert availability["event"] == RECIPE_AVAILABILITY_UPDATE
    assert availability["data"]["delta"] is True
    assert availability["data"]["unavailable"] == ["latte"]
    assert echo["event"] == MACHINE_INVENTORY_UPDATE


def test_request_data_for_unknown_machine(container: AppContainer) -> None:
    app = create_app(container, start_background=False)

    with TestClient(app) as client, client.websocket_connect("/ws") as websocket:
        websocket.send_json({"event": "request-data", "data": "m9"})
        message = websocket.receive_json()

    assert message["event"] == ERROR
    assert message["data"]["message"] == "Machine not found"


def test_unknown_event_is_reported(container: AppContainer) -> None:
    app = create_app(container, start_background=False)

    with TestClient(app) as client, client.websocket_connect("/ws") as websocket:
        websocket.send_json({"event": "dance", "data": "m1"})
        message = websocket.receive_json()

    assert message == {"event": ERROR, "data": {"message": "Unknown event: dance"}}
