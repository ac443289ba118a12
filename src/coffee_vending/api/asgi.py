"""ASGI entrypoint for the coffee vending API."""

from coffee_vending.api.app import create_app
from coffee_vending.containers import build_container

app = create_app(build_container())
