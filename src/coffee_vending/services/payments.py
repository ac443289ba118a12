"""Payment gateway checkout and callback handling."""

import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote, unquote, urlencode

from coffee_vending.domain.errors import (
    ConflictError,
    DeductionError,
    FinalizationError,
    InsufficientInventoryError,
    NotFoundError,
    ValidationError,
)
from coffee_vending.domain.orders import CANCELLED, COMPLETED, FAILED
from coffee_vending.services.orders import OrderService

_logger = logging.getLogger(__name__)


class GatewayCipher(Protocol):
    """Encrypts requests to and decrypts responses from the gateway."""

    def encrypt(self, plain_text: str) -> str:
        """Return the gateway-encrypted form of a request."""

    def decrypt(self, cipher_text: str) -> str:
        """Return the plain `key=value&...` form of a response."""


class PlainTextGatewayCipher:
    """Pass-through cipher for gateways that accept plain requests."""

    def encrypt(self, plain_text: str) -> str:
        return plain_text

    def decrypt(self, cipher_text: str) -> str:
        return cipher_text


@dataclass(frozen=True)
class CheckoutRequest:
    order_id: str
    amount: str
    encrypted_request: str


def parse_gateway_response(text: str) -> dict[str, str]:
    """Decode a `key=value&key2=value2` gateway response."""
    fields: dict[str, str] = {}
    for pair in text.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        fields[key] = unquote(value)
    return fields


def map_gateway_status(gateway_status: str) -> str:
    """Map a gateway order status onto an order status."""
    normalized = gateway_status.strip().lower()
    if normalized == "success":
        return COMPLETED
    if normalized == "aborted":
        return CANCELLED
    return FAILED


@dataclass
class PaymentService:
    orders: OrderService
    cipher: GatewayCipher
    client_public_url: str = "http://localhost:3000"
    currency: str = "INR"

    def start_checkout(
        self, user_id: str, machine_id: str, recipe_id: str
    ) -> CheckoutRequest:
        """Create a pending order and the encrypted gateway request for it."""
        order = self.orders.create_order(user_id, machine_id, recipe_id)
        amount = f"{order.bill:.2f}"
        plain = urlencode(
            {
                "order_id": order.id,
                "amount": amount,
                "currency": self.currency,
                "merchant_param1": user_id,
                "merchant_param2": machine_id,
                "merchant_param3": recipe_id,
            }
        )
        return CheckoutRequest(
            order_id=order.id,
            amount=amount,
            encrypted_request=self.cipher.encrypt(plain),
        )

    async def handle_gateway_response(self, encrypted_response: str) -> str:
        """Apply a gateway callback and return the client redirect URL."""
        fields = parse_gateway_response(self.cipher.decrypt(encrypted_response))
        order_id = fields.get("order_id")
        if not order_id:
            raise ValidationError("Invalid gateway response")
        status = map_gateway_status(fields.get("order_status", ""))
        try:
            order = await self.orders.transition(order_id, status)
        except (InsufficientInventoryError, DeductionError):
            _logger.warning(
                "Paid order could not be finalized", extra={"order_id": order_id}
            )
            status = FAILED
        except (ConflictError, FinalizationError):
            # The order already reached a final status; report that one.
            order = self.orders.get_order(order_id)
            status = order.status
        else:
            status = order.status

        base = self.client_public_url.rstrip("/")
        if status == COMPLETED:
            try:
                recipe_name = self.orders.catalog.get_recipe(order.recipe_id).name
            except NotFoundError:
                recipe_name = "Coffee"
            return (
                f"{base}/product/success?recipe={quote(recipe_name)}"
                f"&price={quote(str(order.bill))}"
            )
        return f"{base}/product/auth?payment={status}"
