"""HTTP client kiosks use to read catalog and inventory over REST."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class VendingApiClient(Protocol):
    """REST access to the vending service."""

    async def get_recipes(self) -> list[dict[str, object]]:
        """Return every recipe."""

    async def get_recipe_ingredients(self) -> list[dict[str, object]]:
        """Return every recipe-ingredient row."""

    async def get_machine_inventory(self, machine_id: str) -> list[dict[str, object]]:
        """Return the inventory rows of one machine."""

    async def health(self) -> bool:
        """Return True when the service answers its health check."""


@dataclass
class HttpxVendingApiClient(VendingApiClient):
    """HTTPX-backed vending API client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 10

    @classmethod
    def create(cls, base_url: str) -> "HttpxVendingApiClient":
        """Create a client with a managed httpx session."""
        return cls(base_url=base_url.rstrip("/"), http_client=httpx.AsyncClient())

    async def get_recipes(self) -> list[dict[str, object]]:
        return await self._get_list("/api/recipes")

    async def get_recipe_ingredients(self) -> list[dict[str, object]]:
        return await self._get_list("/api/recipe-ingredients")

    async def get_machine_inventory(self, machine_id: str) -> list[dict[str, object]]:
        return await self._get_list(f"/api/machines/{machine_id}/inventory")

    async def health(self) -> bool:
        try:
            response = await self.http_client.get(
                f"{self.base_url}/health", timeout=self.timeout
            )
        except httpx.HTTPError:
            return False
        return response.status_code == httpx.codes.OK

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _get_list(self, path: str) -> list[dict[str, object]]:
        response = await self.http_client.get(
            f"{self.base_url}{path}", timeout=self.timeout
        )
        response.raise_for_status()
        body = response.json()
        if isinstance(body, dict):
            body = body.get("data", [])
        return list(body)
