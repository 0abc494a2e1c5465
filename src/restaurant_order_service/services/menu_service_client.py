"""Client for interacting with the Menu Service API."""

import logging
from decimal import Decimal

import httpx

from restaurant_order_service.models.menu_models import MenuItem

logger = logging.getLogger(__name__)


class MenuServiceClient:
    """HTTP client for reading catalog entries from the Menu Service.

    Orders snapshot the name and price of a catalog entry when an item is
    added, so the only call needed is a lookup by id.
    """

    def __init__(self, base_url: str, api_key: str, timeout_seconds: float = 5.0) -> None:
        """Initialize the Menu Service client.

        Args:
            base_url: Base URL of the Menu Service API (e.g., "https://menu.example.com")
            api_key: API key for service-to-service authentication
            timeout_seconds: Per-request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    async def get_menu_item(self, menu_item_id: int) -> MenuItem | None:
        """Fetch a single menu item by its catalog id.

        Args:
            menu_item_id: Catalog id of the item

        Returns:
            MenuItem if found, None if it does not exist or the request failed
        """
        url = f"{self.base_url}/api/menu/{menu_item_id}"
        headers = {"X-API-Key": self.api_key}

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(url, headers=headers)
                if response.status_code == 404:
                    logger.info(f"Menu item {menu_item_id} not found in catalog")
                    return None
                response.raise_for_status()
                data = response.json()

                # Prices arrive as strings or floats; keep them exact
                data["price"] = Decimal(str(data["price"]))
                return MenuItem(**data)

        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            logger.error(f"Failed to fetch menu item {menu_item_id}: {e}")
            return None
