"""Order service exposing the order store to the API layer."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from restaurant_order_service.exceptions import StorageUnavailable
from restaurant_order_service.models.order_models import Order
from restaurant_order_service.observability import traced
from restaurant_order_service.observability.metrics import (
    record_item_appended,
    record_order_created,
    record_order_deleted,
)
from restaurant_order_service.repositories.order_repository import OrderRepository
from restaurant_order_service.repositories.sequence_reconciler import SequenceReconciler
from restaurant_order_service.services.menu_service_client import MenuServiceClient
from restaurant_order_service.services.order_cache import OrderCache

logger = logging.getLogger(__name__)

PLACEHOLDER_PRICE = Decimal("0.00")


@dataclass
class RequestedItem:
    """A catalog item and quantity requested for an order.

    Attributes:
        menu_item_id: Catalog id of the item
        quantity: Number of units requested
    """

    menu_item_id: int
    quantity: int


class OrderService:
    """Service for creating, extending, listing and deleting orders.

    Storage is the single source of truth for order ids and content. The
    in-memory cache is loaded from storage at startup and each write
    replaces the affected entry with a fresh copy re-read from storage.
    Reads served over HTTP go to storage; the cache is a mirror only.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        sequence_reconciler: SequenceReconciler,
        order_cache: OrderCache,
        menu_service_client: MenuServiceClient | None = None,
    ) -> None:
        """Initialize the OrderService.

        Args:
            order_repository: Repository owning the order rows
            sequence_reconciler: Reconciler for the order id sequence
            order_cache: In-memory read cache of orders
            menu_service_client: Optional catalog client used to snapshot items
        """
        self.order_repository = order_repository
        self.sequence_reconciler = sequence_reconciler
        self.order_cache = order_cache
        self.menu_service_client = menu_service_client

    @traced("create_order")
    async def create_order(self, customer_name: str) -> int:
        """Create an empty order.

        Args:
            customer_name: Customer display name, validated by the caller

        Returns:
            The storage-assigned order id

        Raises:
            StorageUnavailable: If the order was not created
        """
        order_id = self.order_repository.create(customer_name)
        record_order_created()
        self._refresh_cache(order_id)
        return order_id

    @traced("append_order_item", attributes=("order_id", "menu_item_id"))
    async def append_order_item(
        self,
        order_id: int,
        menu_item_id: int,
        name: str,
        price: Decimal,
        quantity: int,
    ) -> None:
        """Append a line item with the given name and price snapshot.

        Raises:
            OrderNotFound: If the order does not exist
            StorageUnavailable: If storage failed; re-query to learn the outcome
        """
        self._append(order_id, menu_item_id, name, price, quantity)
        self._refresh_cache(order_id)

    @traced("add_catalog_item", attributes=("order_id", "menu_item_id"))
    async def add_catalog_item(self, order_id: int, menu_item_id: int, quantity: int) -> Order:
        """Append a catalog item, snapshotting its current name and price.

        Items missing from the catalog (or a catalog that cannot be reached)
        are added as a zero-priced placeholder.

        Args:
            order_id: Order to extend
            menu_item_id: Catalog id of the item
            quantity: Number of units

        Returns:
            The updated order as stored

        Raises:
            OrderNotFound: If the order does not exist
            StorageUnavailable: If storage failed
        """
        name, price = await self._snapshot_menu_item(menu_item_id)
        self._append(order_id, menu_item_id, name, price, quantity)
        return self._require_order(order_id)

    @traced("place_order")
    async def place_order(self, customer_name: str, items: list[RequestedItem]) -> Order:
        """Create an order and append every requested item.

        The order id comes from storage before any item is appended.

        Args:
            customer_name: Customer display name
            items: Requested catalog items and quantities

        Returns:
            The stored order with all items

        Raises:
            StorageUnavailable: If storage failed at any step
        """
        order_id = await self.create_order(customer_name)

        for requested in items:
            name, price = await self._snapshot_menu_item(requested.menu_item_id)
            self._append(order_id, requested.menu_item_id, name, price, requested.quantity)
            logger.info(f"Added to order #{order_id}: {name} x{requested.quantity}")

        order = self._require_order(order_id)
        logger.info(
            f"Order created: #{order_id} for {customer_name} - Total: {order.total_price}"
        )
        return order

    async def list_orders(self) -> list[Order]:
        """List all orders from storage, newest first."""
        return self.order_repository.list_orders()

    async def load_all_orders_for_startup(self) -> list[Order]:
        """Rebuild all orders from storage, oldest first, and load the cache."""
        orders = self.order_repository.reconstruct_all()
        self.order_cache.load(orders)
        logger.info(f"Loaded {len(orders)} orders from storage into cache")
        return orders

    @traced("delete_order", attributes=("order_id",))
    async def delete_order(self, order_id: int) -> bool:
        """Delete an order and realign the id sequence.

        Returns:
            True if the order existed and was deleted

        Raises:
            StorageUnavailable: If the delete failed
        """
        deleted = self.order_repository.delete(order_id)
        self.order_cache.remove(order_id)
        if deleted:
            record_order_deleted()
            await self.reconcile_id_sequence()
        return deleted

    async def reconcile_id_sequence(self, table_name: str = "orders") -> bool:
        """Realign a table's id sequence with MAX(id).

        Catalog owners call this with their own table after catalog deletes.

        Returns:
            True on success, False if reconciliation failed (already logged)
        """
        return self.sequence_reconciler.reconcile(table_name)

    def cached_orders(self) -> list[Order]:
        """Snapshot copy of the in-memory cache, oldest first.

        Mirrors storage as of the last write through this service. Not used
        by the HTTP routes, which list straight from the database.
        """
        return self.order_cache.snapshot()

    async def _snapshot_menu_item(self, menu_item_id: int) -> tuple[str, Decimal]:
        item = None
        if self.menu_service_client is not None:
            item = await self.menu_service_client.get_menu_item(menu_item_id)

        if item is None:
            logger.warning(f"Item #{menu_item_id} not in catalog, creating placeholder")
            return f"Item #{menu_item_id}", PLACEHOLDER_PRICE

        return item.name, item.price

    def _append(
        self, order_id: int, menu_item_id: int, name: str, price: Decimal, quantity: int
    ) -> None:
        try:
            self.order_repository.append_item(order_id, menu_item_id, name, price, quantity)
        except StorageUnavailable:
            # Outcome unknown, force the next read to go to storage
            self.order_cache.remove(order_id)
            raise
        record_item_appended(quantity)

    def _refresh_cache(self, order_id: int) -> Order | None:
        try:
            order = self.order_repository.get(order_id)
        except StorageUnavailable:
            logger.warning(f"Could not re-read order #{order_id}, dropping it from cache")
            self.order_cache.remove(order_id)
            return None

        if order is None:
            self.order_cache.remove(order_id)
        else:
            self.order_cache.put(order)
        return order

    def _require_order(self, order_id: int) -> Order:
        order = self._refresh_cache(order_id)
        if order is None:
            raise StorageUnavailable(f"Order #{order_id} could not be re-read after update")
        return order
