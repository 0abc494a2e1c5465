"""Process-wide read cache of orders.

The database stays the source of truth. The cache is filled from storage at
startup and every write replaces or drops the affected entry. It only mirrors
storage for in-process readers; the HTTP listing always queries the database.
Readers get deep copies, never the cached objects themselves.
"""

import threading

from restaurant_order_service.models.order_models import Order


class OrderCache:
    """Thread-safe in-memory mirror of stored orders keyed by order id.

    The cache never generates order ids; ids only come from storage.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._orders: dict[int, Order] = {}

    def load(self, orders: list[Order]) -> None:
        """Replace the whole cache content."""
        fresh = {order.id: order.model_copy(deep=True) for order in orders}
        with self._lock:
            self._orders = fresh

    def put(self, order: Order) -> None:
        """Insert or replace a single order."""
        copy = order.model_copy(deep=True)
        with self._lock:
            self._orders[order.id] = copy

    def remove(self, order_id: int) -> bool:
        """Drop an order, returning whether it was cached."""
        with self._lock:
            return self._orders.pop(order_id, None) is not None

    def get(self, order_id: int) -> Order | None:
        with self._lock:
            order = self._orders.get(order_id)
        return order.model_copy(deep=True) if order is not None else None

    def snapshot(self) -> list[Order]:
        """Copy of all cached orders, oldest first."""
        with self._lock:
            orders = [self._orders[key] for key in sorted(self._orders)]
        return [order.model_copy(deep=True) for order in orders]

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)
