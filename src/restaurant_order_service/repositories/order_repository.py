"""Repository for the order aggregate.

This is the only code that reads or writes order rows. Line items are kept
as an embedded JSON array in the row, so appending an item is a
read-modify-write of (items, total_price, item_count). Appends to the same
order are serialized with a per-order lock and the new values are written
back in a single UPDATE so readers never see a half-applied append.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal

from sqlalchemy import Engine, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from restaurant_order_service.encoding.embedded_json import encode_array, split_top_level_array
from restaurant_order_service.exceptions import OrderNotFound, StorageUnavailable
from restaurant_order_service.models.order_models import LineItem, Order, to_money
from restaurant_order_service.repositories.schema import orders_table

logger = logging.getLogger(__name__)


class OrderLocks:
    """Registry of one mutex per order id."""

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def _lock_for(self, order_id: int) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(order_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[order_id] = lock
            return lock

    @contextmanager
    def hold(self, order_id: int) -> Iterator[None]:
        """Hold the lock for an order for the duration of the block."""
        with self._lock_for(order_id):
            yield

    def discard(self, order_id: int) -> None:
        """Forget the lock of a deleted or unknown order."""
        with self._registry_lock:
            self._locks.pop(order_id, None)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)


class OrderRepository:
    """Repository for order aggregate persistence.

    Manages rows of the orders table through a SQLAlchemy engine. Connection
    and statement failures surface as StorageUnavailable.
    """

    def __init__(self, engine: Engine) -> None:
        """Initialize repository.

        Args:
            engine: SQLAlchemy engine for the order database
        """
        self.engine = engine
        self.table = orders_table
        self.locks = OrderLocks()

    def create(self, customer_name: str) -> int:
        """Insert an empty order and return its storage-generated id.

        Args:
            customer_name: Customer display name

        Returns:
            int: The new order id

        Raises:
            StorageUnavailable: If the insert could not be performed
        """
        statement = (
            insert(self.table)
            .values(customer_name=customer_name, items="[]", total_price=0, item_count=0)
            .returning(self.table.c.id)
        )
        try:
            with self.engine.begin() as conn:
                order_id: int = conn.execute(statement).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Order creation failed: {e}")
            raise StorageUnavailable("Order creation failed") from e

        logger.info(f"Order created with id {order_id} for customer {customer_name}")
        return order_id

    def append_item(
        self,
        order_id: int,
        menu_item_id: int,
        name: str,
        price: Decimal | float,
        quantity: int,
    ) -> None:
        """Append one line item and update the cached total and count.

        Args:
            order_id: Order to append to
            menu_item_id: Catalog id of the item
            name: Item name snapshot
            price: Unit price snapshot
            quantity: Number of units

        Raises:
            OrderNotFound: If no order exists for order_id
            StorageUnavailable: If the read or write failed; the append may
                or may not have been applied
        """
        item = LineItem(
            menu_item_id=menu_item_id,
            name=name,
            price=to_money(price),
            quantity=quantity,
        )
        columns = self.table.c
        query = (
            select(columns["items"], columns.total_price, columns.item_count)
            .where(columns.id == order_id)
            .with_for_update()
        )

        with self.locks.hold(order_id):
            try:
                with self.engine.begin() as conn:
                    row = conn.execute(query).first()
                    if row is None:
                        raise OrderNotFound(order_id)

                    fragments = split_top_level_array(row.items)
                    fragments.append(item.to_fragment())

                    conn.execute(
                        update(self.table)
                        .where(columns.id == order_id)
                        .values(
                            items=encode_array(fragments),
                            total_price=to_money(row.total_price) + item.line_total,
                            item_count=(row.item_count or 0) + item.quantity,
                        )
                    )
            except OrderNotFound:
                # Unknown ids must not leave a lock behind
                self.locks.discard(order_id)
                raise
            except SQLAlchemyError as e:
                logger.error(f"Adding item to order {order_id} failed: {e}")
                raise StorageUnavailable(f"Adding item to order {order_id} failed") from e

        logger.info(f"Added item #{menu_item_id} (qty: {quantity}) to order #{order_id}")

    def get(self, order_id: int) -> Order | None:
        """Retrieve a single order.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise

        Raises:
            StorageUnavailable: If the query failed
        """
        rows = self._fetch(self.table.c.id == order_id, order_by=self.table.c.id)
        return rows[0] if rows else None

    def list_orders(self) -> list[Order]:
        """List all orders, newest first.

        Raises:
            StorageUnavailable: If the query failed
        """
        return self._fetch(None, order_by=self.table.c.id.desc())

    def reconstruct_all(self) -> list[Order]:
        """Rebuild every order, oldest first.

        Used at startup to fill the in-memory cache in a deterministic order.

        Raises:
            StorageUnavailable: If the query failed
        """
        return self._fetch(None, order_by=self.table.c.id.asc())

    def delete(self, order_id: int) -> bool:
        """Delete an order together with its embedded items.

        Args:
            order_id: Order identifier

        Returns:
            bool: True if a row was deleted, False if none existed

        Raises:
            StorageUnavailable: If the delete failed
        """
        with self.locks.hold(order_id):
            try:
                with self.engine.begin() as conn:
                    result = conn.execute(delete(self.table).where(self.table.c.id == order_id))
                    deleted = result.rowcount > 0
            except SQLAlchemyError as e:
                logger.error(f"Deleting order {order_id} failed: {e}")
                raise StorageUnavailable(f"Deleting order {order_id} failed") from e

        self.locks.discard(order_id)
        if deleted:
            logger.info(f"Deleted order #{order_id}")
        return deleted

    def _fetch(self, condition, order_by) -> list[Order]:
        query = select(self.table).order_by(order_by)
        if condition is not None:
            query = query.where(condition)

        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as e:
            logger.error(f"Retrieving orders failed: {e}")
            raise StorageUnavailable("Retrieving orders failed") from e

        orders = [Order.from_row(row) for row in rows]
        for order in orders:
            self._warn_on_malformed_items(order)
        return orders

    @staticmethod
    def _warn_on_malformed_items(order: Order) -> None:
        for position, item in enumerate(order.items):
            if item.quantity <= 0 or not item.name:
                logger.warning(
                    f"Order #{order.id} has a malformed line item at position {position}: "
                    f"name={item.name!r} quantity={item.quantity}"
                )
