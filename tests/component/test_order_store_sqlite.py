"""Component tests for the order repository against SQLite."""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import Engine, create_engine, insert, select

from restaurant_order_service.exceptions import OrderNotFound
from restaurant_order_service.models.order_models import LineItem, Order
from restaurant_order_service.repositories.order_repository import OrderRepository
from restaurant_order_service.repositories.schema import create_schema, orders_table


def assert_totals_consistent(order: Order) -> None:
    assert order.total_price == sum((item.line_total for item in order.items), Decimal("0.00"))
    assert order.item_count == sum(item.quantity for item in order.items)


@pytest.mark.component
class TestOrderRepository:
    """Test suite for OrderRepository on a real database."""

    def test_create_returns_increasing_ids(self, order_repository: OrderRepository) -> None:
        """Test that ids are assigned by storage in insertion order."""
        first = order_repository.create("Alice")
        second = order_repository.create("Bob")

        assert first == 1
        assert second == 2

    def test_new_order_is_empty(self, order_repository: OrderRepository) -> None:
        """Test the state of a freshly created order."""
        order_id = order_repository.create("Alice")

        order = order_repository.get(order_id)

        assert order is not None
        assert order.customer_name == "Alice"
        assert order.items == []
        assert order.total_price == Decimal("0.00")
        assert order.item_count == 0
        assert order.created_at is not None

    def test_append_items_updates_totals(self, order_repository: OrderRepository) -> None:
        """Test a customer order with two items."""
        order_id = order_repository.create("Alice")

        order_repository.append_item(order_id, 3, "Tiramisu", Decimal("6.99"), 2)
        order = order_repository.get(order_id)
        assert order is not None
        assert order.total_price == Decimal("13.98")
        assert order.item_count == 2
        assert_totals_consistent(order)

        order_repository.append_item(order_id, 5, "Coca Cola", Decimal("2.50"), 1)
        order = order_repository.get(order_id)
        assert order is not None
        assert order.items == [
            LineItem(menu_item_id=3, name="Tiramisu", price=Decimal("6.99"), quantity=2),
            LineItem(menu_item_id=5, name="Coca Cola", price=Decimal("2.50"), quantity=1),
        ]
        assert order.total_price == Decimal("16.48")
        assert order.item_count == 3
        assert_totals_consistent(order)

    def test_append_stores_embedded_array(
        self, order_repository: OrderRepository, sqlite_engine: Engine
    ) -> None:
        """Test the stored text of the items column."""
        order_id = order_repository.create("Alice")
        order_repository.append_item(order_id, 3, "Tiramisu", 6.99, 2)

        with sqlite_engine.connect() as conn:
            items = conn.execute(
                select(orders_table.c["items"]).where(orders_table.c.id == order_id)
            ).scalar_one()

        assert items == '[{"id":3,"name":"Tiramisu","quantity":2,"price":6.99}]'

    def test_names_with_special_characters_survive(
        self, order_repository: OrderRepository
    ) -> None:
        """Test that quotes, commas and newlines in names are preserved."""
        order_id = order_repository.create("Alice")
        name = 'Chef\'s "special", extra\nspicy'
        order_repository.append_item(order_id, 8, name, Decimal("12.00"), 1)

        order = order_repository.get(order_id)

        assert order is not None
        assert order.items[0].name == name

    def test_append_to_missing_order_raises(self, order_repository: OrderRepository) -> None:
        """Test that appending to an unknown order fails without creating it."""
        with pytest.raises(OrderNotFound) as exc_info:
            order_repository.append_item(42, 3, "Tiramisu", Decimal("6.99"), 1)

        assert exc_info.value.order_id == 42
        assert order_repository.list_orders() == []

    def test_list_is_newest_first_and_reconstruct_is_oldest_first(
        self, order_repository: OrderRepository
    ) -> None:
        """Test the two read orderings."""
        for customer in ("Alice", "Bob", "Carol"):
            order_repository.create(customer)

        assert [o.id for o in order_repository.list_orders()] == [3, 2, 1]
        assert [o.id for o in order_repository.reconstruct_all()] == [1, 2, 3]

    def test_malformed_items_do_not_hide_order(
        self,
        order_repository: OrderRepository,
        sqlite_engine: Engine,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that a damaged row is still listed with zero values and a warning."""
        with sqlite_engine.begin() as conn:
            conn.execute(
                insert(orders_table).values(
                    customer_name="Dave",
                    items='[{"id":9,"name":"Soup","quantity":}]',
                    total_price=0,
                    item_count=0,
                )
            )

        orders = order_repository.list_orders()

        assert len(orders) == 1
        assert orders[0].items[0].menu_item_id == 9
        assert orders[0].items[0].quantity == 0
        assert "malformed line item" in caplog.text

    def test_oversized_price_does_not_hide_other_orders(
        self, order_repository: OrderRepository, sqlite_engine: Engine
    ) -> None:
        """Test that a price too large to quantize decodes as zero instead of failing the list."""
        good_id = order_repository.create("Alice")
        order_repository.append_item(good_id, 3, "Tiramisu", Decimal("6.99"), 2)
        with sqlite_engine.begin() as conn:
            conn.execute(
                insert(orders_table).values(
                    customer_name="Eve",
                    items='[{"id":1,"name":"X","quantity":1,"price":' + "9" * 40 + "}]",
                    total_price=0,
                    item_count=1,
                )
            )

        orders = order_repository.list_orders()

        assert [order.customer_name for order in orders] == ["Eve", "Alice"]
        assert orders[0].items[0].price == Decimal("0.00")
        assert orders[1].total_price == Decimal("13.98")
        assert len(order_repository.reconstruct_all()) == 2

    def test_unknown_ids_leave_no_locks_behind(self, order_repository: OrderRepository) -> None:
        """Test that appends and deletes on missing orders do not grow the lock registry."""
        for order_id in range(100, 150):
            with pytest.raises(OrderNotFound):
                order_repository.append_item(order_id, 3, "Tiramisu", Decimal("6.99"), 1)
            assert order_repository.delete(order_id) is False

        assert len(order_repository.locks) == 0

        order_id = order_repository.create("Alice")
        order_repository.append_item(order_id, 3, "Tiramisu", Decimal("6.99"), 1)
        order_repository.delete(order_id)
        assert len(order_repository.locks) == 0

    def test_delete(self, order_repository: OrderRepository) -> None:
        """Test deleting existing and missing orders."""
        order_id = order_repository.create("Alice")
        order_repository.append_item(order_id, 3, "Tiramisu", Decimal("6.99"), 1)

        assert order_repository.delete(order_id) is True
        assert order_repository.get(order_id) is None
        assert order_repository.delete(order_id) is False


@pytest.mark.component
class TestConcurrentAppends:
    """Test suite for appends racing on the same order."""

    @pytest.fixture
    def file_engine(self, tmp_path: Path) -> Engine:
        """File-backed SQLite engine so each thread gets its own connection."""
        engine = create_engine(
            f"sqlite:///{tmp_path / 'orders.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        create_schema(engine)
        return engine

    def test_no_append_is_lost(self, file_engine: Engine) -> None:
        """Test that every concurrent append is reflected in items and totals."""
        repository = OrderRepository(engine=file_engine)
        order_id = repository.create("Alice")

        def append(n: int) -> None:
            repository.append_item(order_id, n, f"Item {n}", Decimal("1.25"), 1)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(append, range(40)))

        order = repository.get(order_id)
        assert order is not None
        assert len(order.items) == 40
        assert sorted(item.menu_item_id for item in order.items) == list(range(40))
        assert order.item_count == 40
        assert order.total_price == Decimal("50.00")
        assert_totals_consistent(order)
        file_engine.dispose()
