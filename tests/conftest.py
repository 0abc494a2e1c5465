"""Shared pytest fixtures and configuration for all tests."""

import os
from collections.abc import Iterator
from decimal import Decimal

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

# main.py builds the real application at import time unless in test mode
os.environ.setdefault("ENVIRONMENT", "test")

from restaurant_order_service.models.menu_models import MenuItem  # noqa: E402
from restaurant_order_service.repositories.order_repository import OrderRepository  # noqa: E402
from restaurant_order_service.repositories.schema import create_schema  # noqa: E402
from restaurant_order_service.repositories.sequence_reconciler import (  # noqa: E402
    SequenceReconciler,
)


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    """In-memory SQLite engine with the orders schema created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def order_repository(sqlite_engine: Engine) -> OrderRepository:
    """OrderRepository backed by the in-memory SQLite engine."""
    return OrderRepository(engine=sqlite_engine)


@pytest.fixture
def sequence_reconciler(sqlite_engine: Engine) -> SequenceReconciler:
    """SequenceReconciler backed by the in-memory SQLite engine."""
    return SequenceReconciler(engine=sqlite_engine)


@pytest.fixture
def mock_menu_items() -> list[MenuItem]:
    """Fixture providing sample catalog entries."""
    return [
        MenuItem(
            id=3,
            name="Tiramisu",
            description="Italian coffee-flavored dessert",
            price=Decimal("6.99"),
            category="Dessert",
        ),
        MenuItem(
            id=5,
            name="Coca Cola",
            description="Refreshing soft drink",
            price=Decimal("2.50"),
            category="Drink",
        ),
    ]
