"""Unit tests for storage failure handling in the repository and reconciler."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import Engine
from sqlalchemy.exc import OperationalError

from restaurant_order_service.exceptions import ReconcileFailed, StorageUnavailable
from restaurant_order_service.repositories.order_repository import OrderLocks, OrderRepository
from restaurant_order_service.repositories.sequence_reconciler import SequenceReconciler


def connection_refused() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("connection refused"))


@pytest.mark.unit
class TestOrderRepositoryFailures:
    """Test suite for OrderRepository when the database is down."""

    @pytest.fixture
    def mock_engine(self) -> MagicMock:
        """Create an engine whose connections always fail."""
        engine = MagicMock(spec=Engine)
        engine.begin.side_effect = connection_refused()
        engine.connect.side_effect = connection_refused()
        return engine

    @pytest.fixture
    def repository(self, mock_engine: MagicMock) -> OrderRepository:
        """Create an OrderRepository with the failing engine."""
        return OrderRepository(engine=mock_engine)

    def test_create_raises_storage_unavailable(self, repository: OrderRepository) -> None:
        """Test that a failed insert is surfaced, not turned into a fake id."""
        with pytest.raises(StorageUnavailable) as exc_info:
            repository.create("Alice")

        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_append_raises_storage_unavailable(self, repository: OrderRepository) -> None:
        """Test that a failed append is surfaced."""
        with pytest.raises(StorageUnavailable):
            repository.append_item(1, 3, "Tiramisu", 6.99, 2)

    def test_append_releases_order_lock_on_failure(self, repository: OrderRepository) -> None:
        """Test that the per-order lock is released on the error path."""
        with pytest.raises(StorageUnavailable):
            repository.append_item(1, 3, "Tiramisu", 6.99, 2)

        lock = repository.locks._lock_for(1)
        assert lock.acquire(blocking=False) is True
        lock.release()

    def test_list_raises_storage_unavailable(self, repository: OrderRepository) -> None:
        """Test that failed reads are surfaced."""
        with pytest.raises(StorageUnavailable):
            repository.list_orders()

        with pytest.raises(StorageUnavailable):
            repository.reconstruct_all()

    def test_delete_raises_storage_unavailable(self, repository: OrderRepository) -> None:
        """Test that failed deletes are surfaced."""
        with pytest.raises(StorageUnavailable):
            repository.delete(1)


@pytest.mark.unit
class TestOrderLocks:
    """Test suite for OrderLocks."""

    def test_same_order_shares_a_lock(self) -> None:
        """Test that one order id maps to one lock."""
        locks = OrderLocks()
        assert locks._lock_for(1) is locks._lock_for(1)
        assert locks._lock_for(1) is not locks._lock_for(2)

    def test_hold_releases_on_exception(self) -> None:
        """Test that the lock is released when the block raises."""
        locks = OrderLocks()

        with pytest.raises(RuntimeError):
            with locks.hold(4):
                raise RuntimeError("boom")

        assert locks._lock_for(4).locked() is False

    def test_discard_forgets_lock(self) -> None:
        """Test that discarded ids get a new lock."""
        locks = OrderLocks()
        first = locks._lock_for(1)

        locks.discard(1)

        assert locks._lock_for(1) is not first


@pytest.mark.unit
class TestSequenceReconcilerFailures:
    """Test suite for SequenceReconciler failure handling."""

    def test_reconcile_returns_false_when_database_down(self) -> None:
        """Test that reconcile logs and reports failure instead of raising."""
        engine = MagicMock()
        engine.dialect.name = "postgresql"
        engine.begin.side_effect = connection_refused()

        assert SequenceReconciler(engine=engine).reconcile() is False

    def test_reconcile_returns_false_for_unsupported_dialect(self) -> None:
        """Test that dialects without a known generator are reported as failures."""
        engine = MagicMock()
        engine.dialect.name = "oracle"

        assert SequenceReconciler(engine=engine).reconcile() is False

    def test_reconcile_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that the failure is visible in the logs."""
        engine = MagicMock()
        engine.dialect.name = "sqlite"
        engine.begin.side_effect = connection_refused()

        SequenceReconciler(engine=engine).reconcile("menu_items")

        assert "ReconcileFailed for table menu_items" in caplog.text

    def test_next_value_raises_when_database_down(self) -> None:
        """Test that introspection failures raise ReconcileFailed."""
        engine = MagicMock()
        engine.dialect.name = "sqlite"
        engine.connect.side_effect = connection_refused()

        with pytest.raises(ReconcileFailed):
            SequenceReconciler(engine=engine).next_value()
