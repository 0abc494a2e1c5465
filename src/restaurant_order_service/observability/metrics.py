"""Custom metrics for the restaurant order service."""

from opentelemetry import metrics

# Get meter for order service
meter = metrics.get_meter("order-svc")

orders_created_counter = meter.create_counter(
    name="orders_created_total",
    description="Total number of orders created",
    unit="1",
)

order_items_appended_counter = meter.create_counter(
    name="order_items_appended_total",
    description="Total number of line items appended to orders",
    unit="1",
)

order_units_appended_counter = meter.create_counter(
    name="order_units_appended_total",
    description="Total quantity of units appended to orders",
    unit="1",
)

orders_deleted_counter = meter.create_counter(
    name="orders_deleted_total",
    description="Total number of orders deleted",
    unit="1",
)

# Sequence reconciliation outcomes by table
sequence_reconcile_counter = meter.create_counter(
    name="sequence_reconcile_total",
    description="Id sequence reconciliations by table and outcome",
    unit="1",
)


def record_order_created() -> None:
    """Record a newly created order."""
    orders_created_counter.add(1)


def record_item_appended(quantity: int) -> None:
    """Record a line item appended to an order.

    Args:
        quantity: Units in the appended line item
    """
    order_items_appended_counter.add(1)
    order_units_appended_counter.add(quantity)


def record_order_deleted() -> None:
    """Record a deleted order."""
    orders_deleted_counter.add(1)


def record_reconcile(table_name: str, success: bool) -> None:
    """Record the outcome of a sequence reconciliation.

    Args:
        table_name: Table whose id sequence was reconciled
        success: Whether the generator was realigned
    """
    sequence_reconcile_counter.add(
        1, {"table": table_name, "outcome": "success" if success else "failed"}
    )

