"""Error taxonomy for the order store.

Storage and lookup failures are raised to callers. Reconciliation and
embedded-data failures are handled where they occur and never escape
their component.
"""


class OrderStoreError(Exception):
    """Base class for order store errors."""


class StorageUnavailable(OrderStoreError):
    """The database could not be reached or the statement failed.

    For appends the caller cannot tell whether the write landed and must
    re-query the order to find out.
    """


class OrderNotFound(OrderStoreError):
    """No order row exists for the requested id."""

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class ReconcileFailed(OrderStoreError):
    """The id generator could not be read or realigned."""


class MalformedEmbeddedData(OrderStoreError):
    """An embedded JSON field did not parse as expected."""
