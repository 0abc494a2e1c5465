"""Order aggregate models.

An Order owns its LineItems; items are never stored as rows of their own but
as a JSON array embedded in the order row. These models convert between that
embedded representation, the database row and the API wire shape.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from restaurant_order_service.encoding.embedded_json import (
    CENTS,
    encode_object,
    extract_decimal,
    extract_int,
    extract_string,
    split_top_level_array,
)


def to_money(value: Any) -> Decimal:
    """Normalize a stored or supplied amount to a two-decimal Decimal.

    Args:
        value: Decimal, float, int, numeric string or None

    Returns:
        Decimal: Amount quantized to cents (None becomes 0.00)
    """
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def _stored_money(value: Decimal) -> Decimal:
    # Amounts too large to hold in cents are damaged data, read as zero
    try:
        return to_money(value)
    except InvalidOperation:
        return Decimal("0.00")


class LineItem(BaseModel):
    """Snapshot of a menu item as it was when added to an order.

    Name and price are copied at add time, later catalog edits do not
    change historical orders.
    """

    model_config = ConfigDict(frozen=True)

    menu_item_id: int = Field(..., description="Catalog id of the ordered item")
    name: str = Field(..., description="Item name at the time it was ordered")
    price: Decimal = Field(..., description="Unit price at the time it was ordered")
    quantity: int = Field(..., description="Number of units ordered")

    @property
    def line_total(self) -> Decimal:
        """Price multiplied by quantity."""
        return self.price * self.quantity

    def to_fragment(self) -> str:
        """Encode as one element of the embedded item array."""
        return encode_object(
            [
                ("id", self.menu_item_id),
                ("name", self.name),
                ("quantity", self.quantity),
                ("price", self.price),
            ]
        )

    @classmethod
    def from_fragment(cls, fragment: str) -> "LineItem":
        """Decode one element of the embedded item array.

        Missing or malformed fields take their zero value.
        """
        return cls(
            menu_item_id=extract_int(fragment, "id"),
            name=extract_string(fragment, "name"),
            price=_stored_money(extract_decimal(fragment, "price")),
            quantity=extract_int(fragment, "quantity"),
        )

    def to_wire(self) -> dict[str, Any]:
        """API representation of the line item."""
        return {
            "id": self.menu_item_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": float(self.price),
        }


class Order(BaseModel):
    """Order aggregate root.

    total_price and item_count are cached values maintained by storage on
    every append; they always equal the sums over items.
    """

    id: int = Field(..., description="Storage-assigned order id", gt=0)
    customer_name: str = Field(..., description="Customer display name")
    created_at: datetime | None = Field(None, description="Time the order row was created")
    items: list[LineItem] = Field(default_factory=list, description="Ordered line items")
    total_price: Decimal = Field(default=Decimal("0.00"), description="Sum of price * quantity")
    item_count: int = Field(default=0, description="Sum of quantities", ge=0)

    @classmethod
    def from_row(cls, row: Any) -> "Order":
        """Rebuild an Order from an orders table row.

        Args:
            row: Row exposing id, customer_name, order_date, items,
                total_price and item_count attributes

        Returns:
            Order: Reconstructed aggregate
        """
        return cls(
            id=row.id,
            customer_name=row.customer_name or "",
            created_at=row.order_date,
            items=[LineItem.from_fragment(f) for f in split_top_level_array(row.items)],
            total_price=to_money(row.total_price),
            item_count=row.item_count or 0,
        )

    def to_wire(self) -> dict[str, Any]:
        """API representation of the order."""
        return {
            "id": self.id,
            "customer": self.customer_name,
            "orderDate": self.created_at.isoformat(sep=" ") if self.created_at else None,
            "items": [item.to_wire() for item in self.items],
            "price": float(self.total_price),
            "itemCount": self.item_count,
        }
