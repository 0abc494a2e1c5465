"""Menu catalog models.

The catalog is owned by the menu service. Orders only read an entry to
snapshot its name and price when an item is added.
"""

from decimal import Decimal

from pydantic import BaseModel, Field


class MenuItem(BaseModel):
    """Menu item model."""

    id: int = Field(..., description="Catalog identifier for the menu item")
    name: str = Field(..., description="Item name")
    description: str | None = Field(None, description="Item description")
    price: Decimal = Field(..., description="Item price", ge=0)
    category: str = Field(default="Other", description="Menu section (Main, Drink, ...)")
