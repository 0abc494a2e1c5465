"""FastAPI application for the order API."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from restaurant_order_service.auth.api_dependencies import get_api_key_from_header
from restaurant_order_service.auth.api_key_validator import APIKeyValidator
from restaurant_order_service.exceptions import OrderNotFound, StorageUnavailable
from restaurant_order_service.services.order_service import OrderService, RequestedItem

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class OrderItemRequest(BaseModel):
    """A requested catalog item."""

    model_config = ConfigDict(populate_by_name=True)

    menu_item_id: int = Field(..., alias="menuItemId")
    quantity: int = Field(..., gt=0)


class PlaceOrderRequest(BaseModel):
    """Request body for placing a new order."""

    model_config = ConfigDict(populate_by_name=True)

    customer_name: str = Field(..., alias="customerName")
    items: list[OrderItemRequest] = Field(..., min_length=1)

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, v: str) -> str:
        """Reject blank customer names."""
        if not v.strip():
            raise ValueError("Customer name is required")
        return v.strip()


class DeleteResponse(BaseModel):
    """Response model for order deletion."""

    deleted: int


class SyncSequenceResponse(BaseModel):
    """Response model for sequence reconciliation."""

    synced: bool


def create_app(order_service: OrderService, api_keys: list[str]) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        order_service: Service owning order operations
        api_keys: List of valid admin API keys

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Warm the cache and realign ids before serving; neither is fatal
        try:
            await app.state.order_service.load_all_orders_for_startup()
        except StorageUnavailable as e:
            logger.error(f"Failed to load orders from storage at startup: {e}")
        if not await app.state.order_service.reconcile_id_sequence():
            logger.error("Failed to sync order sequence at startup")
        yield

    app = FastAPI(
        title="Restaurant Order Service API",
        description="Order capture and listing for the restaurant front of house",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.order_service = order_service
    app.state.api_key_validator = APIKeyValidator(api_keys=api_keys)

    @app.exception_handler(OrderNotFound)
    async def order_not_found_handler(request: Request, exc: OrderNotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable_handler(
        request: Request, exc: StorageUnavailable
    ) -> JSONResponse:
        logger.error(f"Storage unavailable during {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"detail": "Order storage unavailable"})

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy")

    def validate_api_key(x_api_key: str | None = Header(None)) -> str:
        """Dependency to validate the admin API key."""
        return get_api_key_from_header(x_api_key=x_api_key, validator=app.state.api_key_validator)

    @app.get("/api/orders", tags=["Orders"])
    async def list_orders() -> list[dict[str, Any]]:
        """List all orders, newest first, in wire format."""
        orders = await app.state.order_service.list_orders()
        return [order.to_wire() for order in orders]

    @app.post("/api/orders", status_code=201, tags=["Orders"])
    async def place_order(request: PlaceOrderRequest) -> dict[str, Any]:
        """Create an order from catalog items.

        Args:
            request: Customer name and requested items

        Returns:
            The created order in wire format
        """
        logger.info(
            f"Order request received: customer={request.customer_name}, items={len(request.items)}"
        )
        order = await app.state.order_service.place_order(
            customer_name=request.customer_name,
            items=[
                RequestedItem(menu_item_id=item.menu_item_id, quantity=item.quantity)
                for item in request.items
            ],
        )
        wire: dict[str, Any] = order.to_wire()
        return wire

    @app.post("/api/orders/{order_id}/items", tags=["Orders"])
    async def add_order_item(order_id: int, item: OrderItemRequest) -> dict[str, Any]:
        """Append one catalog item to an existing order.

        Args:
            order_id: Order to extend
            item: Requested catalog item and quantity

        Returns:
            The updated order in wire format
        """
        order = await app.state.order_service.add_catalog_item(
            order_id=order_id,
            menu_item_id=item.menu_item_id,
            quantity=item.quantity,
        )
        wire: dict[str, Any] = order.to_wire()
        return wire

    @app.delete("/api/orders/{order_id}", response_model=DeleteResponse, tags=["Orders"])
    async def delete_order(order_id: int) -> DeleteResponse:
        """Delete an order.

        Raises:
            HTTPException: 404 if the order does not exist
        """
        if not await app.state.order_service.delete_order(order_id):
            raise HTTPException(status_code=404, detail="Order not found")
        return DeleteResponse(deleted=order_id)

    @app.post(
        "/api/admin/sync-sequence",
        response_model=SyncSequenceResponse,
        tags=["Admin"],
    )
    async def sync_sequence(
        _api_key: str = Depends(validate_api_key),
    ) -> SyncSequenceResponse:
        """Realign the order id sequence with MAX(id).

        Raises:
            HTTPException: 500 if reconciliation failed
        """
        if not await app.state.order_service.reconcile_id_sequence():
            raise HTTPException(status_code=500, detail="Sync failed")
        return SyncSequenceResponse(synced=True)

    return app
