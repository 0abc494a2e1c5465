"""Main application entry point for the restaurant order service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os

from fastapi import FastAPI
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from restaurant_order_service.handlers.api_handler import create_app
from restaurant_order_service.observability import configure_logging, setup_observability
from restaurant_order_service.repositories.order_repository import OrderRepository
from restaurant_order_service.repositories.schema import create_schema
from restaurant_order_service.repositories.sequence_reconciler import SequenceReconciler
from restaurant_order_service.services.menu_service_client import MenuServiceClient
from restaurant_order_service.services.order_cache import OrderCache
from restaurant_order_service.services.order_service import OrderService

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./restaurant_orders.db"


def get_engine() -> Engine:
    """Create the SQLAlchemy engine for the order database.

    Returns:
        Engine configured from DATABASE_URL
    """
    database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

    if database_url.startswith("sqlite"):
        logger.info(f"Using SQLite database at {database_url}")
        # In-memory databases must share one connection across threads
        if ":memory:" in database_url:
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(database_url, connect_args={"check_same_thread": False})

    pool_timeout = int(os.getenv("DATABASE_POOL_TIMEOUT", "30"))
    logger.info("Using relational database from DATABASE_URL")
    return create_engine(database_url, pool_pre_ping=True, pool_timeout=pool_timeout)


def create_menu_service_client() -> MenuServiceClient | None:
    """Create the catalog client from environment variables.

    Returns:
        MenuServiceClient, or None when the menu service is not configured
    """
    menu_service_url = os.getenv("MENU_SERVICE_BASE_URL")
    menu_service_api_key = os.getenv("MENU_SERVICE_API_KEY")

    if not menu_service_url or not menu_service_api_key:
        logger.warning(
            "MENU_SERVICE_BASE_URL or MENU_SERVICE_API_KEY not set - items will be added as placeholders"
        )
        return None

    logger.info(f"Menu service client configured - URL: {menu_service_url}")
    return MenuServiceClient(base_url=menu_service_url, api_key=menu_service_api_key)


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the database engine and schema
    3. Initializes the repository, reconciler and cache
    4. Creates the order service
    5. Creates the FastAPI app
    6. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Initializing restaurant order service...")

    engine = get_engine()
    create_schema(engine)

    order_service = OrderService(
        order_repository=OrderRepository(engine=engine),
        sequence_reconciler=SequenceReconciler(engine=engine),
        order_cache=OrderCache(),
        menu_service_client=create_menu_service_client(),
    )

    logger.info("Order service initialized")

    api_keys_str = os.getenv("ADMIN_API_KEY", "")
    api_keys = [key.strip() for key in api_keys_str.split(",") if key.strip()]

    if not api_keys:
        logger.warning("No ADMIN_API_KEY configured - using development key")
        api_keys = ["dummy-key-for-development"]

    app = create_app(order_service=order_service, api_keys=api_keys)
    setup_observability(app, engine=engine)

    logger.info("Restaurant order service initialized successfully")
    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8080"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
