"""Relational schema for the order store."""

import logging

from sqlalchemy import (
    Column,
    DateTime,
    Engine,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
    text,
)

logger = logging.getLogger(__name__)

metadata = MetaData()

# Line items live in the items column as an embedded JSON array.
orders_table = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("customer_name", String(100), nullable=False),
    Column("order_date", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("items", Text, nullable=False, server_default=text("'[]'")),
    Column("total_price", Numeric(10, 2, asdecimal=False), nullable=False, server_default="0"),
    Column("item_count", Integer, nullable=False, server_default="0"),
    sqlite_autoincrement=True,
)


def create_schema(engine: Engine) -> None:
    """Create the orders table if it does not exist yet.

    Args:
        engine: SQLAlchemy engine bound to the target database
    """
    metadata.create_all(engine)
    logger.info(f"Order schema ready on {engine.dialect.name}")
