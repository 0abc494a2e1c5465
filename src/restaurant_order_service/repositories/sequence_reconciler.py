"""Realign auto-increment id generators with the live rows of a table.

Rows can be deleted through more than one path (API, admin tooling, manual
SQL). After a delete the generator is moved so the next insert yields
MAX(id) + 1, or 1 when the table is empty. Reconciliation improves
consistency but is never a precondition for the delete itself, so failures
are logged and reported as False instead of raised.
"""

import logging

from sqlalchemy import Connection, Engine, column, func, select, table, text
from sqlalchemy.exc import SQLAlchemyError

from restaurant_order_service.exceptions import ReconcileFailed
from restaurant_order_service.observability.metrics import record_reconcile

logger = logging.getLogger(__name__)


class SequenceReconciler:
    """Reads and resets the id generator behind a table's integer primary key.

    Supports PostgreSQL serial/identity sequences and SQLite AUTOINCREMENT
    tables.
    """

    SUPPORTED_DIALECTS = ("postgresql", "sqlite")

    def __init__(self, engine: Engine, id_column: str = "id") -> None:
        """Initialize reconciler.

        Args:
            engine: SQLAlchemy engine for the database holding the tables
            id_column: Name of the auto-increment primary key column
        """
        self.engine = engine
        self.id_column = id_column

    def reconcile(self, table_name: str = "orders") -> bool:
        """Set the generator so the next insert receives MAX(id) + 1.

        Calling this when the generator is already aligned changes nothing.

        Args:
            table_name: Table whose generator should be realigned

        Returns:
            bool: True if the generator is aligned, False if reconciliation failed
        """
        try:
            with self.engine.begin() as conn:
                current_max = self._current_max(conn, table_name)
                if self.engine.dialect.name == "postgresql":
                    self._reset_postgresql(conn, table_name, current_max)
                elif self.engine.dialect.name == "sqlite":
                    self._reset_sqlite(conn, table_name, current_max)
                else:
                    raise ReconcileFailed(
                        f"Sequence reconciliation not supported for {self.engine.dialect.name}"
                    )
        except (ReconcileFailed, SQLAlchemyError) as e:
            logger.error(f"ReconcileFailed for table {table_name}: {e}")
            record_reconcile(table_name, success=False)
            return False

        record_reconcile(table_name, success=True)
        logger.info(f"Id sequence for {table_name} aligned, next id will be {current_max + 1}")
        return True

    def next_value(self, table_name: str = "orders") -> int:
        """Return the id the next insert will receive, without consuming it.

        Args:
            table_name: Table whose generator to inspect

        Returns:
            int: The next id

        Raises:
            ReconcileFailed: If the generator cannot be introspected
        """
        try:
            with self.engine.connect() as conn:
                if self.engine.dialect.name == "postgresql":
                    sequence = self._postgresql_sequence(conn, table_name)
                    row = conn.execute(text(f"SELECT last_value, is_called FROM {sequence}")).one()
                    return int(row.last_value) + 1 if row.is_called else int(row.last_value)
                if self.engine.dialect.name == "sqlite":
                    seq = conn.execute(
                        text("SELECT seq FROM sqlite_sequence WHERE name = :name"),
                        {"name": table_name},
                    ).scalar()
                    return int(seq or 0) + 1
        except SQLAlchemyError as e:
            raise ReconcileFailed(f"Cannot read id sequence for {table_name}") from e

        raise ReconcileFailed(
            f"Sequence introspection not supported for {self.engine.dialect.name}"
        )

    def _current_max(self, conn: Connection, table_name: str) -> int:
        target = table(table_name, column(self.id_column))
        query = select(func.coalesce(func.max(target.c[self.id_column]), 0))
        return int(conn.execute(query).scalar_one())

    def _postgresql_sequence(self, conn: Connection, table_name: str) -> str:
        sequence = conn.execute(
            select(func.pg_get_serial_sequence(table_name, self.id_column))
        ).scalar()
        if sequence is None:
            raise ReconcileFailed(f"No sequence backs {table_name}.{self.id_column}")
        return str(sequence)

    def _reset_postgresql(self, conn: Connection, table_name: str, current_max: int) -> None:
        # setval cannot go below 1; is_called=false makes the next nextval return 1.
        sequence = self._postgresql_sequence(conn, table_name)
        conn.execute(select(func.setval(sequence, max(current_max, 1), current_max > 0)))

    def _reset_sqlite(self, conn: Connection, table_name: str, current_max: int) -> None:
        # sqlite_sequence holds the last id handed out, not the next one.
        params = {"name": table_name, "seq": current_max}
        result = conn.execute(
            text("UPDATE sqlite_sequence SET seq = :seq WHERE name = :name"), params
        )
        if result.rowcount == 0:
            conn.execute(text("INSERT INTO sqlite_sequence (name, seq) VALUES (:name, :seq)"), params)
