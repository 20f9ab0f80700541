"""SQLAlchemy-backed record store for emulated tables and items."""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Connection, Engine, create_engine, delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from . import schema
from .exceptions import StorageError
from .models import DEFAULT_KEY_SCHEMA, KeySchema, Record, TableDescription

logger = logging.getLogger(__name__)

MEMORY_URL = "sqlite://"


def now_ms() -> int:
    """Current time in milliseconds."""
    return int(time.time() * 1000)


def create_store_engine(url: str) -> Engine:
    """
    Create a SQLAlchemy engine for a store URL.

    In-memory SQLite databases share a single connection so that every
    session of one store sees the same data.
    """
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if url == MEMORY_URL or ":memory:" in url:
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(url, connect_args=connect_args)
    return create_engine(url)


class StoreSession:
    """
    Store operations bound to one database transaction.

    Obtained from ``RecordStore.transaction()``; everything done through a
    session commits or rolls back together.
    """

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    # -------------------------------------------------------------------------
    # Table metadata
    # -------------------------------------------------------------------------

    def put_table(self, description: TableDescription) -> None:
        """Create or overwrite table metadata. Items are left untouched."""
        values = {
            "key_schema": description.key_schema.to_definition(),
            "attribute_definitions": description.attribute_definitions,
            "created_at": description.created_at,
        }
        result = self._conn.execute(
            update(schema.tables)
            .where(schema.tables.c.table_name == description.name)
            .values(**values)
        )
        if result.rowcount == 0:
            self._conn.execute(
                insert(schema.tables).values(table_name=description.name, **values)
            )

    def get_table(self, table_name: str) -> TableDescription | None:
        row = self._conn.execute(
            select(schema.tables).where(schema.tables.c.table_name == table_name)
        ).first()
        if row is None:
            return None
        return self._to_description(row)

    def list_tables(self) -> list[TableDescription]:
        rows = self._conn.execute(select(schema.tables).order_by(schema.tables.c.table_name))
        return [self._to_description(row) for row in rows]

    def key_schema(self, table_name: str) -> KeySchema:
        """Key schema of a table; tables never created use the default schema."""
        description = self.get_table(table_name)
        if description is None:
            return DEFAULT_KEY_SCHEMA
        return description.key_schema

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def put(self, table_name: str, key: str, item: dict[str, Any], now: int) -> None:
        """
        Insert or replace the item stored under ``key``.

        An existing record keeps its ``created_at``; only the document and
        ``updated_at`` change.
        """
        result = self._conn.execute(
            update(schema.items)
            .where(schema.items.c.table_name == table_name, schema.items.c.item_key == key)
            .values(item_data=item, updated_at=now)
        )
        if result.rowcount == 0:
            self._conn.execute(
                insert(schema.items).values(
                    table_name=table_name,
                    item_key=key,
                    item_data=item,
                    created_at=now,
                    updated_at=now,
                )
            )

    def get(self, table_name: str, key: str) -> Record | None:
        row = self._conn.execute(
            select(schema.items).where(
                schema.items.c.table_name == table_name, schema.items.c.item_key == key
            )
        ).first()
        if row is None:
            return None
        return self._to_record(row)

    def delete(self, table_name: str, key: str) -> None:
        """Delete the item stored under ``key``. Deleting a missing key is a no-op."""
        self._conn.execute(
            delete(schema.items).where(
                schema.items.c.table_name == table_name, schema.items.c.item_key == key
            )
        )

    def list_by_prefix(self, table_name: str, prefix: str) -> list[Record]:
        """Return records whose key starts with ``prefix``, in key order."""
        # substr instead of LIKE: SQLite LIKE is case-insensitive
        rows = self._conn.execute(
            select(schema.items)
            .where(
                schema.items.c.table_name == table_name,
                func.substr(schema.items.c.item_key, 1, len(prefix)) == prefix,
            )
            .order_by(schema.items.c.item_key)
        )
        return [self._to_record(row) for row in rows]

    def list_all(self, table_name: str) -> list[Record]:
        """Return every record of a table, in key order."""
        rows = self._conn.execute(
            select(schema.items)
            .where(schema.items.c.table_name == table_name)
            .order_by(schema.items.c.item_key)
        )
        return [self._to_record(row) for row in rows]

    @staticmethod
    def _to_record(row: Any) -> Record:
        return Record(
            table_name=row.table_name,
            key=row.item_key,
            item=row.item_data,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_description(row: Any) -> TableDescription:
        return TableDescription(
            name=row.table_name,
            key_schema=KeySchema.from_definition(row.key_schema),
            attribute_definitions=row.attribute_definitions,
            created_at=row.created_at,
        )


class RecordStore:
    """
    Durable mapping from (table, derived key) to item documents.

    The store owns its engine; components receive the store instance
    rather than reaching for shared state, so independent stores can
    coexist in one process.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        try:
            schema.metadata.create_all(engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to initialize storage: {e}") from e

    @classmethod
    def from_url(cls, url: str) -> "RecordStore":
        """Open (and initialize if needed) the store at a database URL."""
        return cls(create_store_engine(url))

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        """Release pooled database connections."""
        self._engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[StoreSession]:
        """
        Run a block of store operations as one database transaction.

        Exceptions raised inside the block roll the transaction back and
        propagate unchanged; database failures become ``StorageError``.
        """
        try:
            with self._engine.begin() as conn:
                yield StoreSession(conn)
        except SQLAlchemyError as e:
            logger.error("Storage operation failed: %s", e)
            raise StorageError(f"Storage operation failed: {e}") from e

    # Single-call conveniences, each in its own transaction

    def put_table(self, description: TableDescription) -> None:
        with self.transaction() as session:
            session.put_table(description)

    def get_table(self, table_name: str) -> TableDescription | None:
        with self.transaction() as session:
            return session.get_table(table_name)

    def list_tables(self) -> list[TableDescription]:
        with self.transaction() as session:
            return session.list_tables()

    def key_schema(self, table_name: str) -> KeySchema:
        with self.transaction() as session:
            return session.key_schema(table_name)

    def put(self, table_name: str, key: str, item: dict[str, Any], now: int) -> None:
        with self.transaction() as session:
            session.put(table_name, key, item, now)

    def get(self, table_name: str, key: str) -> Record | None:
        with self.transaction() as session:
            return session.get(table_name, key)

    def delete(self, table_name: str, key: str) -> None:
        with self.transaction() as session:
            session.delete(table_name, key)

    def list_by_prefix(self, table_name: str, prefix: str) -> list[Record]:
        with self.transaction() as session:
            return session.list_by_prefix(table_name, prefix)

    def list_all(self, table_name: str) -> list[Record]:
        with self.transaction() as session:
            return session.list_all(table_name)
