"""Persisted table layout and wire-level naming for the DynamoDB emulator."""

from sqlalchemy import JSON, BigInteger, Column, MetaData, String, Table

# Wire protocol
TARGET_PREFIX = "DynamoDB_20120810."
CONTENT_TYPE = "application/x-amz-json-1.0"

# Default key attributes for items written to a table that was never created
DEFAULT_PARTITION_KEY = "$p"
DEFAULT_SORT_KEY = "$s"

# Single-attribute identifier used when an item carries no partition attribute
IDENTIFIER_KEY = "id"

# Key types in a KeySchema element
HASH = "HASH"
RANGE = "RANGE"

TABLE_STATUS_ACTIVE = "ACTIVE"

metadata = MetaData()

tables = Table(
    "dynamodb_tables",
    metadata,
    Column("table_name", String, primary_key=True),
    Column("key_schema", JSON, nullable=False),
    Column("attribute_definitions", JSON, nullable=False),
    Column("created_at", BigInteger, nullable=False),
)

items = Table(
    "dynamodb_items",
    metadata,
    Column("table_name", String, primary_key=True),
    Column("item_key", String, primary_key=True),
    Column("item_data", JSON, nullable=False),
    Column("created_at", BigInteger, nullable=False),
    Column("updated_at", BigInteger, nullable=False),
)


def operation_name(target: str) -> str:
    """Strip the service prefix from an ``X-Amz-Target`` header value."""
    return target.removeprefix(TARGET_PREFIX)
