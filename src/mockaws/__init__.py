"""
mockaws: Local emulator for the DynamoDB item API.

The emulator maps DynamoDB JSON operations (CreateTable, PutItem, GetItem,
UpdateItem, DeleteItem, Query, Scan, TransactWriteItems) onto a SQLAlchemy
record store, so client code can be tested without a cloud account.

Example:
    from mockaws import ItemStoreEngine, RecordStore

    engine = ItemStoreEngine(RecordStore.from_url("sqlite://"))
    engine.handle("PutItem", {"TableName": "users", "Item": {"id": "u1", "age": 7}})
    engine.handle("GetItem", {"TableName": "users", "Key": {"id": "u1"}})

Run the HTTP server with ``mockaws serve`` and point any SDK client at it.
"""

from ._version import __version__
from .engine import ItemStoreEngine
from .exceptions import (
    ClientInputError,
    ConditionalCheckFailedError,
    MockAWSError,
    ResourceNotFoundError,
    StorageError,
    TransactionCanceledError,
    UnsupportedOperationError,
)
from .models import KeySchema, QueryResult, Record, TableDescription
from .store import RecordStore

__all__ = [
    # Version
    "__version__",
    # Main classes
    "ItemStoreEngine",
    "RecordStore",
    # Models
    "KeySchema",
    "QueryResult",
    "Record",
    "TableDescription",
    # Exceptions - Base
    "MockAWSError",
    # Exceptions - Client input
    "ClientInputError",
    "UnsupportedOperationError",
    # Exceptions - Items
    "ResourceNotFoundError",
    "ConditionalCheckFailedError",
    "TransactionCanceledError",
    # Exceptions - Storage
    "StorageError",
]
