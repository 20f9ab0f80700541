"""Item store engine: executes typed table operations against a store."""

import logging
from collections.abc import Callable
from typing import Any, assert_never

from .expressions import parse_key_condition
from .keys import derive_key
from .models import TableDescription
from .operations import (
    CreateTable,
    DeleteItem,
    GetItem,
    Operation,
    PutItem,
    Query,
    Scan,
    TransactWriteItems,
    UpdateItem,
    parse_operation,
)
from .query import QueryEngine
from .store import RecordStore, now_ms
from .transactions import TransactionCoordinator

logger = logging.getLogger(__name__)


class ItemStoreEngine:
    """
    Emulates the DynamoDB item API on top of a record store.

    Example:
        engine = ItemStoreEngine(RecordStore.from_url("sqlite://"))
        engine.handle("PutItem", {"TableName": "orders", "Item": {"id": "1"}})
        engine.handle("GetItem", {"TableName": "orders", "Key": {"id": "1"}})

    Args:
        store: Record store every operation reads and writes
        clock: Source of epoch-millisecond timestamps
    """

    def __init__(self, store: RecordStore, clock: Callable[[], int] = now_ms) -> None:
        self.store = store
        self._clock = clock
        self._queries = QueryEngine(store)
        self._transactions = TransactionCoordinator(store, clock)

    def handle(self, operation_name: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        Parse and execute one wire-level request.

        Raises:
            MockAWSError: Any engine failure, carrying its wire error code
        """
        return self.execute(parse_operation(operation_name, body))

    def execute(self, operation: Operation) -> dict[str, Any]:
        """Execute a parsed operation and return its response body."""
        match operation:
            case CreateTable():
                return {"TableDescription": self.create_table(operation).to_dict()}
            case PutItem():
                return self.put_item(operation)
            case GetItem():
                return self.get_item(operation)
            case UpdateItem():
                return self.update_item(operation)
            case DeleteItem():
                return self.delete_item(operation)
            case Query():
                return self.query(operation)
            case Scan():
                return self.scan(operation)
            case TransactWriteItems():
                return self.transact_write_items(operation)
            case _:
                assert_never(operation)

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def create_table(self, operation: CreateTable) -> TableDescription:
        """Create a table, overwriting the schema of an existing one."""
        description = TableDescription(
            name=operation.table_name,
            key_schema=operation.key_schema,
            attribute_definitions=operation.attribute_definitions,
            created_at=self._clock(),
        )
        self.store.put_table(description)
        logger.info("Created table %s", operation.table_name)
        return description

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def put_item(self, operation: PutItem) -> dict[str, Any]:
        self._transactions.write(operation)
        return {}

    def get_item(self, operation: GetItem) -> dict[str, Any]:
        key = derive_key(operation.key, self.store.key_schema(operation.table_name))
        record = self.store.get(operation.table_name, key)
        if record is None:
            return {}
        return {"Item": record.item}

    def update_item(self, operation: UpdateItem) -> dict[str, Any]:
        """
        Apply an update expression to an existing item.

        Raises:
            ResourceNotFoundError: If no item exists under the key
            ConditionalCheckFailedError: If the condition expression is false
        """
        return {"Attributes": self._transactions.write(operation)}

    def delete_item(self, operation: DeleteItem) -> dict[str, Any]:
        """Delete an item; deleting a missing item succeeds."""
        self._transactions.write(operation)
        return {}

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def query(self, operation: Query) -> dict[str, Any]:
        key_schema = self.store.key_schema(operation.table_name)
        condition = parse_key_condition(
            operation.key_condition_expression,
            operation.names,
            operation.values,
            key_schema,
        )
        result = self._queries.query(
            operation.table_name,
            condition,
            limit=operation.limit,
            exclusive_start_key=operation.exclusive_start_key,
            scan_index_forward=operation.scan_index_forward,
        )
        return result.to_dict()

    def scan(self, operation: Scan) -> dict[str, Any]:
        result = self._queries.scan(
            operation.table_name,
            limit=operation.limit,
            exclusive_start_key=operation.exclusive_start_key,
        )
        return result.to_dict()

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def transact_write_items(self, operation: TransactWriteItems) -> dict[str, Any]:
        """
        Apply every write of the batch or none of them.

        Raises:
            TransactionCanceledError: If any sub-operation fails
        """
        self._transactions.transact_write(operation.operations)
        logger.debug("Committed transaction of %d writes", len(operation.operations))
        return {}
