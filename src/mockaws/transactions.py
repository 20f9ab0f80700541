"""Conditional item writes and atomic transactional batches."""

import logging
from collections.abc import Callable, Sequence
from typing import Any

from .exceptions import (
    ClientInputError,
    ConditionalCheckFailedError,
    ResourceNotFoundError,
    TransactionCanceledError,
)
from .expressions import apply_update, evaluate_condition, update_targets
from .keys import derive_key, extract_key
from .models import KeySchema, Record
from .operations import DeleteItem, PutItem, UpdateItem, WriteOperation
from .store import RecordStore, StoreSession, now_ms

logger = logging.getLogger(__name__)


def _target(operation: WriteOperation) -> dict[str, Any]:
    if isinstance(operation, PutItem):
        return operation.item
    return operation.key


def check_key_unchanged(operation: WriteOperation, key_schema: KeySchema) -> None:
    """
    Reject an update that assigns to one of the item's key attributes.

    Raises:
        ClientInputError: If a SET target starts at a key attribute
    """
    if not isinstance(operation, UpdateItem):
        return
    key_attributes = extract_key(operation.key, key_schema)
    for target in update_targets(operation.update_expression, operation.names):
        if target[0] in key_attributes:
            raise ClientInputError(
                f"Cannot update attribute {target[0]}. This attribute is part of the key",
                field="UpdateExpression",
            )


def item_key(session: StoreSession, operation: WriteOperation) -> str:
    """
    Derived storage key targeted by a write.

    Raises:
        ClientInputError: If an update would change the key it is stored under
    """
    key_schema = session.key_schema(operation.table_name)
    check_key_unchanged(operation, key_schema)
    key = derive_key(_target(operation), key_schema)
    if not key:
        logger.warning("Write to %s carries no key attributes", operation.table_name)
    return key


def check_write(
    operation: WriteOperation, existing: Record | None, exists: bool | None = None
) -> None:
    """
    Verify a write may proceed against the current item.

    ``exists`` overrides whether the target counts as present; a batch
    passes it when an earlier write in the batch created or removed it.

    Raises:
        ResourceNotFoundError: If an update targets a missing item
        ConditionalCheckFailedError: If the condition expression is false
    """
    if exists is None:
        exists = existing is not None
    if isinstance(operation, UpdateItem) and not exists:
        raise ResourceNotFoundError(operation.table_name, operation.key)
    document = existing.item if existing is not None else None
    if not evaluate_condition(
        document, operation.condition_expression, operation.names, operation.values
    ):
        raise ConditionalCheckFailedError(operation.table_name, operation.condition_expression)


def apply_write(
    session: StoreSession,
    operation: WriteOperation,
    key: str,
    existing: Record | None,
    now: int,
) -> dict[str, Any] | None:
    """
    Apply a write that already passed ``check_write``.

    Returns the updated document for updates, None otherwise.
    """
    match operation:
        case PutItem():
            session.put(operation.table_name, key, operation.item, now)
            return None
        case UpdateItem():
            if existing is None:
                raise ResourceNotFoundError(operation.table_name, operation.key)
            updated = apply_update(
                existing.item, operation.update_expression, operation.names, operation.values
            )
            session.put(operation.table_name, key, updated, now)
            return updated
        case DeleteItem():
            session.delete(operation.table_name, key)
            return None
    raise TypeError(f"Unknown write operation: {operation!r}")


class TransactionCoordinator:
    """
    Applies single writes and all-or-nothing batches against a store.

    Every call runs inside one store transaction, so a failure anywhere
    rolls back everything the call did.
    """

    def __init__(self, store: RecordStore, clock: Callable[[], int] = now_ms) -> None:
        self._store = store
        self._clock = clock

    def write(self, operation: WriteOperation) -> dict[str, Any] | None:
        """
        Check and apply one Put, Update or Delete.

        Raises:
            ClientInputError: If an update assigns to a key attribute
            ResourceNotFoundError: If an update targets a missing item
            ConditionalCheckFailedError: If the condition expression is false
        """
        with self._store.transaction() as session:
            key = item_key(session, operation)
            existing = session.get(operation.table_name, key)
            check_write(operation, existing)
            return apply_write(session, operation, key, existing, self._clock())

    def transact_write(self, operations: Sequence[WriteOperation]) -> None:
        """
        Apply a batch of writes atomically.

        Every condition is evaluated against the state before the batch,
        and every update must target an item that exists at its position
        in the batch. Only then are the writes applied, in order, so later
        writes to a key see earlier ones.

        Raises:
            ClientInputError: If an update assigns to a key attribute; the
                batch is rejected before any check runs
            TransactionCanceledError: If any sub-operation fails; the store
                is left unchanged
        """
        with self._store.transaction() as session:
            now = self._clock()
            keys = [item_key(session, op) for op in operations]

            present: dict[tuple[str, str], bool] = {}
            for index, (operation, key) in enumerate(zip(operations, keys, strict=True)):
                slot = (operation.table_name, key)
                existing = session.get(operation.table_name, key)
                present.setdefault(slot, existing is not None)
                try:
                    check_write(operation, existing, exists=present[slot])
                except (ConditionalCheckFailedError, ResourceNotFoundError) as e:
                    logger.info("Transaction cancelled at operation %d: %s", index, e)
                    raise TransactionCanceledError(index, e, len(operations)) from e
                present[slot] = not isinstance(operation, DeleteItem)

            for operation, key in zip(operations, keys, strict=True):
                existing = session.get(operation.table_name, key)
                apply_write(session, operation, key, existing, now)
