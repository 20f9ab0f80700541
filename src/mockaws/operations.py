"""Typed table operations built from wire-level request bodies.

Each supported operation is a frozen dataclass carrying its own payload.
``parse_operation`` is the only place request bodies are inspected; the
engine works on these variants exclusively.
"""

from dataclasses import dataclass, field
from typing import Any

from .exceptions import ClientInputError, UnsupportedOperationError
from .models import KeySchema
from .naming import validate_table_name

_MISSING = object()


def _field(body: dict[str, Any], name: str, kind: type, default: Any = _MISSING) -> Any:
    value = body.get(name, _MISSING)
    if value is _MISSING or value is None:
        if default is _MISSING:
            raise ClientInputError(f"Missing required field: {name}", field=name)
        return default
    if not isinstance(value, kind) or (isinstance(value, bool) and kind is int):
        raise ClientInputError(f"Invalid type for field: {name}", field=name)
    return value


def _table_name(body: dict[str, Any]) -> str:
    name: str = _field(body, "TableName", str)
    if not name:
        raise ClientInputError("TableName cannot be empty", field="TableName")
    return name


def _names(body: dict[str, Any]) -> dict[str, str]:
    names: dict[str, str] = _field(body, "ExpressionAttributeNames", dict, {})
    return names


def _values(body: dict[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = _field(body, "ExpressionAttributeValues", dict, {})
    return values


def _limit(body: dict[str, Any]) -> int | None:
    limit: int | None = _field(body, "Limit", int, None)
    if limit is not None and limit < 1:
        raise ClientInputError("Limit must be greater than or equal to 1", field="Limit")
    return limit


@dataclass(frozen=True)
class CreateTable:
    table_name: str
    key_schema: KeySchema
    attribute_definitions: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_request(cls, body: dict[str, Any]) -> "CreateTable":
        table_name = _table_name(body)
        validate_table_name(table_name)
        return cls(
            table_name=table_name,
            key_schema=KeySchema.from_definition(_field(body, "KeySchema", list)),
            attribute_definitions=_field(body, "AttributeDefinitions", list),
        )


@dataclass(frozen=True)
class PutItem:
    table_name: str
    item: dict[str, Any]
    condition_expression: str | None = None
    names: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_request(cls, body: dict[str, Any]) -> "PutItem":
        return cls(
            table_name=_table_name(body),
            item=_field(body, "Item", dict),
            condition_expression=_field(body, "ConditionExpression", str, None),
            names=_names(body),
            values=_values(body),
        )


@dataclass(frozen=True)
class GetItem:
    table_name: str
    key: dict[str, Any]

    @classmethod
    def from_request(cls, body: dict[str, Any]) -> "GetItem":
        return cls(table_name=_table_name(body), key=_field(body, "Key", dict))


@dataclass(frozen=True)
class UpdateItem:
    table_name: str
    key: dict[str, Any]
    update_expression: str | None = None
    condition_expression: str | None = None
    names: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_request(cls, body: dict[str, Any]) -> "UpdateItem":
        return cls(
            table_name=_table_name(body),
            key=_field(body, "Key", dict),
            update_expression=_field(body, "UpdateExpression", str, None),
            condition_expression=_field(body, "ConditionExpression", str, None),
            names=_names(body),
            values=_values(body),
        )


@dataclass(frozen=True)
class DeleteItem:
    table_name: str
    key: dict[str, Any]
    condition_expression: str | None = None
    names: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_request(cls, body: dict[str, Any]) -> "DeleteItem":
        return cls(
            table_name=_table_name(body),
            key=_field(body, "Key", dict),
            condition_expression=_field(body, "ConditionExpression", str, None),
            names=_names(body),
            values=_values(body),
        )


@dataclass(frozen=True)
class Query:
    table_name: str
    key_condition_expression: str | None = None
    names: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)
    limit: int | None = None
    exclusive_start_key: dict[str, Any] | None = None
    scan_index_forward: bool = True

    @classmethod
    def from_request(cls, body: dict[str, Any]) -> "Query":
        return cls(
            table_name=_table_name(body),
            key_condition_expression=_field(body, "KeyConditionExpression", str, None),
            names=_names(body),
            values=_values(body),
            limit=_limit(body),
            exclusive_start_key=_field(body, "ExclusiveStartKey", dict, None),
            scan_index_forward=_field(body, "ScanIndexForward", bool, True),
        )


@dataclass(frozen=True)
class Scan:
    table_name: str
    limit: int | None = None
    exclusive_start_key: dict[str, Any] | None = None

    @classmethod
    def from_request(cls, body: dict[str, Any]) -> "Scan":
        return cls(
            table_name=_table_name(body),
            limit=_limit(body),
            exclusive_start_key=_field(body, "ExclusiveStartKey", dict, None),
        )


WriteOperation = PutItem | UpdateItem | DeleteItem

_TRANSACT_KINDS: dict[str, type[PutItem] | type[UpdateItem] | type[DeleteItem]] = {
    "Put": PutItem,
    "Update": UpdateItem,
    "Delete": DeleteItem,
}


@dataclass(frozen=True)
class TransactWriteItems:
    operations: tuple[WriteOperation, ...]

    @classmethod
    def from_request(cls, body: dict[str, Any]) -> "TransactWriteItems":
        entries = _field(body, "TransactItems", list)
        if not entries:
            raise ClientInputError("TransactItems cannot be empty", field="TransactItems")
        operations: list[WriteOperation] = []
        for index, entry in enumerate(entries):
            kinds = [k for k in _TRANSACT_KINDS if isinstance(entry, dict) and k in entry]
            if len(kinds) != 1 or len(entry) != 1:
                raise ClientInputError(
                    f"TransactItems[{index}] must contain exactly one of Put, Update, Delete",
                    field="TransactItems",
                )
            kind = kinds[0]
            payload = _field(entry, kind, dict)
            operations.append(_TRANSACT_KINDS[kind].from_request(payload))
        return cls(operations=tuple(operations))


Operation = (
    CreateTable | PutItem | GetItem | UpdateItem | DeleteItem | Query | Scan | TransactWriteItems
)

OPERATIONS: dict[str, Any] = {
    "CreateTable": CreateTable,
    "PutItem": PutItem,
    "GetItem": GetItem,
    "UpdateItem": UpdateItem,
    "DeleteItem": DeleteItem,
    "Query": Query,
    "Scan": Scan,
    "TransactWriteItems": TransactWriteItems,
}


def parse_operation(name: str, body: dict[str, Any]) -> Operation:
    """
    Build a typed operation from its name and JSON request body.

    Raises:
        UnsupportedOperationError: If the operation is not implemented
        ClientInputError: If a required field is missing or malformed
    """
    operation_type = OPERATIONS.get(name)
    if operation_type is None:
        raise UnsupportedOperationError(name)
    if not isinstance(body, dict):
        raise ClientInputError("Request body must be a JSON object")
    operation: Operation = operation_type.from_request(body)
    return operation
