"""Core models for mockaws."""

from dataclasses import dataclass, field
from typing import Any

from .exceptions import ClientInputError
from .schema import (
    DEFAULT_PARTITION_KEY,
    DEFAULT_SORT_KEY,
    HASH,
    RANGE,
    TABLE_STATUS_ACTIVE,
)


@dataclass(frozen=True)
class KeySchema:
    """
    Primary key layout of a table.

    Attributes:
        partition_key: Name of the HASH attribute
        sort_key: Name of the RANGE attribute, None for single-attribute keys
    """

    partition_key: str
    sort_key: str | None = None

    @classmethod
    def from_definition(cls, elements: list[dict[str, Any]]) -> "KeySchema":
        """
        Build from a wire-level KeySchema list.

        Raises:
            ClientInputError: If the list has no HASH element or an element
                is malformed
        """
        partition_key: str | None = None
        sort_key: str | None = None
        for element in elements:
            if not isinstance(element, dict):
                raise ClientInputError("KeySchema elements must be objects", field="KeySchema")
            name = element.get("AttributeName")
            key_type = element.get("KeyType")
            if not isinstance(name, str) or not name:
                raise ClientInputError(
                    "KeySchema element is missing AttributeName", field="KeySchema"
                )
            if key_type == HASH:
                partition_key = name
            elif key_type == RANGE:
                sort_key = name
            else:
                raise ClientInputError(
                    f"Invalid KeyType {key_type!r} for attribute {name}", field="KeySchema"
                )
        if partition_key is None:
            raise ClientInputError("KeySchema must contain a HASH key", field="KeySchema")
        return cls(partition_key=partition_key, sort_key=sort_key)

    def to_definition(self) -> list[dict[str, str]]:
        """Serialize to a wire-level KeySchema list."""
        elements = [{"AttributeName": self.partition_key, "KeyType": HASH}]
        if self.sort_key is not None:
            elements.append({"AttributeName": self.sort_key, "KeyType": RANGE})
        return elements


DEFAULT_KEY_SCHEMA = KeySchema(DEFAULT_PARTITION_KEY, DEFAULT_SORT_KEY)


@dataclass(frozen=True)
class TableDescription:
    """Stored metadata for a created table."""

    name: str
    key_schema: KeySchema
    attribute_definitions: list[dict[str, Any]] = field(default_factory=list)
    created_at: int = 0  # epoch milliseconds

    def to_dict(self) -> dict[str, Any]:
        """Serialize as the ``TableDescription`` of a CreateTable response."""
        return {
            "TableName": self.name,
            "KeySchema": self.key_schema.to_definition(),
            "AttributeDefinitions": self.attribute_definitions,
            "TableStatus": TABLE_STATUS_ACTIVE,
            "CreationDateTime": self.created_at / 1000,
            "TableSizeBytes": 0,
            "ItemCount": 0,
        }


@dataclass(frozen=True)
class Record:
    """
    A persisted item.

    ``created_at`` is set at first insertion under ``key`` and survives
    later overwrites; ``updated_at`` changes on every write.
    """

    table_name: str
    key: str
    item: dict[str, Any]
    created_at: int
    updated_at: int


@dataclass
class QueryResult:
    """
    One page of a Query or Scan.

    ``scanned_count`` counts the records considered after the exclusive
    start key and before the limit was applied, so it is larger than
    ``count`` whenever the limit truncated the page.
    """

    items: list[dict[str, Any]]
    scanned_count: int
    last_evaluated_key: dict[str, Any] | None = None

    @property
    def count(self) -> int:
        """Number of items returned."""
        return len(self.items)

    def to_dict(self) -> dict[str, Any]:
        """Serialize as a Query/Scan response body."""
        body: dict[str, Any] = {
            "Items": self.items,
            "Count": self.count,
            "ScannedCount": self.scanned_count,
        }
        if self.last_evaluated_key is not None:
            body["LastEvaluatedKey"] = self.last_evaluated_key
        return body
