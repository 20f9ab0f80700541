"""Tests for the persisted layout and wire constants."""

from mockaws import schema


class TestOperationName:
    """Tests for operation_name."""

    def test_strips_prefix(self) -> None:
        assert schema.operation_name("DynamoDB_20120810.PutItem") == "PutItem"

    def test_without_prefix(self) -> None:
        """Bare names pass through unchanged."""
        assert schema.operation_name("Query") == "Query"


class TestLayout:
    """Tests for the SQL table definitions."""

    def test_items_primary_key(self) -> None:
        """Items are keyed by table name and serialized key."""
        columns = [column.name for column in schema.items.primary_key.columns]
        assert columns == ["table_name", "item_key"]

    def test_tables_primary_key(self) -> None:
        columns = [column.name for column in schema.tables.primary_key.columns]
        assert columns == ["table_name"]

    def test_item_timestamps(self) -> None:
        """Item rows track creation and update times."""
        assert {"created_at", "updated_at"} <= set(schema.items.columns.keys())
