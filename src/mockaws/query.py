"""Query and Scan with exclusive-start-key pagination."""

import logging
from typing import Any

from .expressions import KeyCondition
from .keys import decode_key, derive_key, identifier_key, in_partition, partition_prefix
from .models import KeySchema, QueryResult, Record
from .schema import IDENTIFIER_KEY
from .store import RecordStore

logger = logging.getLogger(__name__)


def paginate(
    records: list[Record],
    key_schema: KeySchema,
    limit: int | None = None,
    exclusive_start_key: dict[str, Any] | None = None,
) -> QueryResult:
    """
    Cut one page out of an ordered list of records.

    Records up to and including ``exclusive_start_key`` are dropped; an
    unknown start key skips nothing. When at least ``limit`` records remain
    the page is truncated to ``limit`` and carries the stored key of its
    last record as ``last_evaluated_key``; an empty start key resumes
    after the record stored under the untracked empty key.
    """
    if exclusive_start_key is not None:
        start = derive_key(exclusive_start_key, key_schema)
        for index, record in enumerate(records):
            if record.key == start:
                records = records[index + 1 :]
                break
        else:
            logger.debug("Exclusive start key %s not found; starting from the top", start)

    scanned_count = len(records)
    last_evaluated_key = None
    if limit is not None and len(records) >= limit:
        records = records[:limit]
        last_evaluated_key = decode_key(records[-1].key)

    return QueryResult(
        items=[record.item for record in records],
        scanned_count=scanned_count,
        last_evaluated_key=last_evaluated_key,
    )


class QueryEngine:
    """Reads table contents in derived-key order."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def query(
        self,
        table_name: str,
        condition: KeyCondition | None = None,
        *,
        limit: int | None = None,
        exclusive_start_key: dict[str, Any] | None = None,
        scan_index_forward: bool = True,
    ) -> QueryResult:
        """
        Return the items of one partition.

        A condition without a usable partition equality selects the whole
        table.
        """
        condition = condition or KeyCondition()
        with self._store.transaction() as session:
            key_schema = session.key_schema(table_name)
            if condition.attribute == key_schema.partition_key:
                prefix = partition_prefix(key_schema, condition.value)
                candidates = session.list_by_prefix(table_name, prefix)
                records = [r for r in candidates if in_partition(r.key, prefix)]
            elif condition.attribute == IDENTIFIER_KEY:
                record = session.get(table_name, identifier_key(condition.value))
                records = [record] if record is not None else []
            else:
                logger.debug("Query on %s has no partition condition, reading all", table_name)
                records = session.list_all(table_name)

        if condition.sort_conditions:
            records = [r for r in records if condition.matches(r.item)]
        if not scan_index_forward:
            records.reverse()
        return paginate(records, key_schema, limit, exclusive_start_key)

    def scan(
        self,
        table_name: str,
        *,
        limit: int | None = None,
        exclusive_start_key: dict[str, Any] | None = None,
    ) -> QueryResult:
        """Return every item of a table."""
        with self._store.transaction() as session:
            key_schema = session.key_schema(table_name)
            records = session.list_all(table_name)
        return paginate(records, key_schema, limit, exclusive_start_key)
