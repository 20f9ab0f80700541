"""Derived item keys.

A derived key is the canonical string the store uses as its lookup key.
It is computed from the key attributes only, always in (partition, sort)
order, so two items with the same key values map to the same record
whatever their other attributes are. Records are listed in ascending
derived-key order, which is what pagination relies on.
"""

import json
from typing import Any

from .models import KeySchema
from .schema import IDENTIFIER_KEY


def _encode(value: Any) -> str:
    # ensure_ascii=False keeps string order equal to code-point order
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def extract_key(attributes: dict[str, Any], schema: KeySchema) -> dict[str, Any]:
    """
    Return the key attributes of an item or key descriptor.

    The partition attribute (plus the sort attribute when present) wins;
    otherwise the ``id`` identifier attribute is used. An empty dict means
    the input carries no recognised key attribute.
    """
    if schema.partition_key in attributes:
        key = {schema.partition_key: attributes[schema.partition_key]}
        if schema.sort_key is not None and schema.sort_key in attributes:
            key[schema.sort_key] = attributes[schema.sort_key]
        return key
    if IDENTIFIER_KEY in attributes:
        return {IDENTIFIER_KEY: attributes[IDENTIFIER_KEY]}
    return {}


def encode_key(key: dict[str, Any]) -> str:
    """Serialize extracted key attributes, preserving their order."""
    if not key:
        return ""
    return "{" + ",".join(f"{_encode(name)}:{_encode(value)}" for name, value in key.items()) + "}"


def decode_key(key: str) -> dict[str, Any]:
    """Inverse of ``encode_key``; the empty key decodes to an empty dict."""
    if not key:
        return {}
    decoded: dict[str, Any] = json.loads(key)
    return decoded


def derive_key(attributes: dict[str, Any], schema: KeySchema) -> str:
    """
    Derive the storage key of an item or key descriptor.

    Returns the empty string when no key attribute is present; callers
    treat that as an untracked key rather than an error.
    """
    return encode_key(extract_key(attributes, schema))


def partition_prefix(schema: KeySchema, value: Any) -> str:
    """Return the derived-key prefix shared by every record in a partition."""
    return "{" + f"{_encode(schema.partition_key)}:{_encode(value)}"


def identifier_key(value: Any) -> str:
    """Return the derived key of a legacy single ``id`` item."""
    return encode_key({IDENTIFIER_KEY: value})


def in_partition(key: str, prefix: str) -> bool:
    """
    True if ``key`` belongs to the partition described by ``prefix``.

    The character after the prefix must close the key or start the sort
    component, so numeric partition 1 does not match partition 10.
    """
    return key.startswith(prefix) and key[len(prefix) : len(prefix) + 1] in ("}", ",")
