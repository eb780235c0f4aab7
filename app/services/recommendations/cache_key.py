"""
Content-addressed cache keys for recommendations.

A key is a pure function of (owner, context): the context is canonicalized
(fields sorted by name, null entries dropped, declared fields written
out as null), serialized to compact JSON and hashed with SHA-256. The
owner id is kept readable in the key so entries are scoped per user and
ownership can be checked without a lookup.

    coach:u2b6f...:d9f86d08...
"""

import hashlib
import json
import uuid
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel

DEFAULT_NAMESPACE = "coach"


def _canonical_value(value: Any) -> Any:
    """Reduce a value to JSON-native types with a single stable representation."""
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, Enum):
        return _canonical_value(value.value)
    if isinstance(value, BaseModel):
        return _canonical_value(value.model_dump(mode="json"))
    if isinstance(value, Mapping):
        return _canonical_mapping(value)
    if isinstance(value, set | frozenset):
        items = [_canonical_value(v) for v in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True))
    if isinstance(value, list | tuple):
        return [_canonical_value(v) for v in value]
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Cannot derive a cache key from {type(value).__name__}")


def _canonical_mapping(mapping: Mapping[Any, Any]) -> dict[str, Any]:
    """Canonicalize a mapping, dropping null entries so absent and null match."""
    data: dict[str, Any] = {}
    for key, value in mapping.items():
        if not isinstance(key, str):
            raise TypeError(f"Cache key contexts need string keys, got {type(key).__name__}")
        canonical = _canonical_value(value)
        if canonical is not None:
            data[key] = canonical
    return data


def canonicalize(
    context: Mapping[str, Any] | BaseModel,
    fields: Iterable[str] | None = None,
) -> dict[str, Any]:
    """
    Normalize a context into a sorted mapping.

    Null entries are dropped at every depth, so a field that is absent and
    one set to None key identically whether or not fields are declared.

    Args:
        context: Named request fields
        fields: Declared field names; any that are absent (or None) are
            written out as null so the declared shape is part of the key

    Returns:
        A dict whose keys are sorted by name (nested mappings included)
    """
    if isinstance(context, BaseModel):
        context = context.model_dump(mode="json")

    data = _canonical_mapping(context)
    for name in fields or ():
        data.setdefault(name, None)

    # Round-trip through sorted JSON so nested mappings are ordered too
    return json.loads(_dumps(data))


def _dumps(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def fingerprint(
    context: Mapping[str, Any] | BaseModel,
    fields: Iterable[str] | None = None,
) -> str:
    """Canonical string form of a context, stored alongside the entry it keyed."""
    return _dumps(canonicalize(context, fields))


def derive_key(
    owner_id: uuid.UUID | str,
    context: Mapping[str, Any] | BaseModel,
    *,
    fields: Iterable[str] | None = None,
    namespace: str = DEFAULT_NAMESPACE,
) -> str:
    """
    Derive the cache key for an owner's context.

    Pure and deterministic: no clock, randomness or I/O. Two contexts that
    differ only in field order (or in absent vs. null fields) produce the
    same key. Mapping keys must be strings.
    """
    if not namespace or ":" in namespace:
        raise ValueError("namespace must be non-empty and contain no ':'")

    digest = hashlib.sha256(fingerprint(context, fields).encode("utf-8")).hexdigest()
    return f"{namespace}:u{owner_id}:d{digest}"


def owner_from_key(key: str) -> str | None:
    """Return the owner segment of a key, or None if the key is malformed."""
    parts = key.split(":")
    if len(parts) != 3:
        return None
    _, owner, digest = parts
    if not owner.startswith("u") or not digest.startswith("d") or len(owner) < 2:
        return None
    return owner[1:]
