"""
core/marshal.py
---------------
Value-level conversion from a source driver's native row values into the
parameter encoding the target driver accepts.

Rows keep whatever Python types the source driver produced (``Decimal``,
``datetime``, ``bytes``, ``dict`` for JSON, ``set`` for MySQL SET, ...)
until the instant they are bound to an INSERT on the target. Only values
the target driver cannot adapt on its own are touched here.

Design Decision:
    Pure functions with no side effects. Conversions are keyed on the target
    engine kind, never on the source, because it is the target driver's
    adapter table that decides what binds.

    Python types alone do not always pick the right encoding: MySQL
    BOOLEAN columns arrive as int 0/1, which Postgres will not assign to a
    boolean column. Callers that know the target column types pass them
    in and the value is coerced for that column first.
"""
from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, Sequence

from psycopg2.extras import Json

# Types both drivers bind natively; returned unchanged.
_PASSTHROUGH = (str, int, float, bool, Decimal, bytes)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, set):
        return sorted(value)
    return str(value)


def _set_to_text(value: set) -> str:
    # MySQL renders SET values as a comma-joined string.
    return ",".join(sorted(str(v) for v in value))


_PG_JSON_TYPES = frozenset({"json", "jsonb"})


def _dump_json(value: Any) -> Json:
    return Json(value, dumps=lambda v: json.dumps(v, default=_json_default))


def _coerce_for_postgres_column(value: Any, column_type: str) -> Any:
    """Adjust *value* for a Postgres column whose ``data_type`` is *column_type*."""
    column_type = column_type.lower()
    if column_type == "boolean" and isinstance(value, (int, Decimal)) and not isinstance(value, bool):
        return value != 0
    if column_type in _PG_JSON_TYPES and isinstance(value, (list, tuple, int, float, bool)):
        # A list would otherwise bind as an ARRAY literal.
        return _dump_json(value)
    return value


def to_postgres(value: Any, column_type: str | None = None) -> Any:
    """
    Convert one value for binding with psycopg2.

    *column_type* is the target column's ``information_schema`` data type,
    when known.
    """
    if value is not None and column_type:
        value = _coerce_for_postgres_column(value, column_type)
    if value is None or isinstance(value, (_PASSTHROUGH, Json)):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, set):
        return _set_to_text(value)
    if isinstance(value, dict):
        return _dump_json(value)
    # Lists bind as Postgres arrays; dates, times and intervals adapt natively.
    return value


def to_mysql(value: Any, column_type: str | None = None) -> Any:
    """Convert one value for binding with mysql-connector (column type unused)."""
    if value is None or isinstance(value, _PASSTHROUGH):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, set):
        return _set_to_text(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=_json_default)
    if isinstance(value, datetime) and value.tzinfo is not None:
        # DATETIME/TIMESTAMP carry no zone; store the UTC wall clock.
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def marshal_row(
    values: Iterable[Any],
    convert: Callable[..., Any],
    column_types: Sequence[str | None] | None = None,
) -> tuple:
    """
    Convert an ordered sequence of row values with *convert*.

    *column_types*, when given, runs parallel to *values*.

    Example::

        marshal_row([1, {"a": 1}, None], to_mysql)
        # → (1, '{"a": 1}', None)
        marshal_row([1, 0], to_postgres, [None, "boolean"])
        # → (1, False)
    """
    if column_types is None:
        return tuple(convert(v) for v in values)
    return tuple(convert(v, t) for v, t in zip(values, column_types))
