"""JSON encoding and decoding for the schema model."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, cast

from .types import Column, DatabaseSchema, StorageType, Table


def json_default(obj: object) -> object:
    """Convert non-serializable objects for JSON encoding."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    msg = f"Object of type {type(obj)} is not JSON serializable"
    raise TypeError(msg)


def schema_to_json(schema: DatabaseSchema, *, indent: int | None = 2) -> str:
    """Serialize a schema with stable key order."""
    return json.dumps(schema, default=json_default, indent=indent, sort_keys=True)


def _parse_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return datetime.now(UTC)


def _column_from_dict(data: dict[str, Any]) -> Column:
    column = cast("Column", dict(data))
    try:
        column["type"] = StorageType(str(data["type"]).upper())
    except ValueError as err:
        msg = f"Unknown column type {data['type']!r} for column {data.get('name')!r}"
        raise ValueError(msg) from err
    column.setdefault("constraints", [])
    column.setdefault("nullable", True)
    return column


def _table_from_dict(data: dict[str, Any]) -> Table:
    table = cast("Table", dict(data))
    table["columns"] = [_column_from_dict(col) for col in data.get("columns", [])]
    table.setdefault("indexes", [])
    return table


def schema_from_dict(data: dict[str, Any]) -> DatabaseSchema:
    """Rebuild a schema from decoded JSON.

    Restores enum members and datetimes, and fills list fields that older
    documents may omit.

    Raises:
        ValueError: If a column type is not a known storage type
        KeyError: If a required field is missing

    """
    schema = cast("DatabaseSchema", dict(data))
    schema["tables"] = [_table_from_dict(table) for table in data.get("tables", [])]
    schema.setdefault("relationships", [])
    schema.setdefault("rls_policies", [])
    schema.setdefault("version", 1)
    schema["created_at"] = _parse_datetime(data.get("created_at"))
    schema["updated_at"] = _parse_datetime(data.get("updated_at"))
    # Required keys
    schema["id"], schema["name"] = data["id"], data["name"]
    return schema


def schema_from_json(text: str) -> DatabaseSchema:
    """Parse a schema from its JSON text."""
    return schema_from_dict(json.loads(text))
