"""Row casting and batch loading of parsed CSV files."""

from __future__ import annotations

from datetime import UTC, datetime
from itertools import batched
from logging import getLogger
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from sqlalchemy import insert

from dbschema.sqlalchemy_export import schema_to_metadata
from dbschema.types import StorageType, has_constraint

from .value_casters import (
    DatabaseValue,
    TimestampValue,
    UuidValue,
    key_caster,
    to_python,
    value_caster,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from sqlalchemy import Engine

    from dbschema.types import Column, DatabaseSchema, Table
    from ingest.types import Cell, ParseResult

logger = getLogger(__name__)

DEFAULT_BATCH_SIZE = 500
TIMESTAMP_TYPES = frozenset({StorageType.TIMESTAMP, StorageType.TIMESTAMPTZ})

type CastedRow = dict[str, DatabaseValue]
type CastedRows = list[CastedRow]


def _generator(column: Column) -> Callable[[], DatabaseValue] | None:
    """Client-side value for a column that no CSV header maps to.

    Covers generated UUID keys and ``now()`` timestamps, whose server defaults
    are not available on every backend. Other unmapped columns are left out.
    """
    if column["type"] == StorageType.UUID and has_constraint(column, "PRIMARY KEY"):
        return lambda: UuidValue(uuid4())
    if column["type"] in TIMESTAMP_TYPES and any(
        constraint["type"] == "DEFAULT" and constraint["expression"] == "now()"
        for constraint in column["constraints"]
    ):
        return lambda: TimestampValue(datetime.now(UTC))
    return None


def _key_scope(table: Table, column: Column) -> str | None:
    """Key a UUID column shares its value mapping with, if it is a key.

    Foreign keys map through the column they reference. Primary keys and
    other ``*_id`` columns map through themselves.
    """
    if column["type"] != StorageType.UUID:
        return None
    for constraint in column["constraints"]:
        if constraint["type"] == "FOREIGN KEY":
            return f"{constraint['referenced_table']}.{constraint['referenced_column']}"
    name = column["name"]
    if has_constraint(column, "PRIMARY KEY") or name == "id" or name.endswith("_id"):
        return f"{table['name']}.{name}"
    return None


def _caster(table: Table, column: Column) -> Callable[[Cell], DatabaseValue]:
    scope = _key_scope(table, column)
    if scope is not None:
        return key_caster(scope)
    return value_caster(column["type"])


def _header_positions(headers: tuple[str, ...]) -> dict[str, list[int]]:
    positions: dict[str, list[int]] = {}
    for index, header in enumerate(headers):
        positions.setdefault(header, []).append(index)
    return positions


def cast_rows(table: Table, result: ParseResult) -> CastedRows:
    """Cast every sampled row of a parse result onto a table's columns.

    Columns are matched to headers by ``original_name``; repeated headers are
    consumed in order. UUID key columns accept any identifier and map values
    that are not UUIDs onto UUIDs shared with the key they reference.

    Raises:
        ValueError: If a cell cannot be cast to its column type

    """
    positions = _header_positions(result.headers)

    mapped: list[tuple[str, int, Callable[..., DatabaseValue]]] = []
    generated: list[tuple[str, Callable[[], DatabaseValue]]] = []
    for column in table["columns"]:
        original = column.get("original_name")
        if original is not None and positions.get(original):
            index = positions[original].pop(0)
            mapped.append((column["name"], index, _caster(table, column)))
        elif (generator := _generator(column)) is not None:
            generated.append((column["name"], generator))

    casted_rows: CastedRows = []
    for number, row in enumerate(result.data, start=1):
        casted: CastedRow = {}
        for name, index, cast in mapped:
            cell = row[index] if index < len(row) else None
            try:
                casted[name] = cast(cell)
            except ValueError as err:
                msg = f"{table['name']}.{name} row {number}: {err}"
                raise ValueError(msg) from err
        for name, generator in generated:
            casted[name] = generator()
        casted_rows.append(casted)

    return casted_rows


def cast_tables(
    schema: DatabaseSchema,
    results: Mapping[str, ParseResult],
) -> dict[str, CastedRows]:
    """Cast the rows of every table that has a parse result.

    Raises:
        ValueError: If any cell cannot be cast to its column type

    """
    return {
        table["name"]: cast_rows(table, results[table["name"]])
        for table in schema["tables"]
        if table["name"] in results
    }


def insert_rows(
    engine: Engine,
    schema: DatabaseSchema,
    rows: Mapping[str, CastedRows],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> dict[str, int]:
    """Insert casted rows into their tables in dependency order.

    All tables are filled inside a single transaction, so a failing insert
    leaves the target unchanged.

    Returns:
        Number of rows inserted per table

    """
    metadata = schema_to_metadata(schema)

    loaded: dict[str, int] = {}
    with engine.begin() as connection:
        for sa_table in metadata.sorted_tables:
            if sa_table.name not in rows:
                continue

            values: list[dict[str, Any]] = [
                {name: to_python(value) for name, value in row.items()}
                for row in rows[sa_table.name]
            ]
            for batch in batched(values, batch_size):
                connection.execute(insert(sa_table), list(batch))

            loaded[sa_table.name] = len(values)
            logger.info("Loaded %d rows into %s", len(values), sa_table.name)

    return loaded


def load_rows(
    engine: Engine,
    schema: DatabaseSchema,
    results: Mapping[str, ParseResult],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> dict[str, int]:
    """Cast the rows of each parse result and insert them into its table.

    Every table is cast before anything is inserted, so a failing cast or
    insert leaves the target unchanged.

    Args:
        engine: Engine to a database where the tables already exist
        schema: Schema the tables were created from
        results: Parse results keyed by table name
        batch_size: Rows per INSERT

    Returns:
        Number of rows loaded per table

    """
    rows = cast_tables(schema, results)
    return insert_rows(engine, schema, rows, batch_size=batch_size)
