"""TypedDict schemas for the relational schema model."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal, NotRequired, TypedDict
from uuid import uuid4


class StorageType(StrEnum):
    """Column storage types understood by PostgreSQL-compatible targets."""

    VARCHAR = "VARCHAR"
    TEXT = "TEXT"
    CHAR = "CHAR"
    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    NUMERIC = "NUMERIC"
    DECIMAL = "DECIMAL"
    REAL = "REAL"
    DOUBLE_PRECISION = "DOUBLE PRECISION"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    TIMESTAMPTZ = "TIMESTAMPTZ"
    UUID = "UUID"
    JSONB = "JSONB"
    JSON = "JSON"
    ARRAY = "ARRAY"
    ENUM = "ENUM"


# Types that carry a length
BOUNDED_STRING_TYPES = frozenset({StorageType.VARCHAR, StorageType.CHAR})
# Types that carry precision and scale
FIXED_POINT_TYPES = frozenset({StorageType.NUMERIC, StorageType.DECIMAL})
# Types whose CHECK expressions compare text
STRING_TYPES = BOUNDED_STRING_TYPES | {StorageType.TEXT}
INTEGER_TYPES = frozenset(
    {StorageType.SMALLINT, StorageType.INTEGER, StorageType.BIGINT},
)

type ReferentialAction = Literal["CASCADE", "SET NULL", "RESTRICT", "NO ACTION"]
type RelationshipType = Literal["one-to-one", "one-to-many", "many-to-many"]
type IndexType = Literal["BTREE", "HASH", "GIN", "GIST"]
type PolicyCommand = Literal["SELECT", "INSERT", "UPDATE", "DELETE", "ALL"]
type ConstraintKind = Literal[
    "PRIMARY KEY",
    "FOREIGN KEY",
    "UNIQUE",
    "NOT NULL",
    "CHECK",
    "DEFAULT",
]

# Constraint variants, discriminated on "type"


class PrimaryKeyConstraint(TypedDict):
    """Column is (part of) the table's primary key."""

    type: Literal["PRIMARY KEY"]


class ForeignKeyConstraint(TypedDict):
    """Column references another table's column."""

    type: Literal["FOREIGN KEY"]
    referenced_table: str
    referenced_column: str
    on_delete: NotRequired[ReferentialAction]
    on_update: NotRequired[ReferentialAction]


class UniqueConstraint(TypedDict):
    """Column values are distinct."""

    type: Literal["UNIQUE"]


class NotNullConstraint(TypedDict):
    """Column rejects nulls."""

    type: Literal["NOT NULL"]


class CheckConstraint(TypedDict):
    """Boolean SQL expression every row must satisfy."""

    type: Literal["CHECK"]
    expression: str


class DefaultConstraint(TypedDict):
    """SQL expression used when no value is given."""

    type: Literal["DEFAULT"]
    expression: str


type Constraint = (
    PrimaryKeyConstraint
    | ForeignKeyConstraint
    | UniqueConstraint
    | NotNullConstraint
    | CheckConstraint
    | DefaultConstraint
)


class Position(TypedDict):
    """Layout hint for diagram editors."""

    x: float
    y: float


class Column(TypedDict):
    """A table column."""

    id: str
    name: str
    type: StorageType
    nullable: bool
    constraints: list[Constraint]
    length: NotRequired[int]
    precision: NotRequired[int]
    scale: NotRequired[int]
    default_value: NotRequired[str]
    comment: NotRequired[str]
    original_name: NotRequired[str]


class Index(TypedDict):
    """An index over ordered columns."""

    id: str
    name: str
    columns: list[str]
    unique: bool
    type: NotRequired[IndexType]


class Table(TypedDict):
    """A table with ordered columns."""

    id: str
    name: str
    columns: list[Column]
    indexes: list[Index]
    comment: NotRequired[str]
    position: NotRequired[Position]


class Relationship(TypedDict):
    """A reference from one table's column to another's."""

    id: str
    source_table: str
    source_column: str
    target_table: str
    target_column: str
    type: RelationshipType
    name: NotRequired[str]
    on_delete: NotRequired[ReferentialAction]
    on_update: NotRequired[ReferentialAction]


class RLSPolicy(TypedDict):
    """Row level security policy, carried through unchanged."""

    id: str
    table_name: str
    name: str
    command: PolicyCommand
    using: NotRequired[str]
    with_check: NotRequired[str]
    roles: NotRequired[list[str]]


class DatabaseSchema(TypedDict):
    """Root of the schema model."""

    id: str
    name: str
    tables: list[Table]
    relationships: list[Relationship]
    rls_policies: list[RLSPolicy]
    version: int
    created_at: datetime
    updated_at: datetime
    project_id: NotRequired[str]


def new_id() -> str:
    """Generate an identifier for a schema element."""
    return str(uuid4())


def has_constraint(column: Column, kind: ConstraintKind) -> bool:
    """Check whether a column carries a constraint of the given kind."""
    return any(constraint["type"] == kind for constraint in column["constraints"])


def primary_key_columns(table: Table) -> list[Column]:
    """Columns marked as primary key, in declaration order."""
    return [col for col in table["columns"] if has_constraint(col, "PRIMARY KEY")]


def find_table(schema: DatabaseSchema, name: str) -> Table | None:
    """Look up a table by name."""
    return next((table for table in schema["tables"] if table["name"] == name), None)


def find_column(table: Table, name: str) -> Column | None:
    """Look up a column by name."""
    return next((col for col in table["columns"] if col["name"] == name), None)
