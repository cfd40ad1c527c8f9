"""Mapping between schema storage types and SQLAlchemy TypeEngine objects."""

from typing import Any

from sqlalchemy.dialects import postgresql
from sqlalchemy.types import (
    CHAR,
    JSON,
    REAL,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Double,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    Time,
    TypeEngine,
    Uuid,
)

from dbschema.types import Column, StorageType


def storage_type_to_sql(column: Column) -> TypeEngine[Any]:
    """Convert a column's storage type to a SQLAlchemy TypeEngine.

    PostgreSQL-only types (JSONB, ARRAY) are expressed as variants over a
    portable base so the same metadata can be created on other backends.

    Examples:
        VARCHAR with length 255 -> String(255)
        DECIMAL with precision 10, scale 2 -> Numeric(10, 2)
        TIMESTAMPTZ -> DateTime(timezone=True)

    """
    sql_type: TypeEngine[Any]
    length = column.get("length")

    match column["type"]:
        case StorageType.VARCHAR:
            sql_type = String(length)
        case StorageType.CHAR:
            sql_type = CHAR(length)
        case StorageType.TEXT:
            sql_type = Text()
        case StorageType.SMALLINT:
            sql_type = SmallInteger()
        case StorageType.INTEGER:
            sql_type = Integer()
        case StorageType.BIGINT:
            sql_type = BigInteger()
        case StorageType.NUMERIC | StorageType.DECIMAL:
            sql_type = Numeric(
                precision=column.get("precision"),
                scale=column.get("scale"),
                asdecimal=True,
            )
        case StorageType.REAL:
            sql_type = REAL()
        case StorageType.DOUBLE_PRECISION:
            sql_type = Double()
        case StorageType.BOOLEAN:
            sql_type = Boolean()
        case StorageType.DATE:
            sql_type = Date()
        case StorageType.TIME:
            sql_type = Time()
        case StorageType.TIMESTAMP:
            sql_type = DateTime()
        case StorageType.TIMESTAMPTZ:
            sql_type = DateTime(timezone=True)
        case StorageType.UUID:
            sql_type = Uuid()
        case StorageType.JSON:
            sql_type = JSON()
        case StorageType.JSONB:
            sql_type = JSON().with_variant(postgresql.JSONB(), "postgresql")
        case StorageType.ARRAY:
            sql_type = JSON().with_variant(postgresql.ARRAY(Text()), "postgresql")
        case _:
            # ENUM values live in a CHECK constraint
            sql_type = String(length)

    return sql_type


def format_column_type(column: Column) -> str:
    """Render a column type in SQL notation, e.g. ``VARCHAR(255)``."""
    column_type = str(column["type"])
    if "length" in column:
        return f"{column_type}({column['length']})"
    if "precision" in column and "scale" in column:
        return f"{column_type}({column['precision']},{column['scale']})"
    if "precision" in column:
        return f"{column_type}({column['precision']})"
    return column_type
