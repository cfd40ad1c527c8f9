"""Typed value casting, row loading and deployment of built schemas."""

from .processing import cast_rows, cast_tables, insert_rows, load_rows
from .target import DeploymentResult, DeploymentTarget, EngineTarget
from .value_casters import (
    BooleanValue,
    DatabaseValue,
    DecimalValue,
    IntegerValue,
    JsonValue,
    NullValue,
    TextValue,
    TimestampValue,
    UuidValue,
    key_caster,
    to_python,
    value_caster,
)

__all__ = [
    "BooleanValue",
    "DatabaseValue",
    "DecimalValue",
    "DeploymentResult",
    "DeploymentTarget",
    "EngineTarget",
    "IntegerValue",
    "JsonValue",
    "NullValue",
    "TextValue",
    "TimestampValue",
    "UuidValue",
    "cast_rows",
    "cast_tables",
    "insert_rows",
    "key_caster",
    "load_rows",
    "to_python",
    "value_caster",
]
