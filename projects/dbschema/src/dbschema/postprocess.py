"""Name-driven corrective pass over column types."""

from __future__ import annotations

from collections.abc import Callable
from copy import deepcopy
from dataclasses import dataclass
from logging import getLogger

from .type_conversion import format_column_type
from .types import STRING_TYPES, Column, DatabaseSchema, StorageType

logger = getLogger(__name__)

type Matcher = Callable[[str, StorageType], bool]


@dataclass(frozen=True)
class TypeRule:
    """Retypes columns whose lowercased name and current type match."""

    label: str
    matches: Matcher
    target: StorageType
    length: int | None = None
    precision: int | None = None
    scale: int | None = None


@dataclass(frozen=True)
class TypeCorrection:
    """A single change made by the corrective pass."""

    table: str
    column: str
    rule: str
    old_type: str
    new_type: str


def _contains(*parts: str) -> Callable[[str], bool]:
    return lambda name: any(part in name for part in parts)


_is_coordinate = _contains("latitude", "longitude", "lat", "lng", "lon")
_is_count = _contains("count", "quantity", "total", "num_")
_is_money = _contains("price", "cost", "value", "amount", "fee", "rate")


def _is_flag(name: str) -> bool:
    return (
        name.startswith(("is_", "has_", "can_"))
        or name.endswith("_flag")
        or "active" in name
        or "enabled" in name
    )


def _is_year(name: str) -> bool:
    return "year" in name and "built" not in name and "constructed" not in name


# Applied in order; later rules see the types set by earlier ones
TYPE_RULES: tuple[TypeRule, ...] = (
    TypeRule(
        "primary key",
        lambda name, _: name == "id",
        StorageType.UUID,
    ),
    TypeRule(
        "foreign key",
        lambda name, _: name.endswith("_id") and name != "id",
        StorageType.UUID,
    ),
    TypeRule(
        "timestamp",
        lambda name, _: name in {"created_at", "updated_at"},
        StorageType.TIMESTAMPTZ,
    ),
    TypeRule(
        "coordinate",
        lambda name, kind: _is_coordinate(name) and kind == StorageType.TEXT,
        StorageType.DECIMAL,
        precision=10,
        scale=6,
    ),
    TypeRule(
        "year",
        lambda name, kind: _is_year(name) and kind == StorageType.TEXT,
        StorageType.SMALLINT,
    ),
    TypeRule(
        "boolean",
        lambda name, kind: _is_flag(name) and kind == StorageType.TEXT,
        StorageType.BOOLEAN,
    ),
    TypeRule(
        "email",
        lambda name, kind: "email" in name and kind == StorageType.TEXT,
        StorageType.VARCHAR,
        length=255,
    ),
    TypeRule(
        "count",
        lambda name, kind: _is_count(name) and kind == StorageType.TEXT,
        StorageType.INTEGER,
    ),
    TypeRule(
        "price",
        lambda name, kind: (
            _is_money(name) and kind in {StorageType.VARCHAR, StorageType.CHAR}
        ),
        StorageType.DECIMAL,
        precision=10,
        scale=2,
    ),
)


def _apply(rule: TypeRule, column: Column) -> None:
    """Set the rule's type, replacing size arguments that no longer apply.

    CHECK constraints survive only a change from one textual type to another.
    """
    if not (column["type"] in STRING_TYPES and rule.target in STRING_TYPES):
        column["constraints"] = [
            constraint
            for constraint in column["constraints"]
            if constraint["type"] != "CHECK"
        ]
    column["type"] = rule.target
    for key in ("length", "precision", "scale"):
        column.pop(key, None)
    if rule.length is not None:
        column["length"] = rule.length
    if rule.precision is not None:
        column["precision"] = rule.precision
    if rule.scale is not None:
        column["scale"] = rule.scale


def correct_schema_types(
    schema: DatabaseSchema,
) -> tuple[DatabaseSchema, list[TypeCorrection]]:
    """Fix column types that contradict well-known column names.

    The input is left untouched. Running the pass on its own output makes no
    further corrections.

    Returns:
        Corrected copy of the schema and the corrections made

    """
    corrected = deepcopy(schema)
    corrections: list[TypeCorrection] = []

    for table in corrected["tables"]:
        for column in table["columns"]:
            name = column["name"].lower()
            for rule in TYPE_RULES:
                if column["type"] == rule.target or not rule.matches(
                    name,
                    column["type"],
                ):
                    continue
                old = format_column_type(column)
                _apply(rule, column)
                correction = TypeCorrection(
                    table=table["name"],
                    column=column["name"],
                    rule=rule.label,
                    old_type=old,
                    new_type=format_column_type(column),
                )
                logger.info(
                    "Fixed %s column %s.%s: %s -> %s",
                    correction.rule,
                    correction.table,
                    correction.column,
                    correction.old_type,
                    correction.new_type,
                )
                corrections.append(correction)

    if corrections:
        logger.info("Post-processing fixed %d type issues", len(corrections))
    else:
        logger.info("Post-processing found no type issues")
    return corrected, corrections


def post_process_schema_types(schema: DatabaseSchema) -> DatabaseSchema:
    """Return a copy of the schema with name-driven type corrections applied."""
    corrected, _ = correct_schema_types(schema)
    return corrected
