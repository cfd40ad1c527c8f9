"""Value casting system for loading CSV cells into database columns.

Every cell is cast to a tagged database value chosen by the column's storage
type. The tags say what kind of value the cell holds, so rows can be checked
and converted without guessing at loosely typed strings.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any
from uuid import NAMESPACE_URL, UUID, uuid5

from dbschema.types import FIXED_POINT_TYPES, INTEGER_TYPES, StorageType

if TYPE_CHECKING:
    from collections.abc import Callable

    from ingest.types import Cell

TRUE_TOKENS = frozenset({"true", "t", "yes", "y", "1"})
FALSE_TOKENS = frozenset({"false", "f", "no", "n", "0"})

# Namespace for UUIDs derived from non-UUID key values
KEY_NAMESPACE = uuid5(NAMESPACE_URL, "schemaforge:key")

FLOAT_TYPES = frozenset({StorageType.REAL, StorageType.DOUBLE_PRECISION})
JSON_TYPES = frozenset({StorageType.JSON, StorageType.JSONB, StorageType.ARRAY})

# Formats tried after ISO 8601
DATE_FORMATS = (
    "%d/%m/%Y",  # DD/MM/YYYY: 30/03/2026
    "%m/%d/%Y",  # MM/DD/YYYY: 03/30/2026
    "%d-%m-%Y",  # DD-MM-YYYY: 30-03-2026
    "%Y/%m/%d",  # YYYY/MM/DD: 2026/03/30
)
DATETIME_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
)


@dataclass(frozen=True)
class NullValue:
    """SQL NULL."""


@dataclass(frozen=True)
class IntegerValue:
    value: int


@dataclass(frozen=True)
class DecimalValue:
    value: Decimal


@dataclass(frozen=True)
class TextValue:
    value: str


@dataclass(frozen=True)
class BooleanValue:
    value: bool


@dataclass(frozen=True)
class TimestampValue:
    """A date, a time of day or a full timestamp."""

    value: date | time | datetime


@dataclass(frozen=True)
class JsonValue:
    value: Any


@dataclass(frozen=True)
class UuidValue:
    value: UUID


type DatabaseValue = (
    NullValue
    | IntegerValue
    | DecimalValue
    | TextValue
    | BooleanValue
    | TimestampValue
    | JsonValue
    | UuidValue
)

type Caster = Callable[[str], DatabaseValue]

NULL = NullValue()


def cast_integer(raw_value: str) -> IntegerValue:
    """Cast to an integer, accepting a zero fraction such as ``12.0``."""
    try:
        return IntegerValue(int(raw_value))
    except ValueError:
        number = cast_decimal(raw_value).value
    if number != number.to_integral_value():
        msg = f"Cannot convert '{raw_value}' to integer"
        raise ValueError(msg)
    return IntegerValue(int(number))


def cast_decimal(raw_value: str) -> DecimalValue:
    """Cast to a finite decimal number."""
    try:
        number = Decimal(raw_value)
    except InvalidOperation as err:
        msg = f"Cannot convert '{raw_value}' to decimal"
        raise ValueError(msg) from err
    if not number.is_finite():
        msg = f"Cannot convert '{raw_value}' to decimal"
        raise ValueError(msg)
    return DecimalValue(number)


def cast_boolean(raw_value: str) -> BooleanValue:
    """Cast the usual yes/no tokens, case-insensitive."""
    token = raw_value.lower()
    if token in TRUE_TOKENS:
        return BooleanValue(value=True)
    if token in FALSE_TOKENS:
        return BooleanValue(value=False)
    msg = f"Cannot convert '{raw_value}' to boolean"
    raise ValueError(msg)


def parse_date(raw_value: str) -> date:
    """Parse a date, ISO 8601 first and common day/month orders after."""
    try:
        return date.fromisoformat(raw_value)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw_value, fmt).date()  # noqa: DTZ007
        except ValueError:
            continue

    msg = f"Cannot convert '{raw_value}' to date"
    raise ValueError(msg)


def parse_datetime(raw_value: str) -> datetime:
    """Parse a timestamp; a bare date means midnight."""
    try:
        return datetime.fromisoformat(raw_value)
    except ValueError:
        pass

    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(raw_value, fmt)  # noqa: DTZ007
        except ValueError:
            continue

    return datetime.combine(parse_date(raw_value), time.min)


def cast_date(raw_value: str) -> TimestampValue:
    return TimestampValue(parse_date(raw_value))


def cast_time(raw_value: str) -> TimestampValue:
    try:
        return TimestampValue(time.fromisoformat(raw_value))
    except ValueError as err:
        msg = f"Cannot convert '{raw_value}' to time"
        raise ValueError(msg) from err


def cast_timestamp(raw_value: str) -> TimestampValue:
    return TimestampValue(parse_datetime(raw_value))


def cast_json(raw_value: str) -> JsonValue:
    """Cast text holding a JSON document."""
    try:
        return JsonValue(json.loads(raw_value))
    except json.JSONDecodeError as err:
        msg = f"Cannot convert '{raw_value}' to JSON: {err.msg}"
        raise ValueError(msg) from err


def cast_uuid(raw_value: str) -> UuidValue:
    """Cast with or without hyphens."""
    try:
        return UuidValue(UUID(raw_value))
    except ValueError as err:
        msg = f"Cannot convert '{raw_value}' to UUID"
        raise ValueError(msg) from err


def cast_text(raw_value: str) -> TextValue:
    return TextValue(raw_value)


def value_caster(storage_type: StorageType) -> Callable[[Cell], DatabaseValue]:
    """Get the casting function for a storage type.

    Returns a function that can be called with a raw cell. Empty and missing
    cells always become ``NullValue``. Enables pre-computation of casters for
    every column before rows are cast.

    Args:
        storage_type: Storage type of the target column

    Returns:
        Casting function that raises ``ValueError`` for cells it cannot cast

    """
    caster: Caster
    if storage_type in INTEGER_TYPES:
        caster = cast_integer
    elif storage_type in FIXED_POINT_TYPES | FLOAT_TYPES:
        caster = cast_decimal
    elif storage_type in JSON_TYPES:
        caster = cast_json
    else:
        match storage_type:
            case StorageType.BOOLEAN:
                caster = cast_boolean
            case StorageType.DATE:
                caster = cast_date
            case StorageType.TIME:
                caster = cast_time
            case StorageType.TIMESTAMP | StorageType.TIMESTAMPTZ:
                caster = cast_timestamp
            case StorageType.UUID:
                caster = cast_uuid
            case _:
                caster = cast_text

    return _nullable(caster)


def key_caster(scope: str) -> Callable[[Cell], DatabaseValue]:
    """Get the casting function for a UUID key column.

    Source files often number their rows where the schema stores UUID keys.
    Values that are not UUIDs are mapped to a UUID derived from ``scope`` and
    the value, so a primary key and every column referencing it map the same
    raw value to the same UUID when they share a scope.

    Args:
        scope: Name of the referenced key, such as ``customers.id``

    """

    def cast_key(raw_value: str) -> UuidValue:
        try:
            return cast_uuid(raw_value)
        except ValueError:
            return UuidValue(uuid5(KEY_NAMESPACE, f"{scope}:{raw_value}"))

    return _nullable(cast_key)


def _nullable(caster: Caster) -> Callable[[Cell], DatabaseValue]:
    def cast(raw_value: Cell) -> DatabaseValue:
        if raw_value is None or raw_value == "":
            return NULL
        return caster(raw_value)

    return cast


def to_python(value: DatabaseValue) -> Any:  # noqa: ANN401
    """Unwrap a tagged value for a database driver."""
    match value:
        case NullValue():
            return None
        case (
            IntegerValue(v)
            | DecimalValue(v)
            | TextValue(v)
            | BooleanValue(v)
            | TimestampValue(v)
            | JsonValue(v)
            | UuidValue(v)
        ):
            return v
