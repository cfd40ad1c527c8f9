"""Tests for typed value casting."""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

import pytest

from dbschema.types import StorageType
from seeding.value_casters import (
    BooleanValue,
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

GUID = "123e4567-e89b-42d3-a456-426614174000"


@pytest.mark.parametrize(
    ("storage_type", "raw_value", "expected"),
    [
        (StorageType.SMALLINT, "42", IntegerValue(42)),
        (StorageType.BIGINT, "-9000000000", IntegerValue(-9000000000)),
        (StorageType.INTEGER, "12.0", IntegerValue(12)),
        (StorageType.NUMERIC, "19.99", DecimalValue(Decimal("19.99"))),
        (StorageType.REAL, "0.5", DecimalValue(Decimal("0.5"))),
        (StorageType.BOOLEAN, "Yes", BooleanValue(value=True)),
        (StorageType.BOOLEAN, "0", BooleanValue(value=False)),
        (StorageType.DATE, "2024-03-30", TimestampValue(date(2024, 3, 30))),
        (StorageType.DATE, "30/03/2024", TimestampValue(date(2024, 3, 30))),
        (StorageType.TIME, "08:15:00", TimestampValue(time(8, 15))),
        (
            StorageType.TIMESTAMP,
            "2024-03-30 08:15:00",
            TimestampValue(datetime(2024, 3, 30, 8, 15)),  # noqa: DTZ001
        ),
        (
            StorageType.TIMESTAMPTZ,
            "2024-03-30",
            TimestampValue(datetime(2024, 3, 30)),  # noqa: DTZ001
        ),
        (StorageType.JSONB, '{"a": [1, 2]}', JsonValue({"a": [1, 2]})),
        (StorageType.UUID, GUID, UuidValue(UUID(GUID))),
        (StorageType.VARCHAR, "hello", TextValue("hello")),
        (StorageType.ENUM, "active", TextValue("active")),
    ],
)
def test_value_caster(
    storage_type: StorageType,
    raw_value: str,
    expected: object,
) -> None:
    """Test that cells are cast to the tag of their column type."""
    assert value_caster(storage_type)(raw_value) == expected


@pytest.mark.parametrize("storage_type", list(StorageType))
def test_empty_cells_are_null(storage_type: StorageType) -> None:
    """Test that missing and empty cells become NULL for every type."""
    cast = value_caster(storage_type)

    assert cast(None) == NullValue()
    assert cast("") == NullValue()


@pytest.mark.parametrize(
    ("storage_type", "raw_value"),
    [
        (StorageType.INTEGER, "12.5"),
        (StorageType.INTEGER, "twelve"),
        (StorageType.NUMERIC, "NaN"),
        (StorageType.BOOLEAN, "maybe"),
        (StorageType.DATE, "2024-13-45"),
        (StorageType.TIME, "noon"),
        (StorageType.JSON, "{broken"),
        (StorageType.UUID, "not-a-uuid"),
    ],
)
def test_value_caster_rejects(storage_type: StorageType, raw_value: str) -> None:
    """Test that uncastable cells raise ValueError."""
    with pytest.raises(ValueError, match="Cannot convert"):
        value_caster(storage_type)(raw_value)


def test_key_caster() -> None:
    """Test that key values map to UUIDs shared within a scope."""
    customers = key_caster("customers.id")

    assert customers(GUID) == UuidValue(UUID(GUID))
    assert customers("") == NullValue()
    mapped = customers("7")
    assert isinstance(mapped, UuidValue)
    assert key_caster("customers.id")("7") == mapped
    assert key_caster("orders.id")("7") != mapped
    assert customers("8") != mapped


def test_to_python() -> None:
    """Test unwrapping tagged values for the driver."""
    assert to_python(NullValue()) is None
    assert to_python(IntegerValue(3)) == 3
    assert to_python(JsonValue([1, 2])) == [1, 2]
    assert to_python(UuidValue(UUID(GUID))) == UUID(GUID)
