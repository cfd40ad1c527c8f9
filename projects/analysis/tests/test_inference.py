"""Tests for type inference engine."""

import uuid

import pytest

from analysis.inference import (
    TypeInferenceEngine,
    analyze_all_columns,
    infer_column_type,
    suggest_column_name,
)
from dbschema.types import StorageType
from ingest.types import CSVColumnStats


def column_stats(values: list[str | None], name: str = "value") -> CSVColumnStats:
    """Build column statistics the way the parser would."""
    present = [value for value in values if value]
    return CSVColumnStats(
        index=0,
        name=name,
        original_name=name,
        sample_values=tuple(values[:20]),
        unique_values=frozenset(present),
        null_count=len(values) - len(present),
        empty_count=0,
        total_count=len(values),
    )


def test_infer_uuid_column() -> None:
    """Test that a column of UUIDs is inferred with high confidence."""
    stats = column_stats([str(uuid.uuid4()) for _ in range(50)], "external_ref")

    result = infer_column_type(stats)

    assert result.type == StorageType.UUID
    assert result.confidence >= 0.9
    assert result.has_constraint("UNIQUE")


def test_infer_is_deterministic() -> None:
    """Test that the same statistics always give the same result."""
    stats = column_stats(["10", "abc", "12.5", "2024-01-01", "x@y.com", None] * 5)

    assert infer_column_type(stats) == infer_column_type(stats)


def test_infer_not_null() -> None:
    """Test that NOT NULL needs almost no nulls."""
    complete = column_stats([f"item-{i}" for i in range(1000)])
    sparse = column_stats([f"item-{i}" for i in range(950)] + [None] * 50)

    assert infer_column_type(complete).has_constraint("NOT NULL")
    assert not infer_column_type(sparse).has_constraint("NOT NULL")


def test_infer_enum_check() -> None:
    """Test that few repeated values produce a CHECK IN constraint."""
    values = ["active", "inactive", "pending"] * 166 + ["active", "pending"]
    result = infer_column_type(column_stats(values, "status"))

    checks = [c for c in result.constraints if c["type"] == "CHECK"]
    assert checks == [
        {"type": "CHECK", "expression": "status IN ('active', 'inactive', 'pending')"},
    ]
    assert "suggests possible enum" in result.reasoning


def test_infer_enum_check_escapes_quotes() -> None:
    """Test that single quotes in enum values are doubled."""
    result = infer_column_type(column_stats(["O'Brien", "Smith"] * 50, "surname"))

    assert {
        "type": "CHECK",
        "expression": "surname IN ('O''Brien', 'Smith')",
    } in result.constraints


def test_infer_boolean_has_no_enum_check() -> None:
    """Test that boolean columns are not also treated as enums."""
    result = infer_column_type(column_stats(["true", "false"] * 250, "is_active"))

    assert result.type == StorageType.BOOLEAN
    assert not result.has_constraint("CHECK")


def test_infer_email_column() -> None:
    """Test that email columns get a length and a format check."""
    stats = column_stats([f"user{i}@example.com" for i in range(20)], "email")

    result = infer_column_type(stats)

    assert result.type == StorageType.VARCHAR
    assert result.suggested_length == 255
    assert any(
        c["type"] == "CHECK" and c["expression"].startswith("email ~* ")
        for c in result.constraints
    )
    assert "Detected email format" in result.reasoning


def test_infer_url_column() -> None:
    """Test that URL columns become TEXT with a prefix check."""
    stats = column_stats([f"https://example.com/{i}" for i in range(5)], "website")

    result = infer_column_type(stats)

    assert result.type == StorageType.TEXT
    assert {"type": "CHECK", "expression": "website ~* '^https?://'"} in (
        result.constraints
    )


def test_infer_numeric_precision() -> None:
    """Test that precision and scale are the maxima over the values."""
    result = infer_column_type(column_stats(["12.50", "3.1", "100.125"], "amount"))

    assert result.type == StorageType.NUMERIC
    assert result.suggested_precision == 6
    assert result.suggested_scale == 3


def test_infer_mixed_column_confidence() -> None:
    """Test that inconsistent columns are scored down."""
    values = [str(i) for i in range(10, 19)] + ["n/a"]

    result = infer_column_type(column_stats(values))

    assert result.type == StorageType.SMALLINT
    assert result.confidence == pytest.approx(0.9 * 0.9 * 0.9)
    assert "based on 9/10 values (90.0% consistency)" in result.reasoning


def test_infer_empty_column() -> None:
    """Test that a column without values falls back without raising."""
    result = infer_column_type(column_stats([None, None, None]))

    assert result.type == StorageType.VARCHAR
    assert result.confidence == 0.1
    assert result.reasoning == "All values are null or empty"
    assert result.constraints == [{"type": "DEFAULT", "expression": "NULL"}]
    assert result.examples == []


def test_infer_examples_are_sorted() -> None:
    """Test that examples are the first distinct values in sorted order."""
    stats = column_stats(["pear", "apple", "fig", "kiwi", "lime", "date"])

    result = infer_column_type(stats)

    assert result.examples == ["apple", "date", "fig", "kiwi", "lime"]


def test_infer_unique_needs_enough_rows() -> None:
    """Test that UNIQUE is only suggested for more than ten rows."""
    few = column_stats([f"code-{i}" for i in range(10)])
    many = column_stats([f"code-{i}" for i in range(11)])

    assert not infer_column_type(few).has_constraint("UNIQUE")
    assert infer_column_type(many).has_constraint("UNIQUE")


def test_thresholds_are_tunable() -> None:
    """Test that subclasses can change thresholds."""

    class StrictEngine(TypeInferenceEngine):
        UNIQUE_MIN_ROWS = 100

    stats = column_stats([f"code-{i}" for i in range(20)])

    assert not StrictEngine().infer_column_type(stats).has_constraint("UNIQUE")


def test_analyze_all_columns() -> None:
    """Test that every column is inferred and keyed by name."""
    results = analyze_all_columns(
        [column_stats(["1.5", "2.5"], "price"), column_stats(["x", "y"], "label")],
    )

    assert list(results) == ["price", "label"]
    assert results["price"].type == StorageType.NUMERIC


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("First Name", "first_name"),
        ("customerID", "customer_id"),
        ("2nd Address", "col_2nd_address"),
        ("!!!", "unnamed_column"),
    ],
)
def test_suggest_column_name(header: str, expected: str) -> None:
    """Test snake_case name suggestions."""
    assert suggest_column_name(header) == expected
