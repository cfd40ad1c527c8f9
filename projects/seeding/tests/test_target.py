"""Tests for engine-backed deployment."""

import pytest
from sqlalchemy import Engine, create_engine, inspect

from analysis.main import build_schema
from ingest.parser import parse_csv
from seeding.target import DeploymentTarget, EngineTarget


@pytest.fixture(name="engine")
def sqlite_engine() -> Engine:
    """Empty in-memory database."""
    return create_engine("sqlite:///:memory:")


def test_create_tables(engine: Engine) -> None:
    """Test that tables, foreign keys and indexes are created."""
    schema = build_schema(
        [
            parse_csv(b"id,name\n1,Ann\n2,Bob\n", "customers.csv"),
            parse_csv(b"id,customer_id\n10,1\n11,2\n", "orders.csv"),
        ],
    )
    target: DeploymentTarget = EngineTarget(engine)

    result = target.create_tables(schema)

    assert result.success
    assert result.message == "Created 2 tables"
    assert result.error_code is None
    inspector = inspect(engine)
    assert sorted(inspector.get_table_names()) == ["customers", "orders"]
    foreign_keys = inspector.get_foreign_keys("orders")
    assert [fk["referred_table"] for fk in foreign_keys] == ["customers"]
    indexes = inspector.get_indexes("orders")
    assert [index["name"] for index in indexes] == ["idx_orders_customer_id"]


def test_create_tables_failure(engine: Engine) -> None:
    """Test that a database error comes back as a failed result."""
    schema = build_schema([parse_csv(b"id,name\n1,Ann\n", "people.csv")])
    target = EngineTarget(engine)
    assert target.execute_sql("CREATE TABLE people (id INTEGER)").success

    result = target.create_tables(schema)

    assert not result.success
    assert result.message.startswith("Failed to create tables")


def test_execute_sql(engine: Engine) -> None:
    """Test running statements and reporting errors."""
    target = EngineTarget(engine)

    assert target.execute_sql("CREATE TABLE notes (body TEXT)").success

    failed = target.execute_sql("SELECT * FROM missing")
    assert not failed.success
    assert failed.error_code is not None
    assert "missing" in failed.message
