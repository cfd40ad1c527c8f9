"""Tests for deploying and seeding an analyzed batch of files."""

import pytest
from sqlalchemy import Engine, create_engine, text

from analysis.main import AnalysisOutcome, analyze_files
from dbschema.sqlalchemy_export import schema_to_ddl
from seeding.processing import cast_tables, load_rows
from seeding.target import EngineTarget

CUSTOMERS = "id,name,status_id\n" + "".join(
    f"{i},Customer {i},{i % 2 + 3}\n" for i in range(1, 31)
)
ORDERS = "id,customer_id\n" + "".join(
    f"{100 + i},{i % 30 + 1}\n" for i in range(40)
)


@pytest.fixture(name="outcome")
def shop_outcome() -> AnalysisOutcome:
    """Analysis of customer and order files numbered with integers."""
    return analyze_files(
        [
            ("customers.csv", CUSTOMERS.encode()),
            ("orders.csv", ORDERS.encode()),
        ],
    )


@pytest.fixture(name="engine")
def sqlite_engine() -> Engine:
    """Empty in-memory database."""
    return create_engine("sqlite:///:memory:")


def test_outcome_is_deployable(outcome: AnalysisOutcome) -> None:
    """Test that the analyzed schema validates and renders clean DDL."""
    assert outcome.validation is not None
    assert outcome.validation.is_valid, outcome.validation.errors

    ddl = schema_to_ddl(outcome.schema, "postgresql")

    assert "status_id UUID" in ddl
    assert "customer_id UUID" in ddl
    assert "IN ('3', '4')" not in ddl


def test_seed_integer_ids(engine: Engine, outcome: AnalysisOutcome) -> None:
    """Test loading files with integer ids into UUID key columns."""
    assert EngineTarget(engine).create_tables(outcome.schema).success

    loaded = load_rows(engine, outcome.schema, outcome.sources)

    assert loaded == {"customers": 30, "orders": 40}
    with engine.connect() as conn:
        joined = conn.execute(
            text(
                "SELECT count(*) FROM orders "
                "JOIN customers ON orders.customer_id = customers.id",
            ),
        )
        assert joined.scalar_one() == 40
        statuses = conn.execute(
            text("SELECT count(DISTINCT status_id) FROM customers"),
        )
        assert statuses.scalar_one() == 2


def test_seed_keys_are_stable(outcome: AnalysisOutcome) -> None:
    """Test that the same raw key maps to the same UUID on both ends."""
    rows = cast_tables(outcome.schema, outcome.sources)

    first_customer = rows["customers"][0]["id"]
    first_order = rows["orders"][0]["customer_id"]
    assert first_order == first_customer
    assert cast_tables(outcome.schema, outcome.sources)["customers"][0]["id"] == (
        first_customer
    )
