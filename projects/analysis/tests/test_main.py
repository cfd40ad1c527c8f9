"""Tests for schema assembly and the analysis pipeline."""

from pathlib import Path

import pytest

from analysis.config import AnalysisConfig
from analysis.main import analyze_files, assemble_schema, build_schema
from dbschema.types import DatabaseSchema, StorageType, Table, find_column, find_table
from dbschema.validation import validate_schema
from ingest.errors import BatchParseError
from ingest.parser import parse_csv
from ingest.types import ParseResult

CUSTOMERS = """id,name,email
1,Ann,ann@example.com
2,Bob,bob@example.com
3,Cy,cy@example.com
"""

ORDERS = """id,customer_id,total_amount,ordered_on
10,1,19.99,2024-01-05
11,1,5.50,2024-01-06
12,2,7.25,2024-01-07
13,3,12.00,2024-02-01
"""

EMPLOYEES = """id,name,manager_id
101,Ann,
102,Bob,101
103,Cy,101
104,Di,102
"""


def parse(file_name: str, text: str) -> ParseResult:
    """Parse CSV text held in memory."""
    return parse_csv(text.encode(), file_name)


def table(schema: DatabaseSchema, name: str) -> Table:
    """Look up a table that must exist."""
    found = find_table(schema, name)
    assert found is not None
    return found


@pytest.fixture(name="shop")
def shop_schema() -> DatabaseSchema:
    """Schema built from customers and orders."""
    return build_schema(
        [parse("customers.csv", CUSTOMERS), parse("orders.csv", ORDERS)],
    )


def test_build_schema_tables(shop: DatabaseSchema) -> None:
    """Test that each file becomes a table with inferred columns."""
    assert [t["name"] for t in shop["tables"]] == ["customers", "orders"]
    assert shop["name"] == "imported_schema"

    orders = table(shop, "orders")
    assert [c["name"] for c in orders["columns"]] == [
        "id",
        "customer_id",
        "total_amount",
        "ordered_on",
        "created_at",
        "updated_at",
    ]
    amount = find_column(orders, "total_amount")
    assert amount is not None
    assert amount["type"] == StorageType.NUMERIC
    assert (amount["precision"], amount["scale"]) == (4, 2)
    assert amount["original_name"] == "total_amount"


def test_build_schema_existing_id_is_primary_key(shop: DatabaseSchema) -> None:
    """Test that an ``id`` column in the file becomes the primary key."""
    customer_id = find_column(table(shop, "customers"), "id")

    assert customer_id is not None
    assert customer_id["nullable"] is False
    assert customer_id["constraints"][0] == {"type": "PRIMARY KEY"}
    assert customer_id["type"] == StorageType.SMALLINT


def test_build_schema_relationship(shop: DatabaseSchema) -> None:
    """Test that a detected reference becomes a relationship with a key."""
    assert len(shop["relationships"]) == 1
    relationship = shop["relationships"][0]
    assert relationship["source_table"] == "orders"
    assert relationship["source_column"] == "customer_id"
    assert relationship["target_table"] == "customers"
    assert relationship["target_column"] == "id"
    assert relationship["type"] == "one-to-many"
    assert relationship["on_delete"] == "RESTRICT"
    assert relationship["on_update"] == "CASCADE"

    orders = table(shop, "orders")
    customer_id = find_column(orders, "customer_id")
    assert customer_id is not None
    assert {
        "type": "FOREIGN KEY",
        "referenced_table": "customers",
        "referenced_column": "id",
        "on_delete": "RESTRICT",
        "on_update": "CASCADE",
    } in customer_id["constraints"]
    assert [index["name"] for index in orders["indexes"]] == ["idx_orders_customer_id"]


def test_build_schema_validates_cleanly(shop: DatabaseSchema) -> None:
    """Test that well-named files produce a valid schema."""
    result = validate_schema(shop)

    assert result.is_valid, result.errors


def test_build_schema_adds_surrogate_key() -> None:
    """Test that files without ``id`` get a generated UUID key."""
    schema = build_schema(
        [parse("products.csv", "sku,price\nA1,3.50\nB2,4.00\n")],
        include_audit_columns=False,
    )

    products = table(schema, "products")
    assert [c["name"] for c in products["columns"]] == ["id", "sku", "price"]
    key = products["columns"][0]
    assert key["type"] == StorageType.UUID
    assert {"type": "DEFAULT", "expression": "gen_random_uuid()"} in key["constraints"]
    assert schema["name"] == "products"


def test_build_schema_self_reference() -> None:
    """Test that a manager column references its own table."""
    schema = build_schema([parse("employees.csv", EMPLOYEES)])

    assert len(schema["relationships"]) == 1
    relationship = schema["relationships"][0]
    assert relationship["source_table"] == relationship["target_table"] == "employees"
    assert relationship["source_column"] == "manager_id"
    manager = find_column(table(schema, "employees"), "manager_id")
    assert manager is not None
    assert manager["nullable"] is True
    assert validate_schema(schema).is_valid


def test_build_schema_row_policies(shop: DatabaseSchema) -> None:
    """Test optional row level security policies."""
    schema = build_schema(
        [parse("customers.csv", CUSTOMERS), parse("orders.csv", ORDERS)],
        include_rls=True,
    )

    assert shop["rls_policies"] == []
    assert [p["table_name"] for p in schema["rls_policies"]] == ["customers", "orders"]
    assert all(p["command"] == "ALL" for p in schema["rls_policies"])
    assert validate_schema(schema).is_valid


def test_build_schema_deduplicates_columns() -> None:
    """Test that repeated headers become distinct column names."""
    schema = build_schema([parse("tags.csv", "Tag,tag\na,b\n")])

    names = [c["name"] for c in table(schema, "tags")["columns"]]
    assert names[:3] == ["id", "tag", "tag_2"]


def test_build_schema_links_renamed_tables() -> None:
    """Test that a table renamed to stay unique keeps its relationships."""
    schema = build_schema(
        [
            parse("customers.csv", CUSTOMERS),
            parse("order-items.csv", "id,qty\n1,2\n"),
            parse("order_items.csv", "id,customer_id\n1,1\n2,2\n"),
        ],
    )

    assert [t["name"] for t in schema["tables"]] == [
        "customers",
        "order_items",
        "order_items_2",
    ]
    assert [
        (r["source_table"], r["source_column"], r["target_table"])
        for r in schema["relationships"]
    ] == [("order_items_2", "customer_id", "customers")]
    customer_id = find_column(table(schema, "order_items_2"), "customer_id")
    assert customer_id is not None
    assert any(c["type"] == "FOREIGN KEY" for c in customer_id["constraints"])


def test_assemble_schema_keeps_evidence() -> None:
    """Test that inference results and ranked hints are returned."""
    assembly = assemble_schema([parse("employees.csv", EMPLOYEES)])

    assert set(assembly.inferences["employees"]) == {"id", "name", "manager_id"}
    assert [h.source_column for h in assembly.hints] == ["manager_id"]


def test_analyze_files(tmp_path: Path) -> None:
    """Test the full pipeline with a file that fails to parse."""
    customers = tmp_path / "customers.csv"
    customers.write_text(CUSTOMERS)
    orders = tmp_path / "orders.csv"
    orders.write_text(ORDERS)
    empty = tmp_path / "empty.csv"
    empty.write_text("")

    outcome = analyze_files([customers, orders, empty])

    assert [r.file_name for r in outcome.results] == ["customers.csv", "orders.csv"]
    assert [f.file_name for f in outcome.failures] == ["empty.csv"]
    assert list(outcome.sources) == ["customers", "orders"]
    assert outcome.validation is not None
    assert outcome.validation.is_valid
    assert ("customers", "id") in {(c.table, c.column) for c in outcome.corrections}
    customer_id = find_column(table(outcome.schema, "customers"), "id")
    assert customer_id is not None
    assert customer_id["type"] == StorageType.UUID


def test_analyze_files_drops_checks_on_retyped_keys() -> None:
    """Test that an enum CHECK on a ``*_id`` column goes with its old type."""
    rows = "".join(f"{i},Name {i},{i % 2 + 3}\n" for i in range(1, 31))

    outcome = analyze_files([("members.csv", f"id,name,status_id\n{rows}".encode())])

    assembled = find_column(
        table(assemble_schema(outcome.results).schema, "members"),
        "status_id",
    )
    assert assembled is not None
    assert {"type": "CHECK", "expression": "status_id IN ('3', '4')"} in assembled[
        "constraints"
    ]
    status_id = find_column(table(outcome.schema, "members"), "status_id")
    assert status_id is not None
    assert status_id["type"] == StorageType.UUID
    assert all(c["type"] != "CHECK" for c in status_id["constraints"])


def test_analyze_files_uses_config() -> None:
    """Test that assembly switches come from the configuration."""
    config = AnalysisConfig(include_audit_columns=False, include_rls=True)

    outcome = analyze_files([("customers.csv", CUSTOMERS.encode())], config)

    names = [c["name"] for c in table(outcome.schema, "customers")["columns"]]
    assert "created_at" not in names
    assert len(outcome.schema["rls_policies"]) == 1


def test_analyze_files_all_failing() -> None:
    """Test that the pipeline raises when nothing could be parsed."""
    with pytest.raises(BatchParseError):
        analyze_files([("empty.csv", b"")])
