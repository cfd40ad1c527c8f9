"""Tests for schema validation."""

from datetime import UTC, datetime

from dbschema.types import (
    Column,
    Constraint,
    DatabaseSchema,
    Relationship,
    RLSPolicy,
    StorageType,
    Table,
)
from dbschema.validation import (
    ValidationIssue,
    ValidationRules,
    validate_column,
    validate_schema,
    validate_table,
)


def make_column(
    name: str,
    column_type: StorageType = StorageType.TEXT,
    *constraints: Constraint,
    nullable: bool = True,
    **extra: int,
) -> Column:
    """Build a column with optional size arguments."""
    column = Column(
        id=f"col_{name}",
        name=name,
        type=column_type,
        nullable=nullable,
        constraints=list(constraints),
    )
    column.update(extra)  # type: ignore[typeddict-item]
    return column


def pk_column(name: str = "id") -> Column:
    """Build a non-null UUID primary key column."""
    return make_column(name, StorageType.UUID, {"type": "PRIMARY KEY"}, nullable=False)


def make_table(name: str, *columns: Column) -> Table:
    """Build a table without indexes."""
    return Table(id=f"tbl_{name}", name=name, columns=list(columns), indexes=[])


def make_schema(
    *tables: Table,
    relationships: list[Relationship] | None = None,
    policies: list[RLSPolicy] | None = None,
) -> DatabaseSchema:
    """Wrap tables in a schema."""
    now = datetime.now(UTC)
    return DatabaseSchema(
        id="schema",
        name="test",
        tables=list(tables),
        relationships=relationships or [],
        rls_policies=policies or [],
        version=1,
        created_at=now,
        updated_at=now,
    )


def codes(issues: list[ValidationIssue]) -> list[str]:
    """Extract issue codes."""
    return [issue.code for issue in issues]


def test_valid_schema() -> None:
    """Test that a well-formed schema has no errors or warnings."""
    schema = make_schema(
        make_table("users", pk_column(), make_column("email", StorageType.VARCHAR, length=255)),
    )

    result = validate_schema(schema)

    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []


def test_empty_schema() -> None:
    """Test that a schema without tables is an error."""
    result = validate_schema(make_schema())

    assert not result.is_valid
    assert codes(result.errors) == ["SCHEMA_EMPTY"]


def test_too_many_tables() -> None:
    """Test the table count limit."""
    tables = [make_table(f"t{i}", pk_column()) for i in range(3)]

    result = validate_schema(make_schema(*tables), ValidationRules(max_tables=2))

    assert "SCHEMA_TOO_MANY_TABLES" in codes(result.errors)


def test_duplicate_table_names() -> None:
    """Test that table names must be unique."""
    schema = make_schema(make_table("users", pk_column()), make_table("users", pk_column()))

    assert "TABLE_DUPLICATE_NAME" in codes(validate_schema(schema).errors)


def test_multiple_primary_keys() -> None:
    """Test that a second primary key column is an error."""
    table = make_table("users", pk_column("id"), pk_column("other_id"))

    result = validate_table(table)

    assert codes(result.errors) == ["TABLE_MULTIPLE_PRIMARY_KEYS"]
    assert result.errors[0].column == "other_id"


def test_missing_primary_key_is_warning() -> None:
    """Test that a table without primary key only warns."""
    result = validate_table(make_table("notes", make_column("body")))

    assert result.is_valid
    assert codes(result.warnings) == ["TABLE_NO_PRIMARY_KEY"]


def test_table_name_rules() -> None:
    """Test invalid, long and reserved table names."""
    assert "TABLE_INVALID_NAME" in codes(
        validate_table(make_table("Users", pk_column())).errors,
    )
    assert "TABLE_NAME_TOO_LONG" in codes(
        validate_table(make_table("t" * 64, pk_column())).errors,
    )
    reserved = validate_table(make_table("order", pk_column()))
    assert reserved.is_valid
    assert codes(reserved.warnings) == ["TABLE_RESERVED_WORD"]


def test_table_without_columns() -> None:
    """Test that a table needs columns."""
    result = validate_table(make_table("empty"))

    assert codes(result.errors) == ["TABLE_NO_COLUMNS"]


def test_too_many_columns() -> None:
    """Test the column count limit."""
    columns = [make_column(f"c{i}") for i in range(5)]
    table = make_table("wide", pk_column(), *columns)

    result = validate_table(table, ValidationRules(max_columns=3))

    assert "TABLE_TOO_MANY_COLUMNS" in codes(result.errors)


def test_duplicate_column_names() -> None:
    """Test that column names are unique within a table."""
    table = make_table("users", pk_column(), make_column("name"), make_column("Name"))

    assert "COLUMN_DUPLICATE_NAME" in codes(validate_table(table).errors)


def test_varchar_length_rules() -> None:
    """Test missing, too small and too large VARCHAR lengths."""
    missing = validate_column(make_column("a", StorageType.VARCHAR), "t")
    small = validate_column(make_column("a", StorageType.VARCHAR, length=0), "t")
    large = validate_column(make_column("a", StorageType.VARCHAR, length=70000), "t")

    assert missing.is_valid
    assert codes(missing.warnings) == ["COLUMN_VARCHAR_NO_LENGTH"]
    assert missing.warnings[0].suggestion == "VARCHAR(255)"
    assert codes(small.errors) == ["COLUMN_VARCHAR_LENGTH_TOO_SMALL"]
    assert codes(large.errors) == ["COLUMN_VARCHAR_LENGTH_TOO_LARGE"]
    assert large.errors[0].suggestion == "TEXT"


def test_numeric_scale_exceeds_precision() -> None:
    """Test that scale cannot exceed precision."""
    column = make_column("price", StorageType.DECIMAL, precision=4, scale=6)

    assert codes(validate_column(column, "t").errors) == ["COLUMN_NUMERIC_INVALID_SCALE"]


def test_nullable_primary_key() -> None:
    """Test that primary keys must not be nullable."""
    column = make_column("id", StorageType.UUID, {"type": "PRIMARY KEY"})

    assert codes(validate_column(column, "t").errors) == ["COLUMN_PK_NULLABLE"]


def test_column_name_rules() -> None:
    """Test invalid and reserved column names."""
    assert "COLUMN_INVALID_NAME" in codes(validate_column(make_column("1st"), "t").errors)
    assert "COLUMN_NAME_TOO_LONG" in codes(
        validate_column(make_column("c" * 64), "t").errors,
    )
    assert codes(validate_column(make_column("select"), "t").warnings) == [
        "COLUMN_RESERVED_WORD",
    ]


def relationship(
    source: tuple[str, str],
    target: tuple[str, str],
    kind: str = "one-to-many",
) -> Relationship:
    """Build a relationship between two table columns."""
    return Relationship(
        id="rel",
        source_table=source[0],
        source_column=source[1],
        target_table=target[0],
        target_column=target[1],
        type=kind,  # type: ignore[typeddict-item]
    )


def test_relationship_references_must_resolve() -> None:
    """Test each dangling relationship reference."""
    users = make_table("users", pk_column())
    orders = make_table("orders", pk_column(), make_column("user_id", StorageType.UUID))

    cases = {
        "RELATIONSHIP_INVALID_SOURCE": relationship(("nope", "x"), ("users", "id")),
        "RELATIONSHIP_INVALID_TARGET": relationship(("orders", "user_id"), ("nope", "id")),
        "RELATIONSHIP_INVALID_SOURCE_COLUMN": relationship(
            ("orders", "nope"),
            ("users", "id"),
        ),
        "RELATIONSHIP_INVALID_TARGET_COLUMN": relationship(
            ("orders", "user_id"),
            ("users", "nope"),
        ),
    }
    for code, rel in cases.items():
        result = validate_schema(make_schema(users, orders, relationships=[rel]))
        assert codes(result.errors) == [code]


def test_relationship_checks() -> None:
    """Test self references, type mismatches and one-to-one targets."""
    users = make_table("users", pk_column(), make_column("manager_id", StorageType.TEXT))

    same_column = validate_schema(
        make_schema(users, relationships=[relationship(("users", "id"), ("users", "id"))]),
    )
    assert "RELATIONSHIP_SELF_SAME_COLUMN" in codes(same_column.errors)

    mismatch = validate_schema(
        make_schema(
            users,
            relationships=[relationship(("users", "manager_id"), ("users", "id"))],
        ),
    )
    assert mismatch.is_valid
    assert codes(mismatch.warnings) == ["RELATIONSHIP_TYPE_MISMATCH"]

    one_to_one = validate_schema(
        make_schema(
            users,
            relationships=[
                relationship(("users", "id"), ("users", "manager_id"), "one-to-one"),
            ],
        ),
    )
    assert "RELATIONSHIP_ONE_TO_ONE_NOT_UNIQUE" in codes(one_to_one.warnings)


def test_policy_structure() -> None:
    """Test policy expressions per command and unknown tables."""
    users = make_table("users", pk_column())
    good = RLSPolicy(
        id="p1",
        table_name="users",
        name="read own",
        command="SELECT",
        using="auth.uid() = id",
    )
    bad = RLSPolicy(id="p2", table_name="users", name="insert", command="INSERT")
    orphan = RLSPolicy(
        id="p3",
        table_name="ghosts",
        name="read",
        command="SELECT",
        using="true",
    )

    result = validate_schema(make_schema(users, policies=[good, bad, orphan]))

    assert codes(result.errors) == ["RLS_POLICY_INVALID", "RLS_POLICY_INVALID_TABLE"]
