"""Build SQLAlchemy metadata and DDL from a schema model."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    MetaData,
    Table,
    text,
)
from sqlalchemy import Column as SAColumn
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.schema import CreateIndex, CreateTable

from dbschema.type_conversion import storage_type_to_sql
from dbschema.types import (
    Column,
    DatabaseSchema,
    ForeignKeyConstraint,
    RLSPolicy,
    has_constraint,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.sql.elements import TextClause

type DialectName = Literal["postgresql", "sqlite"]

DIALECTS: dict[DialectName, Dialect] = {
    "postgresql": postgresql.dialect(),
    "sqlite": sqlite.dialect(),
}

# Column-level target: (table, column) -> foreign key options
type ForeignKeys = dict[tuple[str, str], ForeignKeyConstraint]


def collect_foreign_keys(schema: DatabaseSchema) -> ForeignKeys:
    """Gather foreign keys from column constraints and relationships.

    References to columns outside the schema are dropped.
    """
    known_columns = {
        (table["name"], column["name"])
        for table in schema["tables"]
        for column in table["columns"]
    }
    foreign_keys: ForeignKeys = {}

    for table in schema["tables"]:
        for column in table["columns"]:
            for constraint in column["constraints"]:
                if constraint["type"] == "FOREIGN KEY":
                    foreign_keys[(table["name"], column["name"])] = constraint

    for rel in schema["relationships"]:
        key = (rel["source_table"], rel["source_column"])
        if key in foreign_keys or rel["type"] == "many-to-many":
            continue
        fk = ForeignKeyConstraint(
            type="FOREIGN KEY",
            referenced_table=rel["target_table"],
            referenced_column=rel["target_column"],
        )
        if "on_delete" in rel:
            fk["on_delete"] = rel["on_delete"]
        if "on_update" in rel:
            fk["on_update"] = rel["on_update"]
        foreign_keys[key] = fk

    return {
        key: fk
        for key, fk in foreign_keys.items()
        if (fk["referenced_table"], fk["referenced_column"]) in known_columns
    }


def _sql_text(expression: str) -> TextClause:
    """Wrap raw SQL, escaping colons so they are not read as bind parameters."""
    return text(expression.replace(":", r"\:"))


def _server_default(column: Column) -> Any:  # noqa: ANN401
    """SQL default expression, from the column or a DEFAULT constraint."""
    expression = column.get("default_value")
    for constraint in column["constraints"]:
        if constraint["type"] == "DEFAULT":
            expression = constraint["expression"]
    if expression is None or expression.upper() == "NULL":
        return None
    return _sql_text(expression)


def build_column(
    column: Column,
    foreign_key: ForeignKeyConstraint | None,
    *,
    include_defaults: bool = True,
) -> SAColumn[Any]:
    """Create a SQLAlchemy Column from a column definition."""
    args: list[Any] = []
    if foreign_key is not None:
        args.append(
            ForeignKey(
                f"{foreign_key['referenced_table']}."
                f"{foreign_key['referenced_column']}",
                ondelete=foreign_key.get("on_delete"),
                onupdate=foreign_key.get("on_update"),
            ),
        )

    primary_key = has_constraint(column, "PRIMARY KEY")
    return SAColumn(
        column["name"],
        storage_type_to_sql(column),
        *args,
        primary_key=primary_key,
        nullable=column["nullable"] and not primary_key,
        unique=has_constraint(column, "UNIQUE") and not primary_key,
        server_default=_server_default(column) if include_defaults else None,
        comment=column.get("comment"),
    )


def schema_to_metadata(
    schema: DatabaseSchema,
    *,
    include_checks: bool = True,
    include_defaults: bool = True,
) -> MetaData:
    """Build SQLAlchemy metadata for every table in the schema.

    Args:
        schema: Schema to convert
        include_checks: Emit CHECK constraints, which may use PostgreSQL syntax
        include_defaults: Emit server defaults, which may call PostgreSQL functions

    Returns:
        Metadata ready for ``create_all`` or DDL compilation

    """
    metadata = MetaData()
    foreign_keys = collect_foreign_keys(schema)

    for table in schema["tables"]:
        name = table["name"]
        items: list[Any] = [
            build_column(
                column,
                foreign_keys.get((name, column["name"])),
                include_defaults=include_defaults,
            )
            for column in table["columns"]
        ]
        if include_checks:
            items.extend(
                CheckConstraint(_sql_text(constraint["expression"]))
                for column in table["columns"]
                for constraint in column["constraints"]
                if constraint["type"] == "CHECK"
            )
        sa_table = Table(name, metadata, *items, comment=table.get("comment"))

        for index in table["indexes"]:
            kwargs: dict[str, Any] = {}
            if "type" in index:
                kwargs["postgresql_using"] = index["type"].lower()
            Index(
                index["name"],
                *(sa_table.c[col] for col in index["columns"]),
                unique=index["unique"],
                **kwargs,
            )

    return metadata


def policy_to_sql(policy: RLSPolicy) -> str:
    """Render a CREATE POLICY statement."""
    parts = [
        f'CREATE POLICY "{policy["name"]}" ON {policy["table_name"]}',
        f"FOR {policy['command']}",
    ]
    if roles := policy.get("roles"):
        parts.append(f"TO {', '.join(roles)}")
    if using := policy.get("using"):
        parts.append(f"USING ({using})")
    if with_check := policy.get("with_check"):
        parts.append(f"WITH CHECK ({with_check})")
    return " ".join(parts)


def policy_statements(schema: DatabaseSchema) -> list[str]:
    """Enable row level security on each policed table, then create the policies."""
    policed = dict.fromkeys(p["table_name"] for p in schema["rls_policies"])
    statements = [f"ALTER TABLE {name} ENABLE ROW LEVEL SECURITY" for name in policed]
    statements.extend(policy_to_sql(p) for p in schema["rls_policies"])
    return statements


def schema_to_ddl(schema: DatabaseSchema, dialect: DialectName = "postgresql") -> str:
    """Render CREATE statements for the schema in dependency order.

    PostgreSQL output carries CHECK constraints, server defaults and row level
    security policies; SQLite output leaves them out.
    """
    is_postgres = dialect == "postgresql"
    metadata = schema_to_metadata(
        schema,
        include_checks=is_postgres,
        include_defaults=is_postgres,
    )
    target = DIALECTS[dialect]

    statements: list[str] = []
    for table in metadata.sorted_tables:
        statements.append(str(CreateTable(table).compile(dialect=target)).strip())
        statements.extend(
            str(CreateIndex(index).compile(dialect=target)).strip()
            for index in sorted(table.indexes, key=lambda idx: idx.name or "")
        )

    if is_postgres:
        statements.extend(policy_statements(schema))

    return ";\n\n".join(statements) + ";\n" if statements else ""
