"""Structural validation of a schema before deployment."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

from .types import (
    BOUNDED_STRING_TYPES,
    FIXED_POINT_TYPES,
    Column,
    DatabaseSchema,
    Relationship,
    RLSPolicy,
    StorageType,
    Table,
    find_column,
    find_table,
    has_constraint,
    new_id,
)

type Severity = Literal["error", "warning"]

VALID_NAME = re.compile(r"^[a-z][a-z0-9_]*$")

POSTGRES_RESERVED_WORDS = frozenset(
    {
        "all", "analyse", "analyze", "and", "any", "array", "as", "asc",
        "asymmetric", "authorization", "binary", "both", "case", "cast", "check",
        "collate", "collation", "column", "concurrently", "constraint", "create",
        "current_catalog", "current_date", "current_role", "current_schema",
        "current_time", "current_timestamp", "current_user", "default",
        "deferrable", "desc", "distinct", "do", "else", "end", "except", "false",
        "fetch", "for", "foreign", "freeze", "from", "full", "grant", "group",
        "having", "ilike", "in", "initially", "inner", "intersect", "into", "is",
        "isnull", "join", "lateral", "leading", "left", "like", "limit",
        "localtime", "localtimestamp", "natural", "not", "notnull", "null",
        "offset", "on", "only", "or", "order", "outer", "overlaps", "placing",
        "primary", "references", "returning", "right", "select", "session_user",
        "similar", "some", "symmetric", "table", "tablesample", "then", "to",
        "trailing", "true", "union", "unique", "user", "using", "variadic",
        "verbose", "when", "where", "window", "with",
    },
)  # fmt: skip


@dataclass(frozen=True)
class ValidationRules:
    """Limits applied by the validator."""

    max_tables: int = 100
    max_columns: int = 100
    max_name_length: int = 63
    min_varchar_length: int = 1
    max_varchar_length: int = 65535
    default_varchar_length: int = 255


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation finding."""

    id: str
    code: str
    severity: Severity
    message: str
    table: str | None = None
    column: str | None = None
    suggestion: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Errors and warnings found in a schema."""

    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """A schema is valid when it has no errors; warnings are advisory."""
        return not self.errors

    @property
    def issues(self) -> list[ValidationIssue]:
        """Errors followed by warnings."""
        return [*self.errors, *self.warnings]


class _Collector:
    """Accumulates issues by severity."""

    def __init__(self) -> None:
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []

    def add(  # noqa: PLR0913
        self,
        severity: Severity,
        code: str,
        message: str,
        *,
        table: str | None = None,
        column: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        issue = ValidationIssue(
            id=new_id(),
            code=code,
            severity=severity,
            message=message,
            table=table,
            column=column,
            suggestion=suggestion,
        )
        (self.errors if severity == "error" else self.warnings).append(issue)

    def extend(self, result: ValidationResult) -> None:
        self.errors.extend(result.errors)
        self.warnings.extend(result.warnings)

    def result(self) -> ValidationResult:
        return ValidationResult(errors=self.errors, warnings=self.warnings)


def _check_name(  # noqa: PLR0913
    issues: _Collector,
    kind: Literal["TABLE", "COLUMN"],
    name: str,
    rules: ValidationRules,
    *,
    table: str | None = None,
    column: str | None = None,
) -> None:
    label = kind.capitalize()
    if not VALID_NAME.match(name):
        issues.add(
            "error",
            f"{kind}_INVALID_NAME",
            f"{label} name '{name}' must start with a lowercase letter and "
            "contain only lowercase letters, digits and underscores",
            table=table,
            column=column,
            suggestion=re.sub(r"[^a-z0-9_]", "_", name.lower()),
        )
    if len(name) > rules.max_name_length:
        issues.add(
            "error",
            f"{kind}_NAME_TOO_LONG",
            f"{label} name '{name}' exceeds {rules.max_name_length} characters",
            table=table,
            column=column,
            suggestion=name[: rules.max_name_length],
        )
    if name.lower() in POSTGRES_RESERVED_WORDS:
        issues.add(
            "warning",
            f"{kind}_RESERVED_WORD",
            f"{label} name '{name}' is a PostgreSQL reserved word",
            table=table,
            column=column,
            suggestion=f"{name}_value",
        )


def validate_column(
    column: Column,
    table_name: str,
    rules: ValidationRules | None = None,
) -> ValidationResult:
    """Validate a single column definition."""
    rules = rules or ValidationRules()
    issues = _Collector()
    name = column["name"]
    _check_name(issues, "COLUMN", name, rules, table=table_name, column=name)

    column_type = column["type"]
    length = column.get("length")
    if column_type in BOUNDED_STRING_TYPES:
        if length is None:
            issues.add(
                "warning",
                "COLUMN_VARCHAR_NO_LENGTH",
                f"{column_type} column '{name}' has no length",
                table=table_name,
                column=name,
                suggestion=f"{column_type}({rules.default_varchar_length})",
            )
        elif length < rules.min_varchar_length:
            issues.add(
                "error",
                "COLUMN_VARCHAR_LENGTH_TOO_SMALL",
                f"{column_type} length {length} is below "
                f"{rules.min_varchar_length}",
                table=table_name,
                column=name,
                suggestion=f"{column_type}({rules.default_varchar_length})",
            )
        elif length > rules.max_varchar_length:
            issues.add(
                "error",
                "COLUMN_VARCHAR_LENGTH_TOO_LARGE",
                f"{column_type} length {length} exceeds "
                f"{rules.max_varchar_length}",
                table=table_name,
                column=name,
                suggestion=StorageType.TEXT,
            )

    if column_type in FIXED_POINT_TYPES:
        precision, scale = column.get("precision"), column.get("scale")
        if precision is not None and scale is not None and scale > precision:
            issues.add(
                "error",
                "COLUMN_NUMERIC_INVALID_SCALE",
                f"Scale {scale} cannot exceed precision {precision}",
                table=table_name,
                column=name,
                suggestion=f"{column_type}({precision}, {precision})",
            )

    if has_constraint(column, "PRIMARY KEY") and column["nullable"]:
        issues.add(
            "error",
            "COLUMN_PK_NULLABLE",
            f"Primary key column '{name}' cannot be nullable",
            table=table_name,
            column=name,
            suggestion="Set nullable to false",
        )
    return issues.result()


def validate_table(
    table: Table,
    rules: ValidationRules | None = None,
) -> ValidationResult:
    """Validate a table and each of its columns."""
    rules = rules or ValidationRules()
    issues = _Collector()
    name = table["name"]
    _check_name(issues, "TABLE", name, rules, table=name)

    columns = table["columns"]
    if not columns:
        issues.add(
            "error",
            "TABLE_NO_COLUMNS",
            f"Table '{name}' has no columns",
            table=name,
        )
    if len(columns) > rules.max_columns:
        issues.add(
            "error",
            "TABLE_TOO_MANY_COLUMNS",
            f"Table '{name}' has {len(columns)} columns, limit is "
            f"{rules.max_columns}",
            table=name,
        )

    seen: set[str] = set()
    primary_key: str | None = None
    for column in columns:
        column_name = column["name"]
        if column_name.lower() in seen:
            issues.add(
                "error",
                "COLUMN_DUPLICATE_NAME",
                f"Duplicate column name '{column_name}' in table '{name}'",
                table=name,
                column=column_name,
            )
        seen.add(column_name.lower())

        if has_constraint(column, "PRIMARY KEY"):
            if primary_key is None:
                primary_key = column_name
            else:
                issues.add(
                    "error",
                    "TABLE_MULTIPLE_PRIMARY_KEYS",
                    f"Table '{name}' already has primary key '{primary_key}', "
                    f"'{column_name}' cannot also be one",
                    table=name,
                    column=column_name,
                    suggestion="Use a composite key or a unique constraint",
                )
        issues.extend(validate_column(column, name, rules))

    if columns and primary_key is None:
        issues.add(
            "warning",
            "TABLE_NO_PRIMARY_KEY",
            f"Table '{name}' has no primary key",
            table=name,
            suggestion="Add an 'id' UUID primary key",
        )
    return issues.result()


def _validate_relationship(
    relationship: Relationship,
    schema: DatabaseSchema,
    issues: _Collector,
) -> None:
    source_name = relationship["source_table"]
    target_name = relationship["target_table"]
    source, target = find_table(schema, source_name), find_table(schema, target_name)
    if source is None:
        issues.add(
            "error",
            "RELATIONSHIP_INVALID_SOURCE",
            f"Source table '{source_name}' not found",
            table=source_name,
        )
    if target is None:
        issues.add(
            "error",
            "RELATIONSHIP_INVALID_TARGET",
            f"Target table '{target_name}' not found",
            table=target_name,
        )
    if source is None or target is None:
        return

    source_column = find_column(source, relationship["source_column"])
    target_column = find_column(target, relationship["target_column"])
    if source_column is None:
        issues.add(
            "error",
            "RELATIONSHIP_INVALID_SOURCE_COLUMN",
            f"Source column '{relationship['source_column']}' not found in "
            f"'{source_name}'",
            table=source_name,
            column=relationship["source_column"],
        )
    if target_column is None:
        issues.add(
            "error",
            "RELATIONSHIP_INVALID_TARGET_COLUMN",
            f"Target column '{relationship['target_column']}' not found in "
            f"'{target_name}'",
            table=target_name,
            column=relationship["target_column"],
        )
    if source_column is None or target_column is None:
        return

    if source_name == target_name and source_column["name"] == target_column["name"]:
        issues.add(
            "error",
            "RELATIONSHIP_SELF_SAME_COLUMN",
            "Self-referencing relationship cannot use the same column",
            table=source_name,
            column=source_column["name"],
        )
    if source_column["type"] != target_column["type"]:
        issues.add(
            "warning",
            "RELATIONSHIP_TYPE_MISMATCH",
            f"Type mismatch in relationship: {source_column['type']} -> "
            f"{target_column['type']}",
            table=source_name,
            column=source_column["name"],
            suggestion=f"Change '{source_column['name']}' to {target_column['type']}",
        )
    if relationship["type"] == "one-to-one" and not (
        has_constraint(target_column, "PRIMARY KEY")
        or has_constraint(target_column, "UNIQUE")
    ):
        issues.add(
            "warning",
            "RELATIONSHIP_ONE_TO_ONE_NOT_UNIQUE",
            "One-to-one relationships require a unique or primary key target",
            table=target_name,
            column=target_column["name"],
        )


def _validate_policy(
    policy: RLSPolicy,
    schema: DatabaseSchema,
    issues: _Collector,
) -> None:
    table_name = policy["table_name"]
    if find_table(schema, table_name) is None:
        issues.add(
            "error",
            "RLS_POLICY_INVALID_TABLE",
            f"Policy '{policy['name']}' targets unknown table '{table_name}'",
            table=table_name,
        )

    using, with_check = policy.get("using"), policy.get("with_check")
    match policy["command"]:
        case "INSERT":
            valid = bool(with_check) and not using
            expected = "a WITH CHECK expression only"
        case "UPDATE" | "ALL":
            valid = bool(using) and bool(with_check)
            expected = "both USING and WITH CHECK expressions"
        case _:
            valid = bool(using) and not with_check
            expected = "a USING expression only"
    if not valid:
        issues.add(
            "error",
            "RLS_POLICY_INVALID",
            f"{policy['command']} policy '{policy['name']}' needs {expected}",
            table=table_name,
        )


def validate_schema(
    schema: DatabaseSchema,
    rules: ValidationRules | None = None,
) -> ValidationResult:
    """Validate a whole schema.

    Never raises for schema content; every problem is reported as an issue.

    Args:
        schema: Schema to check
        rules: Limits to enforce, defaults when omitted

    Returns:
        Validation result, valid when no errors were found

    """
    rules = rules or ValidationRules()
    issues = _Collector()
    tables = schema["tables"]

    if not tables:
        issues.add("error", "SCHEMA_EMPTY", "Schema has no tables")
    if len(tables) > rules.max_tables:
        issues.add(
            "error",
            "SCHEMA_TOO_MANY_TABLES",
            f"Schema has {len(tables)} tables, limit is {rules.max_tables}",
        )

    seen: set[str] = set()
    for table in tables:
        if table["name"].lower() in seen:
            issues.add(
                "error",
                "TABLE_DUPLICATE_NAME",
                f"Duplicate table name '{table['name']}'",
                table=table["name"],
            )
        seen.add(table["name"].lower())
        issues.extend(validate_table(table, rules))

    for relationship in schema["relationships"]:
        _validate_relationship(relationship, schema, issues)

    for policy in schema["rls_policies"]:
        _validate_policy(policy, schema, issues)

    return issues.result()
