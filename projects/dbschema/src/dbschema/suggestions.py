"""Conversion of externally drafted schema suggestions into the schema model.

Suggestions arrive as decoded JSON with camelCase keys and constraints written
as SQL fragments, e.g. ``"REFERENCES users(id) ON DELETE CASCADE"``.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from logging import getLogger
from typing import NotRequired, TypedDict, cast

from .types import (
    Column,
    Constraint,
    DatabaseSchema,
    ForeignKeyConstraint,
    Index,
    PolicyCommand,
    ReferentialAction,
    Relationship,
    RelationshipType,
    RLSPolicy,
    StorageType,
    Table,
    new_id,
)

logger = getLogger(__name__)


class AICascadeRules(TypedDict, total=False):
    """Referential actions of a suggested relationship."""

    onDelete: ReferentialAction
    onUpdate: ReferentialAction


class AIColumnSuggestion(TypedDict):
    """A suggested column."""

    name: str
    type: str
    nullable: bool
    constraints: list[str]
    originalName: NotRequired[str]
    length: NotRequired[int]
    precision: NotRequired[int]
    scale: NotRequired[int]
    defaultValue: NotRequired[str]
    reasoning: NotRequired[str]
    confidence: NotRequired[float]


class AIRelationshipSuggestion(TypedDict):
    """A suggested relationship; ``sourceTable`` is implied when nested in a table."""

    sourceColumn: str
    targetTable: str
    targetColumn: str
    type: RelationshipType
    sourceTable: NotRequired[str]
    confidence: NotRequired[float]
    reasoning: NotRequired[str]
    cascadeRules: NotRequired[AICascadeRules]


class AIIndexSuggestion(TypedDict):
    """A suggested index."""

    name: str
    columns: list[str]
    unique: bool


class AIPolicySuggestion(TypedDict):
    """A suggested row level security policy."""

    name: str
    operation: PolicyCommand
    using: NotRequired[str]
    with_check: NotRequired[str]


class AITableSuggestion(TypedDict):
    """A suggested table."""

    name: str
    columns: list[AIColumnSuggestion]
    comment: NotRequired[str]
    relationships: NotRequired[list[AIRelationshipSuggestion]]
    indexes: NotRequired[list[AIIndexSuggestion]]
    rlsPolicies: NotRequired[list[AIPolicySuggestion]]


class AIAnalysisResponse(TypedDict):
    """A drafted schema."""

    tables: list[AITableSuggestion]
    relationships: NotRequired[list[AIRelationshipSuggestion]]
    confidence: NotRequired[float]
    reasoning: NotRequired[str]


_ACTION = r"(CASCADE|SET NULL|RESTRICT|NO ACTION)"
REFERENCES = re.compile(
    r"REFERENCES\s+([\w.]+)\s*\(\s*(\w+)\s*\)"
    rf"(?:\s+ON\s+DELETE\s+{_ACTION})?"
    rf"(?:\s+ON\s+UPDATE\s+{_ACTION})?",
    re.IGNORECASE,
)
CHECK = re.compile(r"^CHECK\s*\((.*)\)$", re.IGNORECASE | re.DOTALL)
DEFAULT = re.compile(r"^DEFAULT\s+(.+)$", re.IGNORECASE | re.DOTALL)


def parse_constraint(fragment: str) -> Constraint | None:
    """Parse a SQL constraint fragment.

    Returns None for fragments that carry no usable constraint, such as a
    bare ``FOREIGN KEY`` without a target.
    """
    text = " ".join(fragment.split())
    upper = text.upper()

    if match := REFERENCES.search(text):
        table, column, on_delete, on_update = match.groups()
        constraint: ForeignKeyConstraint = {
            "type": "FOREIGN KEY",
            "referenced_table": table,
            "referenced_column": column,
        }
        if on_delete:
            constraint["on_delete"] = cast("ReferentialAction", on_delete.upper())
        if on_update:
            constraint["on_update"] = cast("ReferentialAction", on_update.upper())
        return constraint
    if upper == "PRIMARY KEY":
        return {"type": "PRIMARY KEY"}
    if upper == "NOT NULL":
        return {"type": "NOT NULL"}
    if upper == "UNIQUE":
        return {"type": "UNIQUE"}
    if match := CHECK.match(text):
        return {"type": "CHECK", "expression": match.group(1).strip()}
    if match := DEFAULT.match(text):
        return {"type": "DEFAULT", "expression": match.group(1).strip()}

    logger.debug("Ignoring unrecognized constraint %r", fragment)
    return None


def _column(suggestion: AIColumnSuggestion) -> Column:
    try:
        column_type = StorageType(suggestion["type"].upper())
    except ValueError as err:
        msg = f"Unknown column type {suggestion['type']!r} for {suggestion['name']!r}"
        raise ValueError(msg) from err

    constraints = [
        constraint
        for fragment in suggestion.get("constraints", [])
        if (constraint := parse_constraint(fragment)) is not None
    ]
    kinds = {constraint["type"] for constraint in constraints}
    column = Column(
        id=new_id(),
        name=suggestion["name"],
        type=column_type,
        nullable=suggestion.get("nullable", True)
        and not kinds & {"PRIMARY KEY", "NOT NULL"},
        constraints=constraints,
    )
    if "length" in suggestion:
        column["length"] = int(suggestion["length"])
    if "precision" in suggestion:
        column["precision"] = int(suggestion["precision"])
    if "scale" in suggestion:
        column["scale"] = int(suggestion["scale"])
    if "defaultValue" in suggestion:
        column["default_value"] = suggestion["defaultValue"]
    if "reasoning" in suggestion:
        column["comment"] = suggestion["reasoning"]
    if "originalName" in suggestion:
        column["original_name"] = suggestion["originalName"]
    return column


def _relationship(
    suggestion: AIRelationshipSuggestion,
    source_table: str,
) -> Relationship:
    relationship = Relationship(
        id=new_id(),
        source_table=suggestion.get("sourceTable", source_table),
        source_column=suggestion["sourceColumn"],
        target_table=suggestion["targetTable"],
        target_column=suggestion["targetColumn"],
        type=suggestion["type"],
    )
    rules = suggestion.get("cascadeRules", {})
    if "onDelete" in rules:
        relationship["on_delete"] = rules["onDelete"]
    if "onUpdate" in rules:
        relationship["on_update"] = rules["onUpdate"]
    return relationship


def _policy(suggestion: AIPolicySuggestion, table_name: str) -> RLSPolicy:
    policy = RLSPolicy(
        id=new_id(),
        table_name=table_name,
        name=suggestion["name"],
        command=suggestion["operation"],
    )
    if suggestion.get("using"):
        policy["using"] = suggestion["using"]
    if suggestion.get("with_check"):
        policy["with_check"] = suggestion["with_check"]
    return policy


def schema_from_suggestion(
    payload: AIAnalysisResponse,
    *,
    name: str | None = None,
) -> DatabaseSchema:
    """Build a schema from a drafted suggestion payload.

    Raises:
        ValueError: If a column names an unknown storage type
        KeyError: If a required field is missing

    """
    tables: list[Table] = []
    relationships: list[Relationship] = []
    policies: list[RLSPolicy] = []

    for table_suggestion in payload["tables"]:
        table_name = table_suggestion["name"]
        table = Table(
            id=new_id(),
            name=table_name,
            columns=[_column(col) for col in table_suggestion["columns"]],
            indexes=[
                Index(
                    id=new_id(),
                    name=index["name"],
                    columns=list(index["columns"]),
                    unique=index["unique"],
                    type="BTREE",
                )
                for index in table_suggestion.get("indexes", [])
            ],
        )
        if "comment" in table_suggestion:
            table["comment"] = table_suggestion["comment"]
        tables.append(table)
        relationships.extend(
            _relationship(rel, table_name)
            for rel in table_suggestion.get("relationships", [])
        )
        policies.extend(
            _policy(policy, table_name)
            for policy in table_suggestion.get("rlsPolicies", [])
        )

    for rel in payload.get("relationships", []):
        if "sourceTable" not in rel:
            logger.warning(
                "Skipping relationship on %s without a source table",
                rel["sourceColumn"],
            )
            continue
        relationships.append(_relationship(rel, rel["sourceTable"]))

    now = datetime.now(UTC)
    return DatabaseSchema(
        id=new_id(),
        name=name or "suggested_schema",
        tables=tables,
        relationships=relationships,
        rls_policies=policies,
        version=1,
        created_at=now,
        updated_at=now,
    )

