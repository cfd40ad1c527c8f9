"""Relational schema model with validation, type correction and SQL export."""

from .postprocess import TypeCorrection, correct_schema_types, post_process_schema_types
from .serialization import schema_from_dict, schema_from_json, schema_to_json
from .sqlalchemy_export import schema_to_ddl, schema_to_metadata
from .suggestions import AIAnalysisResponse, parse_constraint, schema_from_suggestion
from .type_conversion import format_column_type, storage_type_to_sql
from .types import (
    Column,
    Constraint,
    DatabaseSchema,
    Index,
    Relationship,
    RLSPolicy,
    StorageType,
    Table,
    find_column,
    find_table,
    has_constraint,
    new_id,
    primary_key_columns,
)
from .validation import (
    POSTGRES_RESERVED_WORDS,
    ValidationIssue,
    ValidationResult,
    ValidationRules,
    validate_column,
    validate_schema,
    validate_table,
)

__all__ = [
    "POSTGRES_RESERVED_WORDS",
    "AIAnalysisResponse",
    "Column",
    "Constraint",
    "DatabaseSchema",
    "Index",
    "RLSPolicy",
    "Relationship",
    "StorageType",
    "Table",
    "TypeCorrection",
    "ValidationIssue",
    "ValidationResult",
    "ValidationRules",
    "correct_schema_types",
    "find_column",
    "find_table",
    "format_column_type",
    "has_constraint",
    "new_id",
    "parse_constraint",
    "post_process_schema_types",
    "primary_key_columns",
    "schema_from_dict",
    "schema_from_json",
    "schema_from_suggestion",
    "schema_to_ddl",
    "schema_to_json",
    "schema_to_metadata",
    "storage_type_to_sql",
    "validate_column",
    "validate_schema",
    "validate_table",
]
