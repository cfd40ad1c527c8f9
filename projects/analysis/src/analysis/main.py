"""Schema assembly from parsed CSV files."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from dbschema.postprocess import correct_schema_types
from dbschema.types import (
    INTEGER_TYPES,
    Column,
    Constraint,
    DatabaseSchema,
    DefaultConstraint,
    ForeignKeyConstraint,
    Index,
    NotNullConstraint,
    PrimaryKeyConstraint,
    Relationship,
    RLSPolicy,
    StorageType,
    Table,
    find_column,
    new_id,
)
from dbschema.validation import validate_schema
from ingest.parser import parse_multiple_csvs

from .config import AnalysisConfig
from .inference import TypeInferenceEngine
from .naming import (
    generate_index_name,
    sanitize_name,
    table_names,
    unique_names,
)
from .patterns import DEFAULT_VARCHAR_LENGTH
from .relationships import (
    RelationshipDetector,
    analyze_relationship_cardinality,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dbschema.postprocess import TypeCorrection
    from dbschema.types import RelationshipType
    from dbschema.validation import ValidationResult
    from ingest.types import CSVColumnStats, CSVSource, FileFailure, ParseResult

    from .types import RelationshipHint, TypeInferenceResult

logger = getLogger(__name__)

# Constraints that a primary key makes redundant
PRIMARY_KEY_IMPLIED = frozenset({"NOT NULL", "UNIQUE", "DEFAULT"})

AUDIT_COLUMNS = ("created_at", "updated_at")
RLS_CONDITION = "auth.uid() IS NOT NULL"

# Inference results per table, keyed by header name
type TableInferences = dict[str, dict[str, TypeInferenceResult]]


@dataclass
class SchemaAssembly:
    """A built schema together with the evidence it was built from."""

    schema: DatabaseSchema
    inferences: TableInferences
    hints: list[RelationshipHint]


@dataclass
class AnalysisOutcome:
    """Everything the analysis pipeline produced for a batch of files."""

    schema: DatabaseSchema
    results: list[ParseResult]
    failures: list[FileFailure] = field(default_factory=list)
    hints: list[RelationshipHint] = field(default_factory=list)
    inferences: TableInferences = field(default_factory=dict)
    validation: ValidationResult | None = None
    corrections: list[TypeCorrection] = field(default_factory=list)

    @property
    def sources(self) -> dict[str, ParseResult]:
        """Parse results keyed by the table built from them."""
        return {
            table["name"]: result
            for table, result in zip(self.schema["tables"], self.results, strict=True)
        }


@dataclass
class _TableSource:
    """Links a built table to the parse result and headers it came from."""

    table: Table
    result: ParseResult
    columns_by_header: dict[str, str]  # header name -> column name
    inferences: dict[str, TypeInferenceResult]

    def stats_for(self, column: str) -> CSVColumnStats | None:
        """Statistics of the CSV column behind a table column."""
        for header, name in self.columns_by_header.items():
            if name == column:
                return self.result.column(header)
        return None


def _build_column(
    name: str,
    stats: CSVColumnStats,
    inference: TypeInferenceResult,
) -> Column:
    column = Column(
        id=new_id(),
        name=name,
        type=inference.type,
        nullable=not inference.has_constraint("NOT NULL"),
        constraints=list(inference.constraints),
        comment=inference.reasoning,
        original_name=stats.original_name,
    )
    if inference.suggested_length is not None:
        column["length"] = inference.suggested_length
    elif inference.type == StorageType.VARCHAR:
        column["length"] = DEFAULT_VARCHAR_LENGTH
    if inference.suggested_precision is not None:
        column["precision"] = inference.suggested_precision
    if inference.suggested_scale is not None:
        column["scale"] = inference.suggested_scale
    return column


def _make_primary_key(column: Column) -> None:
    """Turn an inferred ``id`` column into a non-null primary key."""
    kept: list[Constraint] = [
        constraint
        for constraint in column["constraints"]
        if constraint["type"] not in PRIMARY_KEY_IMPLIED
    ]
    column["constraints"] = [PrimaryKeyConstraint(type="PRIMARY KEY"), *kept]
    column["nullable"] = False


def _surrogate_key() -> Column:
    return Column(
        id=new_id(),
        name="id",
        type=StorageType.UUID,
        nullable=False,
        constraints=[
            PrimaryKeyConstraint(type="PRIMARY KEY"),
            DefaultConstraint(type="DEFAULT", expression="gen_random_uuid()"),
        ],
        comment="Generated primary key",
    )


def _audit_column(name: str) -> Column:
    return Column(
        id=new_id(),
        name=name,
        type=StorageType.TIMESTAMPTZ,
        nullable=False,
        constraints=[
            NotNullConstraint(type="NOT NULL"),
            DefaultConstraint(type="DEFAULT", expression="now()"),
        ],
    )


def _build_table(
    name: str,
    result: ParseResult,
    engine: TypeInferenceEngine,
    *,
    include_audit_columns: bool,
) -> _TableSource:
    names = unique_names([sanitize_name(stats.name) for stats in result.columns])
    columns: list[Column] = []
    columns_by_header: dict[str, str] = {}
    inferences: dict[str, TypeInferenceResult] = {}

    for column_name, stats in zip(names, result.columns, strict=True):
        inference = engine.infer_column_type(stats)
        columns.append(_build_column(column_name, stats, inference))
        columns_by_header.setdefault(stats.name, column_name)
        inferences.setdefault(stats.name, inference)

    if "id" in names:
        _make_primary_key(columns[names.index("id")])
    else:
        columns.insert(0, _surrogate_key())

    if include_audit_columns:
        columns.extend(
            _audit_column(audit) for audit in AUDIT_COLUMNS if audit not in names
        )

    table = Table(
        id=new_id(),
        name=name,
        columns=columns,
        indexes=[],
        comment=f"Generated from CSV file: {result.file_name}",
    )
    return _TableSource(table, result, columns_by_header, inferences)


@dataclass
class _Resolution:
    """Both ends of a hint mapped onto built tables and columns."""

    source: _TableSource
    source_column: Column
    target: _TableSource
    target_column: Column


def _resolve(
    hint: RelationshipHint,
    sources: dict[str, _TableSource],
) -> _Resolution | None:
    """Map a hint onto built tables and columns, if both ends exist."""
    if hint.source_table is None or hint.target_table is None:
        return None
    source, target = sources.get(hint.source_table), sources.get(hint.target_table)
    if source is None or target is None:
        return None

    source_name = source.columns_by_header.get(hint.source_column)
    target_header = hint.target_column or "id"
    target_name = target.columns_by_header.get(target_header, target_header)
    if source_name is None:
        return None
    source_column = find_column(source.table, source_name)
    target_column = find_column(target.table, target_name)
    if source_column is None or target_column is None or source_column is target_column:
        return None
    return _Resolution(source, source_column, target, target_column)


def _link(link: _Resolution) -> Relationship:
    """Create a relationship plus its foreign key constraint and index."""
    column, referenced = link.source_column, link.target_column
    source_stats = link.source.stats_for(column["name"])
    target_stats = link.target.stats_for(referenced["name"])
    cardinality: RelationshipType = "one-to-many"
    if source_stats is not None and target_stats is not None:
        cardinality = analyze_relationship_cardinality(source_stats, target_stats).type

    table_name = link.source.table["name"]
    target_name = link.target.table["name"]
    relationship = Relationship(
        id=new_id(),
        name=f"fk_{table_name}_{column['name']}",
        source_table=table_name,
        source_column=column["name"],
        target_table=target_name,
        target_column=referenced["name"],
        type=cardinality,
        on_delete="RESTRICT",
        on_update="CASCADE",
    )
    logger.debug(
        "Linked %s.%s -> %s.%s (%s)",
        table_name,
        column["name"],
        target_name,
        referenced["name"],
        cardinality,
    )
    if cardinality == "many-to-many":
        return relationship

    if column["type"] in INTEGER_TYPES and referenced["type"] in INTEGER_TYPES:
        column["type"] = referenced["type"]
    column["constraints"].append(
        ForeignKeyConstraint(
            type="FOREIGN KEY",
            referenced_table=target_name,
            referenced_column=referenced["name"],
            on_delete="RESTRICT",
            on_update="CASCADE",
        ),
    )
    link.source.table["indexes"].append(
        Index(
            id=new_id(),
            name=generate_index_name(table_name, [column["name"]]),
            columns=[column["name"]],
            unique=False,
            type="BTREE",
        ),
    )
    return relationship


def _policy(table: Table) -> RLSPolicy:
    return RLSPolicy(
        id=new_id(),
        table_name=table["name"],
        name=f"{table['name']}_policy",
        command="ALL",
        using=RLS_CONDITION,
        with_check=RLS_CONDITION,
        roles=["authenticated"],
    )


def assemble_schema(
    results: Sequence[ParseResult],
    *,
    name: str | None = None,
    include_audit_columns: bool = True,
    value_overlap: bool = False,
    include_rls: bool = False,
) -> SchemaAssembly:
    """Build a schema and keep the inference and relationship evidence."""
    engine = TypeInferenceEngine()
    detector = RelationshipDetector()

    names = table_names([result.file_name for result in results])
    sources = {
        table_name: _build_table(
            table_name,
            result,
            engine,
            include_audit_columns=include_audit_columns,
        )
        for table_name, result in zip(names, results, strict=True)
    }
    inferences: TableInferences = {
        table_name: source.inferences for table_name, source in sources.items()
    }

    candidates = detector.detect(
        results,
        tables=names,
        value_overlap=value_overlap,
    )
    resolved = {
        hint: link
        for hint in candidates
        if (link := _resolve(hint, sources)) is not None
    }
    hints = detector.rank(resolved)
    relationships = [_link(resolved[hint]) for hint in hints]

    tables = [source.table for source in sources.values()]
    now = datetime.now(UTC)
    schema = DatabaseSchema(
        id=new_id(),
        name=name or (names[0] if len(names) == 1 else "imported_schema"),
        tables=tables,
        relationships=relationships,
        rls_policies=[_policy(table) for table in tables] if include_rls else [],
        version=1,
        created_at=now,
        updated_at=now,
    )
    logger.info(
        "Built schema %s with %d tables and %d relationships",
        schema["name"],
        len(tables),
        len(relationships),
    )
    return SchemaAssembly(schema, inferences, hints)


def build_schema(
    results: Sequence[ParseResult],
    *,
    name: str | None = None,
    include_audit_columns: bool = True,
    value_overlap: bool = False,
    include_rls: bool = False,
) -> DatabaseSchema:
    """Build a relational schema from parsed CSV files.

    Args:
        results: Parsed files, one table each
        name: Schema name, derived from the files when omitted
        include_audit_columns: Add ``created_at`` and ``updated_at`` columns
        value_overlap: Also look for relationships in shared column values
        include_rls: Add a row level security policy per table

    Returns:
        The assembled schema

    """
    return assemble_schema(
        results,
        name=name,
        include_audit_columns=include_audit_columns,
        value_overlap=value_overlap,
        include_rls=include_rls,
    ).schema


def analyze_files(
    files: Sequence[CSVSource],
    config: AnalysisConfig | None = None,
    *,
    name: str | None = None,
) -> AnalysisOutcome:
    """Run the whole pipeline: parse, assemble, validate and post-process.

    Raises:
        BatchParseError: If no file could be parsed

    """
    config = config or AnalysisConfig()
    batch = parse_multiple_csvs(files, config.parse)

    assembly = assemble_schema(
        batch.results,
        name=name,
        include_audit_columns=config.include_audit_columns,
        value_overlap=config.value_overlap,
        include_rls=config.include_rls,
    )
    validation = validate_schema(assembly.schema, config.validation)
    schema, corrections = correct_schema_types(assembly.schema)

    return AnalysisOutcome(
        schema=schema,
        results=list(batch.results),
        failures=list(batch.failures),
        hints=assembly.hints,
        inferences=assembly.inferences,
        validation=validation,
        corrections=corrections,
    )
