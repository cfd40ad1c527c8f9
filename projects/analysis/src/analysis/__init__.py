"""Type inference, relationship detection and schema assembly for CSV files."""

from .config import AnalysisConfig, load_config
from .inference import (
    TypeInferenceEngine,
    analyze_all_columns,
    infer_column_type,
    suggest_column_name,
)
from .main import AnalysisOutcome, analyze_files, assemble_schema, build_schema
from .patterns import classify_value
from .relationships import (
    RelationshipDetector,
    analyze_relationship_cardinality,
    detect_relationships,
    rank_relationships,
)
from .reporting import report_to_json, report_to_markdown
from .types import (
    CardinalityAssessment,
    HintType,
    RelationshipHint,
    TypeInferenceResult,
    ValueClassification,
    ValueShape,
)

__all__ = [
    "AnalysisConfig",
    "AnalysisOutcome",
    "CardinalityAssessment",
    "HintType",
    "RelationshipDetector",
    "RelationshipHint",
    "TypeInferenceEngine",
    "TypeInferenceResult",
    "ValueClassification",
    "ValueShape",
    "analyze_all_columns",
    "analyze_files",
    "analyze_relationship_cardinality",
    "assemble_schema",
    "build_schema",
    "classify_value",
    "detect_relationships",
    "infer_column_type",
    "load_config",
    "rank_relationships",
    "report_to_json",
    "report_to_markdown",
    "suggest_column_name",
]
