"""Type inference engine for CSV columns."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from dbschema.types import (
    CheckConstraint,
    DefaultConstraint,
    NotNullConstraint,
    StorageType,
    UniqueConstraint,
)

from .naming import sanitize_name, to_snake_case
from .patterns import SHAPE_CHECKS, classify_value, matches_shape, varchar_length
from .types import TypeInferenceResult, ValueClassification, ValueShape

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ingest.types import CSVColumnStats


class TypeInferenceEngine:
    """Infers a storage type and constraints from column statistics."""

    # Tunable thresholds
    MAX_CONFIDENCE = 0.95
    EMPTY_COLUMN_CONFIDENCE = 0.1
    SHAPE_MATCH_THRESHOLD = 0.8  # Min share of distinct values with a shape
    ENUM_CARDINALITY_RATIO = 0.1  # Max unique/total ratio for an enum
    ENUM_MIN_VALUES = 2
    ENUM_MAX_VALUES = 10
    NOT_NULL_RATIO = 0.01  # Max null ratio for NOT NULL
    NOT_NULL_MAX_COUNT = 2
    UNIQUE_RATIO = 0.95  # Min unique/total ratio for UNIQUE
    UNIQUE_MIN_ROWS = 10
    EXAMPLE_COUNT = 5

    SHAPE_LABELS = {
        ValueShape.EMAIL: "email",
        ValueShape.PHONE: "phone",
        ValueShape.URL: "URL",
    }

    def infer_column_type(self, stats: CSVColumnStats) -> TypeInferenceResult:
        """Infer the storage type of a column from its distinct values.

        Each distinct value is classified on its own. The type whose values
        are both frequent and confident wins, and the column's null and
        cardinality profile adds NOT NULL, UNIQUE and CHECK constraints.
        """
        values = sorted(value for value in stats.unique_values if value.strip())
        column = sanitize_name(stats.name)

        if not values:
            return TypeInferenceResult(
                type=StorageType.VARCHAR,
                confidence=self.EMPTY_COLUMN_CONFIDENCE,
                reasoning="All values are null or empty",
                constraints=[DefaultConstraint(type="DEFAULT", expression="NULL")],
            )

        classifications = [classify_value(value) for value in values]
        best_type, best_group, score = self._pick_type(classifications)

        consistency = len(best_group) / len(values)
        confidence = min(score * consistency, self.MAX_CONFIDENCE)

        result = TypeInferenceResult(
            type=best_type,
            confidence=confidence,
            reasoning=(
                f"Inferred as {best_type} based on {len(best_group)}/{len(values)} "
                f"values ({consistency * 100:.1f}% consistency)"
            ),
            examples=values[: self.EXAMPLE_COUNT],
        )

        self._apply_sizes(result, best_group, values)
        self._apply_shape_check(result, column, values)
        self._apply_enum_check(result, column, stats)
        self._apply_null_and_unique(result, stats)
        return result

    def _pick_type(
        self,
        classifications: list[ValueClassification],
    ) -> tuple[StorageType, list[ValueClassification], float]:
        """Score each type by frequency times mean confidence.

        The first type encountered wins ties.
        """
        groups: dict[StorageType, list[ValueClassification]] = defaultdict(list)
        for classification in classifications:
            groups[classification.type].append(classification)

        total = len(classifications)
        scored = []
        for storage_type, group in groups.items():
            mean = sum(c.confidence for c in group) / len(group)
            scored.append((storage_type, group, len(group) / total * mean))

        # max keeps the first of equal scores
        return max(scored, key=lambda item: item[2])

    def _apply_sizes(
        self,
        result: TypeInferenceResult,
        group: list[ValueClassification],
        values: list[str],
    ) -> None:
        """Suggest length, precision and scale from the winning values."""
        match result.type:
            case StorageType.VARCHAR:
                lengths = [c.length for c in group if c.length is not None]
                result.suggested_length = (
                    max(lengths)
                    if lengths
                    else varchar_length(max(len(value) for value in values))
                )
            case StorageType.NUMERIC:
                result.suggested_precision = max(
                    (c.precision for c in group if c.precision is not None),
                    default=None,
                )
                result.suggested_scale = max(
                    (c.scale for c in group if c.scale is not None),
                    default=None,
                )

    def _apply_shape_check(
        self,
        result: TypeInferenceResult,
        column: str,
        values: list[str],
    ) -> None:
        """Add a format CHECK when most values share a text shape."""
        if result.type not in {StorageType.VARCHAR, StorageType.TEXT}:
            return

        for shape in (ValueShape.EMAIL, ValueShape.PHONE, ValueShape.URL):
            matches = sum(1 for value in values if matches_shape(value, shape))
            if matches / len(values) >= self.SHAPE_MATCH_THRESHOLD:
                result.constraints.append(
                    CheckConstraint(
                        type="CHECK",
                        expression=SHAPE_CHECKS[shape].format(column=column),
                    ),
                )
                result.reasoning += f". Detected {self.SHAPE_LABELS[shape]} format"
                return

    def _apply_enum_check(
        self,
        result: TypeInferenceResult,
        column: str,
        stats: CSVColumnStats,
    ) -> None:
        """Add a CHECK IN list for low-cardinality columns."""
        if stats.total_count == 0:
            return
        cardinality = stats.unique_count / stats.total_count
        if cardinality >= self.ENUM_CARDINALITY_RATIO:
            return

        result.reasoning += (
            f". Low cardinality ({stats.unique_count} unique values) "
            "suggests possible enum"
        )
        if (
            result.type != StorageType.BOOLEAN
            and self.ENUM_MIN_VALUES <= stats.unique_count <= self.ENUM_MAX_VALUES
        ):
            literals = ", ".join(
                "'{}'".format(value.replace("'", "''"))
                for value in sorted(stats.unique_values)
            )
            result.constraints.append(
                CheckConstraint(type="CHECK", expression=f"{column} IN ({literals})"),
            )

    def _apply_null_and_unique(
        self,
        result: TypeInferenceResult,
        stats: CSVColumnStats,
    ) -> None:
        """Add NOT NULL and UNIQUE from the null and cardinality profile."""
        if stats.total_count == 0:
            return

        if (
            stats.null_ratio < self.NOT_NULL_RATIO
            and stats.null_count <= self.NOT_NULL_MAX_COUNT
        ):
            result.constraints.append(NotNullConstraint(type="NOT NULL"))

        cardinality = stats.unique_count / stats.total_count
        if cardinality > self.UNIQUE_RATIO and stats.total_count > self.UNIQUE_MIN_ROWS:
            result.constraints.append(UniqueConstraint(type="UNIQUE"))


def infer_column_type(stats: CSVColumnStats) -> TypeInferenceResult:
    """Infer the storage type of a single column."""
    return TypeInferenceEngine().infer_column_type(stats)


def analyze_all_columns(
    columns: Iterable[CSVColumnStats],
) -> dict[str, TypeInferenceResult]:
    """Infer every column, keyed by column name."""
    engine = TypeInferenceEngine()
    return {stats.name: engine.infer_column_type(stats) for stats in columns}


def suggest_column_name(name: str) -> str:
    """Suggest a snake_case column name for a header."""
    suggested = to_snake_case(name)
    if not suggested:
        return "unnamed_column"
    if suggested[0].isdigit():
        return f"col_{suggested}"
    return suggested
