"""Relationship detection between parsed CSV files."""

from __future__ import annotations

import re
from itertools import combinations
from logging import getLogger
from typing import TYPE_CHECKING

from .naming import pluralize, singularize, table_names, to_snake_case
from .patterns import UUID_PATTERN
from .types import CardinalityAssessment, HintType, RelationshipHint

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from ingest.types import CSVColumnStats, ParseResult

logger = getLogger(__name__)

SELF_REFERENCE_PATTERNS = tuple(
    re.compile(rf"^{stem}_?id$")
    for stem in (
        "parent",
        "manager",
        "supervisor",
        "leader",
        "head",
        "boss",
        "owner",
        "creator",
        "assigned_to",
        "reports_to",
    )
)

# Well-known foreign key stems and the table they usually point at
COMMON_FOREIGN_KEYS = {
    stem: pluralize(stem)
    for stem in (
        "user",
        "customer",
        "product",
        "order",
        "category",
        "department",
        "company",
        "organization",
        "project",
        "team",
        "group",
        "role",
        "status",
        "type",
        "account",
        "profile",
        "address",
        "location",
        "country",
        "state",
        "city",
        "region",
    )
}
COMMON_FOREIGN_KEY_PATTERNS = tuple(
    (re.compile(rf"^{stem}_?id$"), table) for stem, table in COMMON_FOREIGN_KEYS.items()
)


class RelationshipDetector:
    """Finds likely foreign keys from column names and values."""

    # Tunable thresholds
    SELF_REFERENCE_CONFIDENCE = 0.85
    TABLE_ID_CONFIDENCE = 0.8
    COMMON_KEY_CONFIDENCE = 0.9
    GENERIC_KEY_CONFIDENCE = 0.7
    UUID_CONFIDENCE = 0.6
    UUID_RATIO = 0.8  # Min share of UUID-shaped distinct values
    CROSS_TABLE_ID_CONFIDENCE = 0.9
    CROSS_TABLE_NAME_CONFIDENCE = 0.7
    JUNCTION_CONFIDENCE = 0.8
    OVERLAP_RATIO = 0.5
    OVERLAP_MIN_COMMON = 2
    OVERLAP_WEIGHT = 0.8
    OVERLAP_MAX_CONFIDENCE = 0.9
    MIN_CONFIDENCE = 0.3

    def detect(
        self,
        results: Sequence[ParseResult],
        *,
        tables: Sequence[str] | None = None,
        value_overlap: bool = False,
    ) -> list[RelationshipHint]:
        """Run the detection passes appropriate for the number of files.

        Hints name tables by ``tables``, one per result, which defaults to
        the de-duplicated names derived from the file names.
        """
        if tables is None:
            tables = table_names([result.file_name for result in results])
        hints: list[RelationshipHint] = []
        if len(results) == 1:
            hints.extend(self.detect_self_references(tables[0], results[0]))
            hints.extend(self.detect_implicit(tables[0], results[0]))
        else:
            for table, result in zip(tables, results, strict=True):
                hints.extend(self.detect_implicit(table, result))
            hints.extend(self.detect_cross_table(tables, results))
            if value_overlap:
                hints.extend(self.detect_value_overlap(tables, results))

        logger.debug(
            "Detected %d relationship hints in %d files",
            len(hints),
            len(results),
        )
        return hints

    def detect_self_references(
        self,
        table: str,
        result: ParseResult,
    ) -> list[RelationshipHint]:
        """Find columns that point back at their own table."""
        table_key = f"{singularize(table)}_id"
        hints: list[RelationshipHint] = []

        for column in result.columns:
            name = to_snake_case(column.name)
            if any(pattern.match(name) for pattern in SELF_REFERENCE_PATTERNS):
                hints.append(
                    RelationshipHint(
                        source_table=table,
                        source_column=column.name,
                        target_table=table,
                        target_column="id",
                        confidence=self.SELF_REFERENCE_CONFIDENCE,
                        type=HintType.SELF_REFERENCE,
                        reasoning=(
                            f"Self-referential relationship detected: {column.name} "
                            f"likely references {table}.id"
                        ),
                    ),
                )
            if name == table_key:
                hints.append(
                    RelationshipHint(
                        source_table=table,
                        source_column=column.name,
                        target_table=table,
                        target_column="id",
                        confidence=self.TABLE_ID_CONFIDENCE,
                        type=HintType.SELF_REFERENCE,
                        reasoning=(
                            f"Column name {column.name} suggests "
                            f"self-reference to {table}"
                        ),
                    ),
                )

        logger.debug("Found %d self references in %s", len(hints), table)
        return hints

    def detect_implicit(
        self,
        table: str,
        result: ParseResult,
    ) -> list[RelationshipHint]:
        """Find foreign keys implied by naming conventions and UUID values."""
        hints: list[RelationshipHint] = []

        for column in result.columns:
            name = to_snake_case(column.name)

            for pattern, target in COMMON_FOREIGN_KEY_PATTERNS:
                if pattern.match(name):
                    hints.append(
                        self._foreign_key(
                            table,
                            column.name,
                            target,
                            self.COMMON_KEY_CONFIDENCE,
                            f"Common foreign key pattern: {column.name} -> {target}.id",
                        ),
                    )

            if name.endswith("_id") and name != "id":
                target = pluralize(name.removesuffix("_id"))
                hints.append(
                    self._foreign_key(
                        table,
                        column.name,
                        target,
                        self.GENERIC_KEY_CONFIDENCE,
                        f"Foreign key pattern: {column.name} -> {target}.id",
                    ),
                )

            if hint := self._uuid_hint(table, column):
                hints.append(hint)

        logger.debug("Found %d implicit relationships in %s", len(hints), table)
        return hints

    def _uuid_hint(self, table: str, column: CSVColumnStats) -> RelationshipHint | None:
        """Flag a column of UUIDs as a foreign key with an unknown target."""
        if column.unique_count <= 1:
            return None
        uuid_count = sum(
            1 for value in column.unique_values if UUID_PATTERN.match(value)
        )
        ratio = uuid_count / column.unique_count
        if ratio <= self.UUID_RATIO:
            return None
        return RelationshipHint(
            source_table=table,
            source_column=column.name,
            confidence=self.UUID_CONFIDENCE,
            type=HintType.FOREIGN_KEY,
            reasoning=(
                f"Column contains mostly UUID values ({ratio * 100:.1f}%), "
                "likely foreign key"
            ),
        )

    def detect_cross_table(
        self,
        tables: Sequence[str],
        results: Sequence[ParseResult],
    ) -> list[RelationshipHint]:
        """Match column names against the names of the other tables."""
        hints: list[RelationshipHint] = []

        for source_table, result in zip(tables, results, strict=True):
            for column in result.columns:
                name = to_snake_case(column.name)
                for target_table in tables:
                    if target_table == source_table:
                        continue
                    hints.extend(
                        self._cross_table_hints(
                            source_table,
                            column.name,
                            name,
                            target_table,
                        ),
                    )

            if junction := self._junction_hint(source_table, result):
                hints.append(junction)

        logger.debug("Found %d cross-table relationships", len(hints))
        return hints

    def _cross_table_hints(
        self,
        source_table: str,
        column: str,
        name: str,
        target_table: str,
    ) -> list[RelationshipHint]:
        singular = singularize(target_table)
        plural = pluralize(target_table)
        candidates = (
            f"{singular}_id",
            f"{singular}id",
            f"{plural}_id",
            f"{plural}id",
            singular,
            plural,
        )
        confidence = (
            self.CROSS_TABLE_ID_CONFIDENCE
            if name.endswith("_id")
            else self.CROSS_TABLE_NAME_CONFIDENCE
        )
        return [
            self._foreign_key(
                source_table,
                column,
                target_table,
                confidence,
                f"Cross-table reference: {source_table}.{column} -> {target_table}.id",
            )
            for candidate in candidates
            if name == candidate or name.endswith(f"_{candidate}")
        ]

    def _junction_hint(
        self,
        table: str,
        result: ParseResult,
    ) -> RelationshipHint | None:
        """Recognize a two-part table name whose columns reference both parts."""
        parts = re.split(r"[_-]", table)
        if len(parts) != 2:  # noqa: PLR2004
            return None

        names = [column.name.lower() for column in result.columns]
        if not all(
            any(part in name and "id" in name for name in names) for part in parts
        ):
            return None

        first, second = parts
        return RelationshipHint(
            source_table=table,
            source_column=table,
            confidence=self.JUNCTION_CONFIDENCE,
            type=HintType.MANY_TO_MANY,
            reasoning=(
                f"Potential junction table: {table} appears to link "
                f"{first} and {second}"
            ),
        )

    def detect_value_overlap(
        self,
        tables: Sequence[str],
        results: Sequence[ParseResult],
    ) -> list[RelationshipHint]:
        """Compare distinct values of column pairs across tables."""
        hints: list[RelationshipHint] = []
        named = list(zip(tables, results, strict=True))

        for (source_table, source), (target_table, target) in combinations(named, 2):
            for source_column in source.columns:
                for target_column in target.columns:
                    if source_column.name.lower() == target_column.name.lower():
                        continue
                    hint = self._overlap_hint(
                        source_table,
                        source_column,
                        target_table,
                        target_column,
                    )
                    if hint is not None:
                        hints.append(hint)

        logger.debug("Found %d value overlap relationships", len(hints))
        return hints

    def _overlap_hint(
        self,
        source_table: str,
        source: CSVColumnStats,
        target_table: str,
        target: CSVColumnStats,
    ) -> RelationshipHint | None:
        smaller = min(source.unique_count, target.unique_count)
        if smaller == 0:
            return None
        common = len(source.unique_values & target.unique_values)
        ratio = common / smaller
        if ratio <= self.OVERLAP_RATIO or common <= self.OVERLAP_MIN_COMMON:
            return None
        return RelationshipHint(
            source_table=source_table,
            source_column=source.name,
            target_table=target_table,
            target_column=target.name,
            confidence=min(ratio * self.OVERLAP_WEIGHT, self.OVERLAP_MAX_CONFIDENCE),
            type=HintType.FOREIGN_KEY,
            reasoning=(
                f"High value overlap ({ratio * 100:.1f}%) between "
                f"{source_table}.{source.name} and {target_table}.{target.name}"
            ),
        )

    def rank(self, hints: Iterable[RelationshipHint]) -> list[RelationshipHint]:
        """Keep the most confident hint per source column, best first."""
        best: dict[tuple[str | None, str], RelationshipHint] = {}
        for hint in hints:
            if hint.confidence < self.MIN_CONFIDENCE:
                continue
            key = (hint.source_table, hint.source_column)
            if key not in best or hint.confidence > best[key].confidence:
                best[key] = hint
        return sorted(best.values(), key=lambda hint: hint.confidence, reverse=True)

    @staticmethod
    def _foreign_key(
        source_table: str,
        column: str,
        target_table: str,
        confidence: float,
        reasoning: str,
    ) -> RelationshipHint:
        return RelationshipHint(
            source_table=source_table,
            source_column=column,
            target_table=target_table,
            target_column="id",
            confidence=confidence,
            type=HintType.FOREIGN_KEY,
            reasoning=reasoning,
        )


def detect_relationships(
    results: Sequence[ParseResult],
    *,
    value_overlap: bool = False,
) -> list[RelationshipHint]:
    """Collect relationship hints for one or more parsed files.

    Args:
        results: Parsed files, one per table
        value_overlap: Also compare column values across tables

    Returns:
        Unranked hints, possibly several per column

    """
    return RelationshipDetector().detect(results, value_overlap=value_overlap)


def rank_relationships(hints: Iterable[RelationshipHint]) -> list[RelationshipHint]:
    """Drop weak hints and keep the strongest one per source column."""
    return RelationshipDetector().rank(hints)


def analyze_relationship_cardinality(
    source: CSVColumnStats,
    target: CSVColumnStats,
) -> CardinalityAssessment:
    """Estimate the cardinality of a relationship from column uniqueness."""
    source_ratio = source.unique_ratio
    target_ratio = target.unique_ratio

    if source_ratio > 0.9 and target_ratio > 0.9:  # noqa: PLR2004
        return CardinalityAssessment(
            type="one-to-one",
            confidence=min(source_ratio, target_ratio),
            reasoning="High uniqueness on both sides suggests one-to-one relationship",
        )
    if source_ratio > 0.9 and target_ratio < 0.7:  # noqa: PLR2004
        return CardinalityAssessment(
            type="one-to-many",
            confidence=source_ratio,
            reasoning=(
                "Source values are unique while target values repeat, "
                "suggesting one-to-many"
            ),
        )
    if source_ratio < 0.7 and target_ratio < 0.7:  # noqa: PLR2004
        return CardinalityAssessment(
            type="many-to-many",
            confidence=0.6,
            reasoning="Low uniqueness on both sides suggests many-to-many relationship",
        )
    return CardinalityAssessment(
        type="one-to-many",
        confidence=0.5,
        reasoning="Default assumption based on common database patterns",
    )
