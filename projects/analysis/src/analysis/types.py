"""Type definitions for the analysis module."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from dbschema.types import Constraint, RelationshipType, StorageType


class ValueShape(StrEnum):
    """Recognizable text formats that earn a CHECK constraint."""

    EMAIL = "email"
    URL = "url"
    PHONE = "phone"


class HintType(StrEnum):
    """Kinds of relationship evidence."""

    FOREIGN_KEY = "foreign-key"
    MANY_TO_MANY = "many-to-many"
    SELF_REFERENCE = "self-reference"


@dataclass(frozen=True)
class ValueClassification:
    """The storage type a single value suggests."""

    type: StorageType
    confidence: float  # 0.0 to 1.0
    shape: ValueShape | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None


@dataclass
class TypeInferenceResult:
    """The storage type and constraints inferred for a column."""

    type: StorageType
    confidence: float  # 0.0 to 0.95
    reasoning: str
    constraints: list[Constraint] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    suggested_length: int | None = None
    suggested_precision: int | None = None
    suggested_scale: int | None = None

    def has_constraint(self, kind: str) -> bool:
        """Check whether a constraint of the given kind was inferred."""
        return any(constraint["type"] == kind for constraint in self.constraints)


@dataclass(frozen=True)
class RelationshipHint:
    """Evidence that a column references another table."""

    source_column: str
    confidence: float  # 0.0 to 1.0
    type: HintType
    reasoning: str
    source_table: str | None = None
    target_table: str | None = None  # None when the target is unknown
    target_column: str | None = None


@dataclass(frozen=True)
class CardinalityAssessment:
    """Estimated cardinality of a relationship."""

    type: RelationshipType
    confidence: float
    reasoning: str


type OutputFormat = Literal["json", "markdown"]
