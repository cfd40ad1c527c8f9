"""Type definitions for CSV ingestion."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal
from uuid import uuid4

if TYPE_CHECKING:
    from pathlib import Path

# Defaults shared by the parser and the configuration loader
DEFAULT_SAMPLE_SIZE = 1000
MAX_PREVIEW_ROWS = 100
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50 MiB
SAMPLE_VALUE_COUNT = 20

type Cell = str | None
type Row = tuple[Cell, ...]
type Severity = Literal["warning", "error"]
type CSVSource = Path | tuple[str, bytes]


@dataclass(frozen=True)
class ParseConfig:
    """Options controlling how a CSV file is read.

    ``delimiter`` and ``encoding`` are detected when left as ``None``; the
    resolved values are recorded on the returned :class:`ParseResult`.
    """

    delimiter: str | None = None
    encoding: str | None = None
    has_header: bool = True
    skip_empty_lines: bool = True
    trim_whitespace: bool = True
    sample_size: int = DEFAULT_SAMPLE_SIZE
    max_file_size: int = MAX_FILE_SIZE


@dataclass(frozen=True)
class ParseIssue:
    """A non-fatal problem found while parsing."""

    row: int
    message: str
    code: str
    type: Severity = "warning"
    column: str | None = None


@dataclass(frozen=True)
class CSVColumnStats:
    """Statistics for one column, computed over the sampled rows."""

    index: int
    name: str
    original_name: str
    sample_values: tuple[Cell, ...]
    unique_values: frozenset[str]
    null_count: int  # Missing and empty cells
    empty_count: int  # Explicitly empty cells only
    total_count: int

    @property
    def non_null_count(self) -> int:
        """Number of cells holding a value."""
        return self.total_count - self.null_count

    @property
    def unique_count(self) -> int:
        """Number of distinct non-empty values."""
        return len(self.unique_values)

    @property
    def unique_ratio(self) -> float:
        """Ratio of distinct values to non-null values."""
        if self.non_null_count == 0:
            return 0.0
        return self.unique_count / self.non_null_count

    @property
    def null_ratio(self) -> float:
        """Ratio of null cells to all cells."""
        if self.total_count == 0:
            return 0.0
        return self.null_count / self.total_count


@dataclass(frozen=True)
class ParseResult:
    """Parsed contents of a single CSV file."""

    file_name: str
    headers: tuple[str, ...]
    data: tuple[Row, ...]
    total_rows: int
    columns: tuple[CSVColumnStats, ...]
    config: ParseConfig
    parse_errors: tuple[ParseIssue, ...] = ()
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def sampled_rows(self) -> int:
        """Number of rows kept in ``data``."""
        return len(self.data)

    @property
    def warnings(self) -> tuple[ParseIssue, ...]:
        """Issues with warning severity."""
        return tuple(issue for issue in self.parse_errors if issue.type == "warning")

    def column(self, name: str) -> CSVColumnStats | None:
        """Look up column statistics by header name."""
        return next((col for col in self.columns if col.name == name), None)


@dataclass(frozen=True)
class FileFailure:
    """A file that could not be parsed in a batch."""

    file_name: str
    error: Exception


@dataclass(frozen=True)
class BatchParseResult:
    """Outcome of parsing several files independently."""

    results: tuple[ParseResult, ...]
    failures: tuple[FileFailure, ...] = ()


@dataclass(frozen=True)
class CSVPreview:
    """A bounded view of parsed rows for display."""

    headers: tuple[str, ...]
    rows: tuple[Row, ...]
    total_rows: int
    shown_rows: int
