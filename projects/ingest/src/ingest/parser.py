"""CSV parsing into sampled rows and per-column statistics."""

from __future__ import annotations

import csv
from dataclasses import replace
from io import StringIO
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from .detection import decode_content, detect_delimiter, detect_encoding
from .errors import (
    BatchParseError,
    CSVParseError,
    EmptyFileError,
    FileTooLargeError,
    MalformedCSVError,
)
from .types import (
    MAX_PREVIEW_ROWS,
    SAMPLE_VALUE_COUNT,
    BatchParseResult,
    Cell,
    CSVColumnStats,
    CSVPreview,
    FileFailure,
    ParseConfig,
    ParseIssue,
    ParseResult,
    Row,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .types import CSVSource

logger = getLogger(__name__)

# Marks a cell absent from a short row, as opposed to one left blank
_MISSING = object()

type _Cells = list[Cell | object]


def _read_rows(text: str, delimiter: str, file_name: str) -> list[list[str]]:
    """Tokenize text into raw rows."""
    try:
        return list(csv.reader(StringIO(text, newline=""), delimiter=delimiter))
    except csv.Error as err:
        raise MalformedCSVError(file_name, str(err)) from err


def _is_blank_line(row: Sequence[str]) -> bool:
    """Rows produced by empty lines."""
    return not row or row == [""]


def _clean(value: str, *, trim: bool) -> Cell:
    """Trim a raw cell and map empty strings to None."""
    if trim:
        value = value.strip()
    return value or None


def _normalize_headers(
    raw_headers: Sequence[str],
    *,
    trim: bool,
    issues: list[ParseIssue],
) -> list[str]:
    """Fill blank headers and report blank or duplicate names."""
    headers: list[str] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_headers):
        header = raw.strip() if trim else raw
        if not header:
            header = f"Column_{index + 1}"
            issues.append(
                ParseIssue(
                    row=0,
                    column=header,
                    message=f"Empty header in column {index + 1}, using '{header}'",
                    code="EMPTY_HEADER",
                ),
            )
        if header.lower() in seen:
            issues.append(
                ParseIssue(
                    row=0,
                    column=header,
                    message=f"Duplicate header '{header}'",
                    code="DUPLICATE_HEADER",
                ),
            )
        seen.add(header.lower())
        headers.append(header)
    return headers


def _column_stats(
    index: int,
    name: str,
    original_name: str,
    rows: Sequence[_Cells],
) -> CSVColumnStats:
    """Compute statistics for one column over unpadded rows."""
    values = [row[index] if index < len(row) else _MISSING for row in rows]
    present = [value for value in values if isinstance(value, str)]
    empty_count = sum(1 for value in values if value is None)
    return CSVColumnStats(
        index=index,
        name=name,
        original_name=original_name,
        sample_values=tuple(
            value if isinstance(value, str) else None
            for value in values[:SAMPLE_VALUE_COUNT]
        ),
        unique_values=frozenset(present),
        null_count=len(values) - len(present),
        empty_count=empty_count,
        total_count=len(values),
    )


def _pad(row: _Cells, width: int) -> Row:
    """Fit a row to the header width, filling gaps with None."""
    cells = [cell if isinstance(cell, str) else None for cell in row[:width]]
    cells.extend([None] * (width - len(cells)))
    return tuple(cells)


def parse_csv(
    content: bytes,
    file_name: str,
    config: ParseConfig | None = None,
) -> ParseResult:
    """Parse CSV bytes into a sampled, analyzed result.

    Args:
        content: Raw file contents
        file_name: Name used for the table and in error messages
        config: Parsing options, defaults when omitted

    Returns:
        Parse result with at most ``config.sample_size`` data rows

    Raises:
        FileTooLargeError: If the content exceeds ``config.max_file_size``
        EmptyFileError: If no rows remain after skipping empty lines
        MalformedCSVError: If the content cannot be tokenized

    """
    config = config or ParseConfig()
    if len(content) > config.max_file_size:
        msg = (
            f"File size {len(content)} bytes exceeds limit of "
            f"{config.max_file_size} bytes"
        )
        raise FileTooLargeError(file_name, msg)

    encoding = config.encoding or detect_encoding(content)
    text = decode_content(content, encoding)
    delimiter = config.delimiter or detect_delimiter(text)

    raw_rows = _read_rows(text, delimiter, file_name)
    if config.skip_empty_lines:
        raw_rows = [row for row in raw_rows if not _is_blank_line(row)]
    if not raw_rows:
        raise EmptyFileError(file_name, "File contains no rows")

    issues: list[ParseIssue] = []
    if config.has_header:
        raw_headers, body = raw_rows[0], raw_rows[1:]
        first_data_row = 2
    else:
        width = max(len(row) for row in raw_rows)
        raw_headers, body = [f"Column_{i + 1}" for i in range(width)], raw_rows
        first_data_row = 1
    headers = _normalize_headers(
        raw_headers,
        trim=config.trim_whitespace,
        issues=issues,
    )

    trim = config.trim_whitespace
    rows: list[_Cells] = []
    for line_number, raw_row in enumerate(body, start=first_data_row):
        cells: _Cells = [_clean(value, trim=trim) for value in raw_row]
        if all(cell is None for cell in cells):
            issues.append(
                ParseIssue(row=line_number, message="Empty row", code="EMPTY_ROW"),
            )
            continue
        if len(cells) != len(headers):
            issues.append(
                ParseIssue(
                    row=line_number,
                    message=(
                        f"Expected {len(headers)} columns but found {len(cells)}"
                    ),
                    code="INCONSISTENT_COLUMNS",
                ),
            )
        rows.append(cells)

    sampled = rows[: config.sample_size]
    columns = tuple(
        _column_stats(index, name, raw_headers[index], sampled)
        for index, name in enumerate(headers)
    )

    logger.debug(
        "Parsed %s: %d rows, %d columns, delimiter %r, encoding %s",
        file_name,
        len(rows),
        len(headers),
        delimiter,
        encoding,
    )
    return ParseResult(
        file_name=file_name,
        headers=tuple(headers),
        data=tuple(_pad(row, len(headers)) for row in sampled),
        total_rows=len(rows),
        columns=columns,
        config=replace(config, delimiter=delimiter, encoding=encoding),
        parse_errors=tuple(issues),
    )


def parse_csv_file(path: Path, config: ParseConfig | None = None) -> ParseResult:
    """Read and parse a CSV file from disk."""
    return parse_csv(path.read_bytes(), path.name, config)


def _load_source(source: CSVSource) -> tuple[str, bytes]:
    """Resolve a batch entry into a name and its bytes."""
    if isinstance(source, Path):
        return source.name, source.read_bytes()
    return source


def parse_multiple_csvs(
    files: Iterable[CSVSource],
    config: ParseConfig | None = None,
) -> BatchParseResult:
    """Parse files independently, keeping going past individual failures.

    Raises:
        BatchParseError: If no file could be parsed

    """
    results: list[ParseResult] = []
    failures: list[FileFailure] = []
    for source in files:
        name = source.name if isinstance(source, Path) else source[0]
        try:
            file_name, content = _load_source(source)
            results.append(parse_csv(content, file_name, config))
        except (CSVParseError, OSError) as err:
            logger.warning("Failed to parse %s: %s", name, err)
            failures.append(FileFailure(file_name=name, error=err))

    if failures and not results:
        raise BatchParseError(failures)
    return BatchParseResult(results=tuple(results), failures=tuple(failures))


def get_csv_preview(
    result: ParseResult,
    max_rows: int = MAX_PREVIEW_ROWS,
) -> CSVPreview:
    """Take the first rows of a parse result for display."""
    rows = result.data[:max_rows]
    return CSVPreview(
        headers=result.headers,
        rows=rows,
        total_rows=result.total_rows,
        shown_rows=len(rows),
    )
