"""CSV ingestion: encoding and delimiter detection, parsing, column statistics."""

from .detection import decode_content, detect_delimiter, detect_encoding
from .errors import (
    BatchParseError,
    CSVParseError,
    EmptyFileError,
    FileTooLargeError,
    MalformedCSVError,
)
from .parser import get_csv_preview, parse_csv, parse_csv_file, parse_multiple_csvs
from .types import (
    BatchParseResult,
    CSVColumnStats,
    CSVPreview,
    FileFailure,
    ParseConfig,
    ParseIssue,
    ParseResult,
)

__all__ = [
    "BatchParseError",
    "BatchParseResult",
    "CSVColumnStats",
    "CSVParseError",
    "CSVPreview",
    "EmptyFileError",
    "FileFailure",
    "FileTooLargeError",
    "MalformedCSVError",
    "ParseConfig",
    "ParseIssue",
    "ParseResult",
    "decode_content",
    "detect_delimiter",
    "detect_encoding",
    "get_csv_preview",
    "parse_csv",
    "parse_csv_file",
    "parse_multiple_csvs",
]
