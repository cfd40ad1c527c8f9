"""Exceptions raised while reading CSV files."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .types import FileFailure


class CSVParseError(ValueError):
    """A CSV file could not be parsed."""

    def __init__(self, file_name: str, message: str) -> None:
        """Record the offending file alongside the message."""
        super().__init__(f"{file_name}: {message}")
        self.file_name = file_name


class FileTooLargeError(CSVParseError):
    """File exceeds the configured size limit."""


class EmptyFileError(CSVParseError):
    """File holds no rows."""


class MalformedCSVError(CSVParseError):
    """File could not be tokenized as CSV."""


class BatchParseError(ValueError):
    """Every file in a batch failed to parse."""

    def __init__(self, failures: Sequence[FileFailure]) -> None:
        """Summarize all failures in the message."""
        details = "; ".join(str(failure.error) for failure in failures)
        super().__init__(f"Failed to parse any of {len(failures)} files: {details}")
        self.failures = tuple(failures)
