"""Report generation utilities for analysis results."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from dbschema import serialization
from dbschema.type_conversion import format_column_type

if TYPE_CHECKING:
    from ingest.types import ParseResult

    from .main import AnalysisOutcome

TEMPLATE_DIR = Path(__file__).parent / "templates"

# Display limits for markdown reports
MAX_ISSUES_DISPLAY = 50
MAX_EXAMPLES_DISPLAY = 3

# Jinja2 environment for markdown template rendering
_JINJA_ENV = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(),
    trim_blocks=True,
    lstrip_blocks=True,
)
_JINJA_ENV.filters["column_type"] = format_column_type


def json_default(obj: object) -> object:
    """Convert non-serializable objects for JSON encoding."""
    if isinstance(obj, BaseException):
        return f"{type(obj).__name__}: {obj}"
    return serialization.json_default(obj)


def _file_summary(result: ParseResult) -> dict[str, Any]:
    return {
        "file_name": result.file_name,
        "delimiter": result.config.delimiter,
        "encoding": result.config.encoding,
        "total_rows": result.total_rows,
        "sampled_rows": result.sampled_rows,
        "columns": len(result.columns),
        "issues": [asdict(issue) for issue in result.parse_errors],
    }


def report_to_dict(outcome: AnalysisOutcome) -> dict[str, Any]:
    """Collect the outcome into plain data for encoding."""
    return {
        "schema": outcome.schema,
        "files": [_file_summary(result) for result in outcome.results],
        "failures": [
            {"file_name": failure.file_name, "error": failure.error}
            for failure in outcome.failures
        ],
        "inferences": {
            table: {column: asdict(result) for column, result in columns.items()}
            for table, columns in outcome.inferences.items()
        },
        "relationship_hints": [asdict(hint) for hint in outcome.hints],
        "validation": (
            {
                "is_valid": outcome.validation.is_valid,
                "errors": [asdict(issue) for issue in outcome.validation.errors],
                "warnings": [asdict(issue) for issue in outcome.validation.warnings],
            }
            if outcome.validation is not None
            else None
        ),
        "corrections": [asdict(correction) for correction in outcome.corrections],
    }


def report_to_json(outcome: AnalysisOutcome) -> str:
    """Convert an analysis outcome to a JSON string.

    Args:
        outcome: Result of ``analyze_files``

    Returns:
        JSON string representation

    """
    return json.dumps(report_to_dict(outcome), indent=2, default=json_default)


def report_to_markdown(outcome: AnalysisOutcome) -> str:
    """Convert an analysis outcome to a Markdown string.

    Args:
        outcome: Result of ``analyze_files``

    Returns:
        Markdown string representation

    """
    template = _JINJA_ENV.get_template("report.md")

    issues = outcome.validation.issues if outcome.validation is not None else []

    return template.render(
        schema=outcome.schema,
        files=[_file_summary(result) for result in outcome.results],
        failures=outcome.failures,
        inferences=outcome.inferences,
        hints=outcome.hints,
        validation=outcome.validation,
        issues=issues,
        corrections=outcome.corrections,
        max_issues=MAX_ISSUES_DISPLAY,
        max_examples=MAX_EXAMPLES_DISPLAY,
    )
