"""Command line interface for SchemaForge."""

import logging
import sys
from json import loads
from pathlib import Path
from sys import stdout
from typing import Annotated, Literal

from analysis import (
    AnalysisOutcome,
    analyze_files,
    load_config,
    report_to_json,
    report_to_markdown,
)
from analysis.config import AnalysisConfig, with_overrides
from analysis.types import OutputFormat
from cyclopts import App, Parameter
from dbschema import (
    DatabaseSchema,
    ValidationIssue,
    correct_schema_types,
    schema_from_json,
    schema_from_suggestion,
    schema_to_ddl,
    schema_to_json,
    validate_schema,
)
from ingest import (
    BatchParseError,
    decode_content,
    detect_delimiter,
    detect_encoding,
)
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from seeding import EngineTarget, cast_tables, insert_rows
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

app = App(help="SchemaForge: infer relational schemas from CSV files")

type Dialect = Literal["postgresql", "sqlite"]

console = Console()
err_console = Console(stderr=True)

# Constants
CSV_EXTENSIONS = {".csv", ".tsv", ".txt"}
DELIMITER_NAMES = {",": "comma", ";": "semicolon", "\t": "tab", "|": "pipe"}


def print_error(message: str) -> None:
    """Print error message to stderr."""
    err_console.print(f"[bold red]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print success message to stderr."""
    err_console.print(f"[bold green]✓[/] {message}")


def print_info(message: str) -> None:
    """Print info message to stderr."""
    err_console.print(f"[bold blue]i[/] {message}")


def configure_logging(*, verbose: bool) -> None:
    """Send library logs through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def validate_file_location(location: Path) -> None:
    """Validate that an input file exists."""
    if not location.is_file():
        print_error(f"File does not exist: {location}")
        sys.exit(1)


def validate_csv_extension(location: Path) -> None:
    """Validate CSV file extension."""
    if location.suffix.lower() not in CSV_EXTENSIONS:
        print_error(
            f"File has invalid extension: {location} "
            f"(expected {', '.join(sorted(CSV_EXTENSIONS))})",
        )
        sys.exit(1)


def validate_output_path(output: Path) -> None:
    """Validate output path is writable."""
    output_dir = output.parent
    if not output_dir.is_dir():
        print_error(f"Output directory does not exist: {output_dir}")
        sys.exit(1)


def write_output(text: str, output: Path | None) -> None:
    """Write to a file when given, otherwise to stdout."""
    if output is None:
        stdout.write(text)
        return
    try:
        output.write_text(text)
    except OSError as e:
        print_error(f"Failed to write output file: {e}")
        sys.exit(1)
    print_success(f"Written to {output}")


def read_schema(location: Path) -> DatabaseSchema:
    """Load a schema JSON document or exit."""
    validate_file_location(location)
    try:
        return schema_from_json(location.read_text())
    except (ValueError, KeyError, TypeError) as e:
        print_error(f"Invalid schema file {location}: {e}")
        sys.exit(1)


def read_config(
    location: Path | None,
    *,
    value_overlap: bool | None,
    audit_columns: bool | None,
    rls: bool | None,
) -> AnalysisConfig:
    """Load configuration and apply command line overrides."""
    config = AnalysisConfig()
    if location is not None:
        validate_file_location(location)
        try:
            config = load_config(location)
        except (ValueError, TypeError) as e:
            print_error(f"Invalid configuration file {location}: {e}")
            sys.exit(1)
    return with_overrides(
        config,
        value_overlap=value_overlap,
        include_audit_columns=audit_columns,
        include_rls=rls,
    )


def run_analysis(
    files: list[Path],
    config: AnalysisConfig,
    name: str | None,
) -> AnalysisOutcome:
    """Parse and assemble, reporting per-file failures."""
    for location in files:
        validate_file_location(location)
        validate_csv_extension(location)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=err_console,
    ) as progress:
        progress.add_task(f"Analyzing {len(files)} files...", total=None)
        try:
            outcome = analyze_files(files, config, name=name)
        except BatchParseError as e:
            print_error(str(e))
            sys.exit(1)

    for failure in outcome.failures:
        print_error(f"Skipped {failure.file_name}: {failure.error}")
    return outcome


def format_issue_table(issues: list[ValidationIssue]) -> None:
    """Format validation issues as a rich table."""
    table = Table(title="Validation Issues")
    table.add_column("Severity", style="bold")
    table.add_column("Code", style="cyan")
    table.add_column("Location")
    table.add_column("Message")

    for issue in issues:
        style = "red" if issue.severity == "error" else "yellow"
        location = ".".join(part for part in (issue.table, issue.column) if part)
        table.add_row(
            f"[{style}]{issue.severity}[/]",
            issue.code,
            location,
            issue.message,
        )

    console.print(table)


@app.command
def detect(csv_file: Path) -> None:
    """Detect the encoding and delimiter of a CSV file."""
    validate_file_location(csv_file)
    content = csv_file.read_bytes()
    encoding = detect_encoding(content)
    delimiter = detect_delimiter(decode_content(content, encoding))

    table = Table(show_header=False)
    table.add_column("Key", style="bold blue")
    table.add_column("Value")
    table.add_row("file", csv_file.name)
    table.add_row("encoding", encoding)
    table.add_row("delimiter", DELIMITER_NAMES.get(delimiter, repr(delimiter)))
    console.print(table)


@app.command
def analyze(
    files: list[Path],
    *,
    fmt: OutputFormat = "json",
    output: Path | None = None,
    config: Path | None = None,
    name: str | None = None,
    value_overlap: bool | None = None,
    audit_columns: bool | None = None,
    rls: bool | None = None,
) -> None:
    """Infer a schema from CSV files and report on it."""
    if output:
        validate_output_path(output)
    settings = read_config(
        config,
        value_overlap=value_overlap,
        audit_columns=audit_columns,
        rls=rls,
    )
    print_info(f"Files: {len(files)}")
    print_info(f"Output format: {fmt}")

    outcome = run_analysis(files, settings, name)

    if fmt == "markdown":
        write_output(report_to_markdown(outcome), output)
    else:
        write_output(report_to_json(outcome), output)

    tables = len(outcome.schema["tables"])
    relationships = len(outcome.schema["relationships"])
    print_success(f"Analysis complete: {tables} tables, {relationships} relationships")


@app.command
def validate(schema_file: Path) -> None:
    """Validate a schema JSON file."""
    schema = read_schema(schema_file)
    result = validate_schema(schema)

    if result.issues:
        format_issue_table(result.issues)

    if not result.is_valid:
        print_error(
            f"Schema is invalid: {len(result.errors)} errors, "
            f"{len(result.warnings)} warnings",
        )
        sys.exit(1)
    print_success(f"Schema is valid ({len(result.warnings)} warnings)")


@app.command
def fix(schema_file: Path, *, output: Path | None = None) -> None:
    """Apply name-based type corrections to a schema JSON file."""
    schema = read_schema(schema_file)
    fixed, corrections = correct_schema_types(schema)

    for correction in corrections:
        print_info(
            f"{correction.table}.{correction.column}: "
            f"{correction.old_type} -> {correction.new_type} ({correction.rule})",
        )
    write_output(schema_to_json(fixed), output)
    print_success(f"Applied {len(corrections)} corrections")


@app.command
def ddl(schema_file: Path, dialect: Dialect = "postgresql") -> None:
    """Render CREATE statements for a schema JSON file."""
    schema = read_schema(schema_file)
    stdout.write(schema_to_ddl(schema, dialect))


@app.command
def suggest(payload_file: Path, *, name: str | None = None) -> None:
    """Convert a drafted suggestion payload into a schema JSON document."""
    validate_file_location(payload_file)
    try:
        schema = schema_from_suggestion(loads(payload_file.read_text()), name=name)
    except (ValueError, KeyError, TypeError) as e:
        print_error(f"Invalid suggestion payload {payload_file}: {e}")
        sys.exit(1)

    result = validate_schema(schema)
    if result.issues:
        format_issue_table(result.issues)
    fixed, corrections = correct_schema_types(schema)
    stdout.write(schema_to_json(fixed))
    print_success(f"Converted {len(fixed['tables'])} tables")
    if corrections:
        print_info(f"Applied {len(corrections)} type corrections")


@app.command
def deploy(
    files: list[Path],
    *,
    url: str,
    config: Path | None = None,
    name: str | None = None,
    seed: bool = False,
) -> None:
    """Create the inferred tables in a database and optionally load the rows."""
    settings = read_config(config, value_overlap=None, audit_columns=None, rls=None)
    outcome = run_analysis(files, settings, name)

    if outcome.validation is not None and not outcome.validation.is_valid:
        format_issue_table(outcome.validation.errors)
        print_error("Refusing to deploy an invalid schema")
        sys.exit(1)

    rows = {}
    if seed:
        try:
            rows = cast_tables(outcome.schema, outcome.sources)
        except ValueError as e:
            print_error(f"Cannot seed from the source files: {e}")
            sys.exit(1)

    try:
        engine = create_engine(url)
    except (SQLAlchemyError, ValueError) as e:
        print_error(f"Failed to connect to database: {e}")
        sys.exit(1)

    result = EngineTarget(engine).create_tables(outcome.schema)
    if not result.success:
        print_error(result.message)
        sys.exit(1)
    print_success(result.message)

    if seed:
        try:
            loaded = insert_rows(engine, outcome.schema, rows)
        except SQLAlchemyError as e:
            print_error(f"Failed to load rows: {e}")
            sys.exit(1)
        print_success(f"Loaded {sum(loaded.values())} rows into {len(loaded)} tables")


@app.meta.default
def launcher(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    verbose: bool = False,
) -> None:
    """Configure logging, then run the requested command."""
    configure_logging(verbose=verbose)
    app(tokens)


def main() -> None:
    """Entry point for the CLI."""
    try:
        app.meta()
    except KeyboardInterrupt:
        print_error("Interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
