"""Configuration loading for the analysis pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from tomllib import load
from typing import TYPE_CHECKING, Any

from dbschema.validation import ValidationRules
from ingest.types import ParseConfig

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings for parsing, validation and schema assembly."""

    parse: ParseConfig = field(default_factory=ParseConfig)
    validation: ValidationRules = field(default_factory=ValidationRules)
    include_audit_columns: bool = True
    value_overlap: bool = False
    include_rls: bool = False


type ConfigTable = dict[str, Any]

# Top-level keys of the [schema] table
SCHEMA_KEYS = frozenset({"include_audit_columns", "value_overlap", "include_rls"})


def _check_keys(section: str, table: ConfigTable, allowed: frozenset[str]) -> None:
    """Reject keys the section does not know."""
    if unknown := sorted(set(table) - allowed):
        msg = f"Unknown keys in [{section}]: {', '.join(unknown)}"
        raise ValueError(msg)


def _field_names(cls: type) -> frozenset[str]:
    return frozenset(f.name for f in fields(cls))


def config_from_dict(data: ConfigTable) -> AnalysisConfig:
    """Build a configuration from parsed TOML tables.

    Missing tables and keys keep their defaults.
    """
    _check_keys("root", data, frozenset({"parse", "validation", "schema"}))

    parse_table: ConfigTable = data.get("parse", {})
    validation_table: ConfigTable = data.get("validation", {})
    schema_table: ConfigTable = data.get("schema", {})

    _check_keys("parse", parse_table, _field_names(ParseConfig))
    _check_keys("validation", validation_table, _field_names(ValidationRules))
    _check_keys("schema", schema_table, SCHEMA_KEYS)

    return AnalysisConfig(
        parse=ParseConfig(**parse_table),
        validation=ValidationRules(**validation_table),
        **schema_table,
    )


def load_config(path: Path) -> AnalysisConfig:
    """Load a configuration from a TOML file."""
    with path.open("rb") as f:
        return config_from_dict(load(f))


def with_overrides(
    config: AnalysisConfig,
    **overrides: Any,  # noqa: ANN401
) -> AnalysisConfig:
    """Return a copy with the given settings replaced, ignoring ``None``."""
    return replace(
        config,
        **{key: value for key, value in overrides.items() if value is not None},
    )
