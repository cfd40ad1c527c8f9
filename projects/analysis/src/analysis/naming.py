"""Identifier helpers: case conversion, inflection and sanitization."""

from __future__ import annotations

import re
from typing import Literal

from dbschema.validation import POSTGRES_RESERVED_WORDS

type NameKind = Literal["table", "column", "index", "constraint"]

MAX_NAME_LENGTH = 63
FILE_EXTENSIONS = re.compile(r"\.(csv|tsv|txt)$", re.IGNORECASE)

IRREGULAR_PLURALS = {
    "person": "people",
    "child": "children",
    "foot": "feet",
    "tooth": "teeth",
    "mouse": "mice",
    "goose": "geese",
}
IRREGULAR_SINGULARS = {
    plural: singular for singular, plural in IRREGULAR_PLURALS.items()
}


def to_snake_case(name: str) -> str:
    """Convert name to snake_case, splitting camelCase words."""
    name = re.sub("([a-z0-9])([A-Z])|([A-Z])([A-Z][a-z])", r"\1\3_\2\4", name.strip())
    name = re.sub(r"[^a-z0-9]+", "_", name.lower())
    return name.strip("_")


def pluralize(word: str) -> str:
    """Pluralize an English noun."""
    lower = word.lower()
    if lower in IRREGULAR_PLURALS:
        return IRREGULAR_PLURALS[lower]
    if re.search(r"([sxz]|[cs]h)$", lower):
        return f"{word}es"
    if re.search(r"[^aeiou]y$", lower):
        return f"{word[:-1]}ies"
    if re.search(r"fe?$", lower):
        return re.sub(r"fe?$", "ves", word)
    return f"{word}s"


def singularize(word: str) -> str:
    """Singularize an English noun."""
    lower = word.lower()
    if lower in IRREGULAR_SINGULARS:
        return IRREGULAR_SINGULARS[lower]
    if lower.endswith("ies"):
        return f"{word[:-3]}y"
    if lower.endswith("ves"):
        return f"{word[:-3]}f"
    if re.search(r"([sxz]|[cs]h)es$", lower):
        return word[:-2]
    if re.search(r"[^s]s$", lower):
        return word[:-1]
    return word


def sanitize_name(name: str, kind: NameKind = "column") -> str:
    """Turn an arbitrary label into a valid, non-reserved identifier.

    Examples:
        "Customer ID" -> "customer_id"
        "2024 Sales" -> "column_2024_sales"
        "order" -> "order_value"

    """
    sanitized = to_snake_case(name)
    if not sanitized:
        sanitized = "untitled_table" if kind == "table" else "untitled_column"
    if sanitized[0].isdigit():
        sanitized = f"{kind}_{sanitized}"
    if sanitized in POSTGRES_RESERVED_WORDS:
        sanitized = f"{sanitized}_value"
    return sanitized[:MAX_NAME_LENGTH].rstrip("_")


def generate_table_name(file_name: str) -> str:
    """Derive a table name from a file name."""
    return sanitize_name(FILE_EXTENSIONS.sub("", file_name), "table")


def generate_index_name(table: str, columns: list[str], *, unique: bool = False) -> str:
    """Index name from the table and up to three columns."""
    prefix = "uk" if unique else "idx"
    return sanitize_name(f"{prefix}_{table}_{'_'.join(columns[:3])}", "index")


def unique_names(names: list[str]) -> list[str]:
    """Suffix repeated names with a counter: ``a, a`` -> ``a, a_2``."""
    used: set[str] = set()
    result: list[str] = []
    for name in names:
        candidate, count = name, 1
        while candidate in used:
            count += 1
            candidate = f"{name}_{count}"
        used.add(candidate)
        result.append(candidate)
    return result


def table_names(file_names: list[str]) -> list[str]:
    """Distinct table names for a batch of files, in file order."""
    return unique_names([generate_table_name(name) for name in file_names])
