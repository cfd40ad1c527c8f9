"""Per-value type classification."""

from __future__ import annotations

import json
import re
from datetime import date, datetime

from dbschema.types import StorageType

from .types import ValueClassification, ValueShape

# Value patterns for type detection
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_PATTERN = re.compile(r"^https?://.+", re.IGNORECASE)
# Digits with separators or a leading plus; bare digit runs and ISO dates are not
PHONE_PATTERN = re.compile(
    r"^(?!\d{4}-\d{2}-\d{2}$)(?=\+|.*\d[\s\-()])\+?[\d\s\-()]{7,}$",
)
JSON_PATTERN = re.compile(r"^[\[{].+[\]}]$", re.DOTALL)
INTEGER_PATTERN = re.compile(r"^-?\d+$")
DECIMAL_PATTERN = re.compile(r"^-?\d*\.\d+$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATETIME_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}[T\s]\d{2}:\d{2}:\d{2}")

BOOLEAN_TOKENS = frozenset({"true", "false", "yes", "no", "1", "0", "y", "n"})

# Integer ranges per storage type
SMALLINT_MAX = 32767
INTEGER_MAX = 2**31 - 1

MAX_NUMERIC_PRECISION = 38
MAX_NUMERIC_SCALE = 8
DEFAULT_VARCHAR_LENGTH = 255
MAX_VARCHAR_LENGTH = 65535
VARCHAR_HEADROOM = 1.2

# CHECK expressions per detected shape, formatted with the column name
SHAPE_CHECKS = {
    ValueShape.EMAIL: (
        "{column} ~* '^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\\.[A-Za-z]{{2,}}$'"
    ),
    ValueShape.URL: "{column} ~* '^https?://'",
    ValueShape.PHONE: "length(trim({column})) >= 7",
}


def varchar_length(text_length: int) -> int:
    """Suggested VARCHAR length for a value of the given length."""
    padded = max(text_length, DEFAULT_VARCHAR_LENGTH) * VARCHAR_HEADROOM
    return min(round(padded), MAX_VARCHAR_LENGTH)


def _is_json(value: str) -> bool:
    if not JSON_PATTERN.match(value):
        return False
    try:
        json.loads(value)
    except ValueError:
        return False
    return True


def _is_date(value: str) -> bool:
    if not DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _is_datetime(value: str) -> bool:
    if not DATETIME_PATTERN.match(value):
        return False
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return False
    return True


def _classify_integer(value: str) -> ValueClassification:
    number = int(value)
    if abs(number) <= SMALLINT_MAX:
        return ValueClassification(StorageType.SMALLINT, 0.9)
    if -INTEGER_MAX - 1 <= number <= INTEGER_MAX:
        return ValueClassification(StorageType.INTEGER, 0.9)
    return ValueClassification(StorageType.BIGINT, 0.9)


def _classify_decimal(value: str) -> ValueClassification:
    digits = len(value.replace("-", "").replace(".", ""))
    fraction = len(value.split(".", 1)[1])
    return ValueClassification(
        StorageType.NUMERIC,
        0.85,
        precision=min(digits, MAX_NUMERIC_PRECISION),
        scale=min(fraction, MAX_NUMERIC_SCALE),
    )


def classify_value(value: str | None) -> ValueClassification:  # noqa: PLR0911
    """Classify a single value; the first matching rule wins.

    Empty values classify as VARCHAR with zero confidence.
    """
    text = (value or "").strip()
    if not text:
        return ValueClassification(StorageType.VARCHAR, 0.0)

    if UUID_PATTERN.match(text):
        return ValueClassification(StorageType.UUID, 0.95)
    if text.lower() in BOOLEAN_TOKENS:
        return ValueClassification(StorageType.BOOLEAN, 0.9)
    if EMAIL_PATTERN.match(text):
        return ValueClassification(
            StorageType.VARCHAR,
            0.9,
            shape=ValueShape.EMAIL,
            length=DEFAULT_VARCHAR_LENGTH,
        )
    if URL_PATTERN.match(text):
        return ValueClassification(StorageType.TEXT, 0.85, shape=ValueShape.URL)
    if PHONE_PATTERN.match(text):
        return ValueClassification(
            StorageType.VARCHAR,
            0.8,
            shape=ValueShape.PHONE,
            length=20,
        )
    if _is_json(text):
        return ValueClassification(StorageType.JSONB, 0.9)
    if INTEGER_PATTERN.match(text):
        return _classify_integer(text)
    if DECIMAL_PATTERN.match(text):
        return _classify_decimal(text)
    if _is_date(text):
        return ValueClassification(StorageType.DATE, 0.85)
    if _is_datetime(text):
        return ValueClassification(StorageType.TIMESTAMPTZ, 0.85)

    return ValueClassification(
        StorageType.VARCHAR,
        0.5,
        length=varchar_length(len(text)),
    )


def matches_shape(value: str, shape: ValueShape) -> bool:
    """Check a value against a text shape."""
    match shape:
        case ValueShape.EMAIL:
            return EMAIL_PATTERN.match(value) is not None
        case ValueShape.URL:
            return URL_PATTERN.match(value) is not None
        case ValueShape.PHONE:
            return PHONE_PATTERN.match(value) is not None
