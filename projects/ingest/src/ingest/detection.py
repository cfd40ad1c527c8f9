"""Delimiter and encoding detection for raw CSV input."""

from __future__ import annotations

CANDIDATE_DELIMITERS = (",", ";", "\t", "|")
DELIMITER_SAMPLE_LINES = 5
ENCODING_SAMPLE_BYTES = 1000
ASCII_THRESHOLD = 0.95

UTF8_BOM = b"\xef\xbb\xbf"
UTF16_BOMS = (b"\xff\xfe", b"\xfe\xff")

# Python codec used to decode each detected encoding label
CODECS = {
    "UTF-8": "utf-8-sig",
    "UTF-16": "utf-16",
    "ASCII": "utf-8",
    "ISO-8859-1": "latin-1",
}


def detect_delimiter(text: str) -> str:
    """Pick the delimiter that splits the leading lines into the most fields.

    Only lines the candidate actually splits contribute to its score. Ties go
    to the earlier candidate, so plain text falls back to a comma.
    """
    lines = text.splitlines()[:DELIMITER_SAMPLE_LINES]

    best, best_score = CANDIDATE_DELIMITERS[0], 0
    for delimiter in CANDIDATE_DELIMITERS:
        counts = (len(line.split(delimiter)) for line in lines)
        score = sum(count for count in counts if count > 1)
        if score > best_score:
            best, best_score = delimiter, score
    return best


def detect_encoding(data: bytes) -> str:
    """Guess the text encoding from byte order marks and byte ranges."""
    if data.startswith(UTF8_BOM):
        return "UTF-8"
    if data.startswith(UTF16_BOMS):
        return "UTF-16"

    sample = data[:ENCODING_SAMPLE_BYTES]
    if not sample:
        return "UTF-8"

    ascii_bytes = sum(1 for byte in sample if byte < 128)  # noqa: PLR2004
    if ascii_bytes / len(sample) >= ASCII_THRESHOLD:
        return "ASCII"
    return "UTF-8"


def decode_content(data: bytes, encoding: str) -> str:
    """Decode bytes using the codec behind an encoding label.

    Unknown labels are handed to Python's codec registry as-is. Undecodable
    bytes are replaced rather than rejected.
    """
    codec = CODECS.get(encoding.upper(), encoding)
    try:
        return data.decode(codec, errors="replace")
    except LookupError as err:
        msg = f"Unsupported encoding: {encoding}"
        raise ValueError(msg) from err
