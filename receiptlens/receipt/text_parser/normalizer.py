"""Raw OCR text -> normalized receipt lines."""

import re

from .common import WIDE_GAP

_NEWLINES = re.compile(r"\r\n|\r|\n|\u2028|\u2029|\x0b|\x0c")
# Control characters except tab, which marks a column gap.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0e-\x1f\x7f-\x9f\u200b-\u200f\ufeff]")
_WIDE_RUN = re.compile(r"[ \t\u00a0]*\t[ \t\u00a0]*|[ \u00a0]{3,}")
_SPACE_RUN = re.compile(r"[ \u00a0]{1,2}")


def normalize_line(line: str) -> str:
    """Clean a single OCR line: drop control chars, collapse whitespace, trim."""
    line = _CONTROL_CHARS.sub("", line).strip(" \t\u00a0")
    if not line:
        return ""
    columns = _WIDE_RUN.split(line)
    return WIDE_GAP.join(_SPACE_RUN.sub(" ", column).strip() for column in columns if column.strip())


def normalize_lines(raw_text: str) -> list[str]:
    """
    Split raw OCR text into normalized, non-empty lines in original order.

    Whitespace runs collapse to a single space, except tab runs and runs of
    three or more spaces, which collapse to WIDE_GAP so tabular layouts keep
    their column boundaries.
    """
    if raw_text is None:
        raise TypeError("raw_text must be a string, not None")
    lines: list[str] = []
    for raw_line in _NEWLINES.split(raw_text):
        line = normalize_line(raw_line)
        if line:
            lines.append(line)
    return lines
