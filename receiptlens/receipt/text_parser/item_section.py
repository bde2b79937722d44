"""Locate the span of lines that holds purchased items."""

import re
from collections.abc import Sequence

from .common import FAREWELL_PATTERN, find_amounts, is_bare_amount, looks_like_summary_line
from .fields_parser import looks_like_date_line

# Without a reliable footer, only the top part of the receipt is scanned.
FALLBACK_SECTION_RATIO = 0.7

HEADER_MARKER_PATTERN = re.compile(
    r"\b(?:table|tbl|server|serveur|serveuse|guests?|clients?|covers?|check|chk|trans(?:action)?|"
    r"order|commande|invoice|facture|receipt\s*(?:#|no)|ticket|heure|time|cashier|caissi[eè]re?|"
    r"register|terminal|date)\b",
    re.IGNORECASE,
)


def _is_footer_line(line: str) -> bool:
    return looks_like_summary_line(line) or FAREWELL_PATTERN.search(line) is not None


def _is_header_line(lines: Sequence[str], index: int) -> bool:
    """A marker or date line. Priced lines are items, whatever words they contain."""
    line = lines[index]
    if find_amounts(line):
        return False
    if looks_like_date_line(line):
        return True
    if HEADER_MARKER_PATTERN.search(line) is None:
        return False
    # "Side Order Fries" followed by its price on the next line.
    return index + 1 >= len(lines) or not is_bare_amount(lines[index + 1])


def _fallback_end(line_count: int) -> int:
    return max(1, int(line_count * FALLBACK_SECTION_RATIO))


def locate_item_section(lines: Sequence[str]) -> tuple[int, int]:
    """
    Return the half-open (start, end) bounds of the item section.

    The footer is the first subtotal/tax/total or farewell line; the header is
    the last transaction/table identifier or date line above it. Without a
    footer the section ends at 70% of the receipt. The span is never empty
    when there are lines.
    """
    line_count = len(lines)
    if line_count == 0:
        return 0, 0

    footer = next((index for index, line in enumerate(lines) if _is_footer_line(line)), None)
    end = footer if footer is not None else _fallback_end(line_count)

    header = None
    for index in range(end):
        if _is_header_line(lines, index):
            header = index
    start = header + 1 if header is not None else 0

    if start < end:
        return start, end
    if footer is not None and footer > 0:
        return 0, footer
    return 0, _fallback_end(line_count)
