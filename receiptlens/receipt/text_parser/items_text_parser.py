"""Text-line based receipt item extraction.

Items are recovered by an ordered table of line-shape strategies. Each
strategy is tried against every line (or line pair) of the item section;
lines claimed by an earlier strategy are recorded in a ConsumedLines arena
and never reconsidered by a later one. Adding a receipt layout means
appending a strategy to ITEM_STRATEGIES.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from receiptlens.domain.receipt import MAX_ITEM_NAME_LENGTH, LineItem

from .common import (
    AGGREGATE_TAX_PATTERN,
    AMOUNT_NUMBER,
    CURRENCY_PREFIX,
    CURRENCY_SUFFIX,
    FAREWELL_PATTERN,
    SUBTOTAL_PATTERN,
    TABLE_LABEL_WORDS,
    TOTAL_WORD_PATTERN,
    WIDE_GAP,
    find_amounts,
    has_alpha,
    is_bare_amount,
    parse_amount,
    tax_labels_in,
)

PRICE = CURRENCY_PREFIX + r"?\s?-?\s?" + AMOUNT_NUMBER + r"-?"
TAX_FLAG = r"(?:\s[A-Za-z*])?"
QTY_PREFIX = r"(?P<qty>\d{1,3})\s?[xX]?\s+"

_SAME_LINE = re.compile(
    r"^(?:" + QTY_PREFIX + r")?(?P<name>.*?\S)\s+(?P<price>" + PRICE + r")"
    r"\s?" + CURRENCY_SUFFIX + r"?" + TAX_FLAG + r"$"
)
_QTY_NAME = re.compile(r"^" + QTY_PREFIX + r"(?P<name>.*\S)$")
_QTY_AT_UNIT = re.compile(
    r"^(?P<qty>\d{1,3})\s?(?:[xX@]|pcs?\s?@?|ea\s?@?)\s?(?P<unit>" + PRICE + r")"
    r"(?:\s+(?P<price>" + PRICE + r"))?" + TAX_FLAG + r"$"
)
_QTY_PRICE = re.compile(r"^(?P<qty>\d{1,3})\s+(?P<price>" + PRICE + r")" + TAX_FLAG + r"$")
# "Apples 2 @ 1.50" inside a same-line item name.
_INLINE_MODIFIER = re.compile(r"^(?P<name>.*?\S)\s+(?P<qty>\d{1,3})\s?[@xX]\s?(?P<unit>" + PRICE + r")$")
_DECORATIVE_TAIL = re.compile(r"[.\-_*=~]{2,}$")
_COLUMN_SPLIT = re.compile(re.escape(WIDE_GAP) + r"|\s*[.\-_*=~]{3,}\s*")
_INTEGER = re.compile(r"^\d{1,3}$")

# Tolerance for qty x unit price vs printed line price.
QUANTITY_PRICE_TOLERANCE = Decimal("0.02")

_TENDER_WORD = (
    r"(?:cash|change|visa|master\s*card|amex|debit|d[ée]bit|credit|cr[ée]dit|interac|tender(?:ed)?|payment|paiement|"
    r"balance|approved|auth(?:orization)?|card|carte|tip|gratuity|pourboire|rounding|due|paid|back|amount|montant)"
)
# Only names that are entirely a tender label: "VISA ****1234", "Cash Tendered", "Change Due".
TENDER_LABEL_PATTERN = re.compile(
    r"^" + _TENDER_WORD + r"\b(?:[\s:#*xX\d/-]++|\s+" + _TENDER_WORD + r"\b)*$", re.IGNORECASE
)
# Table/server labels count only at the start of a name, so "Pillow Covers" stays an item.
LEADING_TABLE_LABEL_PATTERN = re.compile(r"^" + TABLE_LABEL_WORDS + r"\b", re.IGNORECASE)

NON_ITEM_PATTERNS = (
    SUBTOTAL_PATTERN,
    TOTAL_WORD_PATTERN,
    AGGREGATE_TAX_PATTERN,
    FAREWELL_PATTERN,
    TENDER_LABEL_PATTERN,
    LEADING_TABLE_LABEL_PATTERN,
)


@dataclass(frozen=True)
class ParsedItem:
    """Raw fields recognized by one strategy."""

    name: str
    price: Decimal
    quantity: int | None = None
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class ItemCandidate:
    """A parsed item plus provenance, before filtering."""

    item: ParsedItem
    strategy_id: str
    priority: int
    confidence: float
    line_indices: tuple[int, ...]

    def to_line_item(self) -> LineItem:
        return LineItem(
            name=self.item.name,
            price=self.item.price,
            quantity=self.item.quantity,
            unit_price=self.item.unit_price,
        )


@dataclass(frozen=True)
class ItemStrategy:
    strategy_id: str
    span: int
    confidence: float
    match: Callable[[Sequence[str], int], ParsedItem | None]


class ConsumedLines:
    """Arena of line indices already claimed by a strategy."""

    def __init__(self) -> None:
        self._indices: set[int] = set()

    def is_free(self, indices: Iterable[int]) -> bool:
        return not any(index in self._indices for index in indices)

    def consume(self, indices: Iterable[int]) -> None:
        self._indices.update(indices)

    def __contains__(self, index: object) -> bool:
        return index in self._indices

    def __len__(self) -> int:
        return len(self._indices)


def _positive_quantity(raw: str | None) -> int | None:
    if raw is None:
        return None
    quantity = int(raw)
    return quantity if quantity > 0 else None


def _validate_quantity_price(price: Decimal, quantity: int, unit_price: Decimal) -> bool:
    """Check that quantity x unit price matches the printed line price."""
    return abs(quantity * unit_price - price) <= QUANTITY_PRICE_TOLERANCE


def _is_name_fragment(text: str) -> bool:
    """A plausible item name: alphabetic content, no price, not a bare quantity expression."""
    if not text or not has_alpha(text) or find_amounts(text):
        return False
    return _QTY_AT_UNIT.match(text) is None


def _match_same_line(lines: Sequence[str], index: int) -> ParsedItem | None:
    """Strategy 1: "[qty] name price" on one line."""
    line = lines[index]
    if WIDE_GAP in line:
        return None
    match = _SAME_LINE.match(line)
    if match is None:
        return None
    name = match.group("name")
    if _DECORATIVE_TAIL.search(name) or not has_alpha(name):
        return None
    price = parse_amount(match.group("price"))
    if price is None:
        return None
    quantity = _positive_quantity(match.group("qty"))
    unit_price = None

    modifier = _INLINE_MODIFIER.match(name)
    if modifier is not None and quantity is None:
        modifier_quantity = _positive_quantity(modifier.group("qty"))
        modifier_unit = parse_amount(modifier.group("unit"))
        if (
            modifier_quantity is not None
            and modifier_unit is not None
            and has_alpha(modifier.group("name"))
            and _validate_quantity_price(price, modifier_quantity, modifier_unit)
        ):
            name, quantity, unit_price = modifier.group("name"), modifier_quantity, modifier_unit
    return ParsedItem(name=name, price=price, quantity=quantity, unit_price=unit_price)


def _match_qty_name_then_price(lines: Sequence[str], index: int) -> ParsedItem | None:
    """Strategy 2: "qty name" followed by a bare price line."""
    if index + 1 >= len(lines):
        return None
    match = _QTY_NAME.match(lines[index])
    if match is None or not _is_name_fragment(match.group("name")):
        return None
    if not is_bare_amount(lines[index + 1]):
        return None
    price = parse_amount(_strip_tax_flag(lines[index + 1]))
    if price is None:
        return None
    return ParsedItem(name=match.group("name"), price=price, quantity=_positive_quantity(match.group("qty")))


def _match_name_then_qty_price(lines: Sequence[str], index: int) -> ParsedItem | None:
    """Strategy 3: name line followed by "qty price" or "qty @ unit [price]"."""
    if index + 1 >= len(lines):
        return None
    name = lines[index]
    if _QTY_NAME.match(name) or not _is_name_fragment(name):
        return None
    next_line = lines[index + 1]

    at_unit = _QTY_AT_UNIT.match(next_line)
    if at_unit is not None:
        quantity = _positive_quantity(at_unit.group("qty"))
        unit_price = parse_amount(at_unit.group("unit"))
        if quantity is None or unit_price is None:
            return None
        if at_unit.group("price"):
            price = parse_amount(at_unit.group("price"))
        else:
            price = quantity * unit_price
        if price is None:
            return None
        return ParsedItem(name=name, price=price, quantity=quantity, unit_price=unit_price)

    qty_price = _QTY_PRICE.match(next_line)
    if qty_price is not None:
        price = parse_amount(qty_price.group("price"))
        if price is None:
            return None
        return ParsedItem(name=name, price=price, quantity=_positive_quantity(qty_price.group("qty")))
    return None


def _match_name_then_price(lines: Sequence[str], index: int) -> ParsedItem | None:
    """Strategy 4: name line followed by a bare price line, no quantity anywhere."""
    if index + 1 >= len(lines):
        return None
    name = lines[index]
    if WIDE_GAP in name or _QTY_NAME.match(name) or not _is_name_fragment(name):
        return None
    if not is_bare_amount(lines[index + 1]):
        return None
    price = parse_amount(_strip_tax_flag(lines[index + 1]))
    if price is None:
        return None
    return ParsedItem(name=name, price=price)


def _match_wide_gap(lines: Sequence[str], index: int) -> ParsedItem | None:
    """Strategy 5: tabular columns split by a wide gap or a decorative leader."""
    columns = [column.strip() for column in _COLUMN_SPLIT.split(lines[index]) if column.strip()]
    if len(columns) < 2 or not is_bare_amount(columns[-1]):
        return None
    price = parse_amount(_strip_tax_flag(columns[-1]))
    if price is None:
        return None

    quantity: int | None = None
    unit_price: Decimal | None = None
    head = columns[:-1]
    if len(head) > 1 and _INTEGER.match(head[0]):
        quantity = _positive_quantity(head.pop(0))

    name_parts: list[str] = []
    for column in head:
        if not name_parts:
            leading = _QTY_NAME.match(column)
            if leading is not None and quantity is None and has_alpha(leading.group("name")):
                quantity = _positive_quantity(leading.group("qty"))
                column = leading.group("name")
            name_parts.append(column)
        elif _INTEGER.match(column) and quantity is None:
            quantity = _positive_quantity(column)
        elif is_bare_amount(column) and unit_price is None:
            unit_price = parse_amount(_strip_tax_flag(column))
        else:
            name_parts.append(column)

    name = " ".join(name_parts)
    if not has_alpha(name):
        return None
    return ParsedItem(name=name, price=price, quantity=quantity, unit_price=unit_price)


def _strip_tax_flag(text: str) -> str:
    return re.sub(r"\s[A-Za-z*]$", "", text.strip())


ITEM_STRATEGIES: tuple[ItemStrategy, ...] = (
    ItemStrategy("same_line", 1, 0.85, _match_same_line),
    ItemStrategy("qty_name_then_price", 2, 0.75, _match_qty_name_then_price),
    ItemStrategy("name_then_qty_price", 2, 0.75, _match_name_then_qty_price),
    ItemStrategy("name_then_price", 2, 0.65, _match_name_then_price),
    ItemStrategy("wide_gap", 1, 0.8, _match_wide_gap),
)


def run_item_strategies(
    lines: Sequence[str],
    strategies: Sequence[ItemStrategy] = ITEM_STRATEGIES,
) -> list[ItemCandidate]:
    """Run the strategy chain; earlier strategies claim lines first."""
    consumed = ConsumedLines()
    candidates: list[ItemCandidate] = []
    for priority, strategy in enumerate(strategies):
        for index in range(len(lines) - strategy.span + 1):
            indices = tuple(range(index, index + strategy.span))
            if not consumed.is_free(indices):
                continue
            parsed = strategy.match(lines, index)
            if parsed is None:
                continue
            consumed.consume(indices)
            candidates.append(ItemCandidate(parsed, strategy.strategy_id, priority, strategy.confidence, indices))
    return candidates


def clean_item_name(name: str) -> str:
    """Strip OCR decoration around an item name."""
    name = name.replace(WIDE_GAP, " ")
    name = re.sub(r"^[^\w(]+", "", name)
    name = re.sub(r"[\s:.\-_*=~#]+$", "", name)
    return re.sub(r"\s+", " ", name).strip()


def is_non_item_name(name: str) -> bool:
    """Return True for summary, tax, payment, footer and table/server labels."""
    if any(pattern.search(name) for pattern in NON_ITEM_PATTERNS):
        return True
    return bool(tax_labels_in(name))


def filter_item_candidates(candidates: Sequence[ItemCandidate]) -> list[ItemCandidate]:
    """
    Drop non-items and duplicates, then order by position on the receipt.

    Zero-price items with a real name are kept. Identical (name, price) pairs
    are only merged when their lines overlap; the higher-priority strategy wins.
    """
    kept: list[ItemCandidate] = []
    for candidate in sorted(candidates, key=lambda c: c.priority):
        name = clean_item_name(candidate.item.name)
        if not name or len(name) > MAX_ITEM_NAME_LENGTH or not has_alpha(name):
            continue
        if candidate.item.price < 0 or is_non_item_name(name):
            continue
        cleaned = ItemCandidate(
            ParsedItem(name, candidate.item.price, candidate.item.quantity, candidate.item.unit_price),
            candidate.strategy_id,
            candidate.priority,
            candidate.confidence,
            candidate.line_indices,
        )
        if any(_is_overlapping_duplicate(cleaned, existing) for existing in kept):
            continue
        kept.append(cleaned)
    kept.sort(key=lambda c: c.line_indices[0])
    return kept


def _is_overlapping_duplicate(candidate: ItemCandidate, existing: ItemCandidate) -> bool:
    if (candidate.item.name, candidate.item.price) != (existing.item.name, existing.item.price):
        return False
    return bool(set(candidate.line_indices) & set(existing.line_indices))


def parse_item_lines(lines: Sequence[str]) -> list[ItemCandidate]:
    """Strategy chain plus filtering, keeping provenance for confidence scoring."""
    return filter_item_candidates(run_item_strategies(lines))


def extract_items(lines: Sequence[str]) -> list[LineItem]:
    """Extract line items from the item-section lines of a receipt."""
    return [candidate.to_line_item() for candidate in parse_item_lines(lines)]
