"""Merchant/date/summary amount extraction.

Every field is extracted by an object holding an ordered tuple of rules.
Each rule contributes at most one candidate (the first line it matches);
the highest-confidence candidate across rules is kept, ties going to the
earlier rule. Adding a layout means appending a rule, not branching.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Literal, Protocol

from receiptlens.domain.receipt import TAX_COMPONENTS, ExtractionCandidate

from .common import (
    AGGREGATE_TAX_PATTERN,
    NOT_A_TAX_AMOUNT_PATTERN,
    PAYMENT_PATTERN,
    SUBTOTAL_PATTERN,
    TABLE_LABEL_PATTERN,
    TAX_COMPONENT_PATTERNS,
    WIDE_GAP,
    clamp_confidence,
    find_amounts,
    has_alpha,
    has_standalone_total,
    is_bare_amount,
    last_amount,
    looks_like_summary_line,
    tax_labels_in,
)

DateOrder = Literal["MDY", "DMY"]

# Multiplier for a line that also carries a competing keyword.
CONFLICT_MULTIPLIER = 0.5
# Max +/- adjustment for position in the document.
POSITION_WEIGHT = 0.05


class FieldExtractor(Protocol):
    field: str

    def extract(self, lines: Sequence[str]) -> list[ExtractionCandidate]: ...


def best_candidate(candidates: Sequence[ExtractionCandidate]) -> ExtractionCandidate | None:
    """Highest confidence wins; max() keeps the earliest rule on ties."""
    if not candidates:
        return None
    return max(candidates, key=lambda candidate: candidate.confidence)


def _end_bias(index: int, line_count: int) -> float:
    """Lines near the bottom score up to +POSITION_WEIGHT, the top down to -POSITION_WEIGHT."""
    if line_count <= 1:
        return 0.0
    return POSITION_WEIGHT * (2 * index / (line_count - 1) - 1)


# ---------------------------------------------------------------------------
# Amount fields: subtotal, tax components, aggregate tax, total
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AmountRule:
    """Label pattern with the amount on the same line or on the next line."""

    rule_id: str
    label: re.Pattern[str]
    confidence: float
    placement: Literal["same_line", "next_line"] = "same_line"
    accepts: Callable[[str], bool] | None = None

    def match(self, lines: Sequence[str], index: int) -> Decimal | None:
        line = lines[index]
        if not self.label.search(line):
            return None
        if self.accepts is not None and not self.accepts(line):
            return None
        if self.placement == "same_line":
            return last_amount(line)
        if find_amounts(line) or index + 1 >= len(lines):
            return None
        next_line = lines[index + 1]
        if not is_bare_amount(next_line):
            return None
        return last_amount(next_line)


@dataclass(frozen=True)
class AmountFieldExtractor:
    field: str
    rules: tuple[AmountRule, ...]
    conflicts: Callable[[str], bool]
    from_end: bool = False

    def extract(self, lines: Sequence[str]) -> list[ExtractionCandidate]:
        candidates: list[ExtractionCandidate] = []
        order = range(len(lines) - 1, -1, -1) if self.from_end else range(len(lines))
        for rule in self.rules:
            fallback: ExtractionCandidate | None = None
            chosen: ExtractionCandidate | None = None
            for index in order:
                value = rule.match(lines, index)
                if value is None:
                    continue
                conflicted = self.conflicts(lines[index])
                confidence = rule.confidence + _end_bias(index, len(lines))
                if conflicted:
                    confidence *= CONFLICT_MULTIPLIER
                candidate = ExtractionCandidate(value, clamp_confidence(confidence), rule.rule_id, index)
                if not conflicted:
                    chosen = candidate
                    break
                if fallback is None:
                    fallback = candidate
            if chosen is None:
                chosen = fallback
            if chosen is not None:
                candidates.append(chosen)
        return candidates


_NOT_A_TOTAL = re.compile(
    r"\b(?:savings?|saved|discounts?|items?|number|qty|quantity|points|count|rebates?|"
    r"[ée]conomies|articles?)\b",
    re.IGNORECASE,
)
_TOTAL_LABEL = re.compile(
    r"\b(?:grand\s+total|total|amount\s+due|balance\s+due|total\s+due|montant(?:\s+total)?|[àa]\s+payer)\b",
    re.IGNORECASE,
)
_TOTAL_LABEL_ONLY = re.compile(
    r"^(?:grand\s+)?(?:total|amount\s+due|montant(?:\s+total)?)\s*:?\s*(?:[$€£]|CAD|USD)?$",
    re.IGNORECASE,
)
_LOOSE_TOTAL_LABEL = re.compile(r"\b(?:amount|balance|sum|somme|net\s+[àa]\s+payer)\b", re.IGNORECASE)
_SUBTOTAL_LABEL_ONLY = re.compile(
    r"^(?:sub[\s-]?total|sous[\s-]?total|subtot)\s*:?\s*(?:[$€£]|CAD|USD)?$",
    re.IGNORECASE,
)
_NET_SUBTOTAL_LABEL = re.compile(
    r"\b(?:net\s+(?:total|amount)|before\s+tax(?:es)?|pre-?tax(?:\s+total)?|montant\s+avant\s+taxes?)\b",
    re.IGNORECASE,
)


def _accepts_total(line: str) -> bool:
    if _NOT_A_TOTAL.search(line):
        return False
    if tax_labels_in(line) or AGGREGATE_TAX_PATTERN.search(line):
        # "TOTAL AFTER TAX" is a total, "TOTAL TAX" is not.
        return NOT_A_TAX_AMOUNT_PATTERN.search(line) is not None
    return True


def _accepts_loose_total(line: str) -> bool:
    return _accepts_total(line) and not looks_like_summary_line(line) and not re.search(
        r"\b(?:cash|change|tendered|tip)\b", line, re.IGNORECASE
    )


def _accepts_aggregate_tax(line: str) -> bool:
    return NOT_A_TAX_AMOUNT_PATTERN.search(line) is None


SUBTOTAL_EXTRACTOR = AmountFieldExtractor(
    field="subtotal",
    rules=(
        AmountRule("subtotal.label_amount", SUBTOTAL_PATTERN, 0.9),
        AmountRule("subtotal.label_next_line", _SUBTOTAL_LABEL_ONLY, 0.8, placement="next_line"),
        AmountRule("subtotal.net_amount", _NET_SUBTOTAL_LABEL, 0.7),
    ),
    conflicts=has_standalone_total,
)

TOTAL_EXTRACTOR = AmountFieldExtractor(
    field="total",
    rules=(
        AmountRule("total.label_amount", _TOTAL_LABEL, 0.9, accepts=_accepts_total),
        AmountRule("total.label_next_line", _TOTAL_LABEL_ONLY, 0.8, placement="next_line"),
        AmountRule("total.loose_label", _LOOSE_TOTAL_LABEL, 0.6, accepts=_accepts_loose_total),
    ),
    conflicts=lambda line: SUBTOTAL_PATTERN.search(line) is not None,
    from_end=True,
)


def _tax_component_extractor(name: str) -> AmountFieldExtractor:
    label = TAX_COMPONENT_PATTERNS[name]
    return AmountFieldExtractor(
        field=f"tax.{name}",
        rules=(
            AmountRule(f"tax.{name}.label_amount", label, 0.9, accepts=_accepts_aggregate_tax),
            AmountRule(
                f"tax.{name}.label_next_line",
                re.compile(r"^(?:" + label.pattern + r")\.?\s*(?:\d{1,2}(?:[.,]\d+)?\s?%)?\s*:?$", re.IGNORECASE),
                0.75,
                placement="next_line",
            ),
        ),
        conflicts=lambda line: len(tax_labels_in(line)) > 1,
    )


TAX_COMPONENT_EXTRACTORS = {name: _tax_component_extractor(name) for name in TAX_COMPONENTS}

AGGREGATE_TAX_EXTRACTOR = AmountFieldExtractor(
    field="tax.total",
    rules=(
        AmountRule("tax.total.label_amount", AGGREGATE_TAX_PATTERN, 0.85, accepts=_accepts_aggregate_tax),
        AmountRule(
            "tax.total.label_next_line",
            re.compile(r"^(?:total\s+)?(?:sales\s+)?tax(?:es|e)?\s*:?$", re.IGNORECASE),
            0.7,
            placement="next_line",
        ),
    ),
    conflicts=lambda line: SUBTOTAL_PATTERN.search(line) is not None,
)


def _largest_amount_candidate(lines: Sequence[str]) -> ExtractionCandidate | None:
    """Bare numeric fallback: the largest amount outside payment/tender lines."""
    best: tuple[Decimal, int] | None = None
    for index, line in enumerate(lines):
        if PAYMENT_PATTERN.search(line):
            continue
        for amount in find_amounts(line):
            if amount > 0 and (best is None or amount > best[0]):
                best = (amount, index)
    if best is None:
        return None
    return ExtractionCandidate(best[0], 0.3, "total.largest_amount", best[1])


def extract_subtotal(lines: Sequence[str]) -> ExtractionCandidate | None:
    """Extract the subtotal amount."""
    return best_candidate(SUBTOTAL_EXTRACTOR.extract(lines))


def extract_total(lines: Sequence[str]) -> ExtractionCandidate | None:
    """Extract the grand total, falling back to the largest amount on the receipt."""
    candidates = TOTAL_EXTRACTOR.extract(lines)
    if not candidates:
        fallback = _largest_amount_candidate(lines)
        if fallback is not None:
            candidates.append(fallback)
    return best_candidate(candidates)


def extract_tax(lines: Sequence[str]) -> dict[str, ExtractionCandidate]:
    """
    Extract tax components (gst/qst/pst/hst) and the explicit aggregate ("total").

    One physical line feeds at most one component: the highest-confidence
    component keeps it (component order breaks ties). An aggregate candidate
    on a line already claimed by a component is dropped.
    """
    proposals: list[tuple[str, ExtractionCandidate]] = []
    for name in TAX_COMPONENTS:
        candidate = best_candidate(TAX_COMPONENT_EXTRACTORS[name].extract(lines))
        if candidate is not None:
            proposals.append((name, candidate))

    by_line: dict[int | None, tuple[str, ExtractionCandidate]] = {}
    for name, candidate in proposals:
        current = by_line.get(candidate.line_index)
        if current is None or candidate.confidence > current[1].confidence:
            by_line[candidate.line_index] = (name, candidate)
    result = {name: candidate for name, candidate in by_line.values()}

    aggregate = best_candidate(AGGREGATE_TAX_EXTRACTOR.extract(lines))
    if aggregate is not None and aggregate.line_index not in by_line:
        result["total"] = aggregate
    return result


# ---------------------------------------------------------------------------
# Date
# ---------------------------------------------------------------------------

MONTH_NAMES = {
    "january": 1, "jan": 1, "janvier": 1, "janv": 1,
    "february": 2, "feb": 2, "février": 2, "fevrier": 2, "févr": 2, "fevr": 2, "fév": 2, "fev": 2,
    "march": 3, "mar": 3, "mars": 3,
    "april": 4, "apr": 4, "avril": 4, "avr": 4,
    "may": 5, "mai": 5,
    "june": 6, "jun": 6, "juin": 6,
    "july": 7, "jul": 7, "juillet": 7, "juil": 7,
    "august": 8, "aug": 8, "août": 8, "aout": 8,
    "september": 9, "sept": 9, "sep": 9, "septembre": 9,
    "october": 10, "oct": 10, "octobre": 10,
    "november": 11, "nov": 11, "novembre": 11,
    "december": 12, "dec": 12, "décembre": 12, "decembre": 12, "déc": 12,
}  # fmt: skip

_MONTH_ALTERNATION = "|".join(sorted(MONTH_NAMES, key=len, reverse=True))
_DATE_KEYWORD = re.compile(r"\bdate\b", re.IGNORECASE)


def _expand_year(year: int) -> int:
    if year >= 100:
        return year
    # Two-digit years: 00-69 -> 2000s, 70-99 -> 1900s
    return 2000 + year if year <= 69 else 1900 + year


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(_expand_year(year), month, day)
    except ValueError:
        return None


@dataclass(frozen=True)
class DateRule:
    rule_id: str
    pattern: re.Pattern[str]
    confidence: float
    # Returns (date, confidence adjustment) or None when the match is not a real date.
    build: Callable[[re.Match[str], DateOrder], tuple[date, float] | None]


def _build_iso(match: re.Match[str], _order: DateOrder) -> tuple[date, float] | None:
    parsed = _safe_date(int(match.group("year")), int(match.group("month")), int(match.group("day")))
    return (parsed, 0.0) if parsed else None


def _build_numeric(match: re.Match[str], order: DateOrder) -> tuple[date, float] | None:
    first, second = int(match.group("first")), int(match.group("second"))
    year = int(match.group("year"))
    if first > 12 and second > 12:
        return None
    if first > 12:
        day, month, adjustment = first, second, 0.0
    elif second > 12:
        month, day, adjustment = first, second, 0.0
    else:
        # Ambiguous: both components could be the month.
        if order == "DMY":
            day, month = first, second
        else:
            month, day = first, second
        adjustment = -0.25
    parsed = _safe_date(year, month, day)
    return (parsed, adjustment) if parsed else None


def _build_month_name(match: re.Match[str], _order: DateOrder) -> tuple[date, float] | None:
    month = MONTH_NAMES.get(match.group("month").lower())
    if month is None:
        return None
    parsed = _safe_date(int(match.group("year")), month, int(match.group("day")))
    return (parsed, 0.0) if parsed else None


DATE_RULES: tuple[DateRule, ...] = (
    DateRule(
        "date.iso",
        re.compile(r"(?<![\d.,])(?P<year>\d{4})(?P<sep>[-/.])(?P<month>\d{1,2})(?P=sep)(?P<day>\d{1,2})(?![\d.,]*\d)"),
        0.95,
        _build_iso,
    ),
    DateRule(
        "date.month_name",
        re.compile(
            r"\b(?P<month>" + _MONTH_ALTERNATION + r")\.?[\s.-]+(?P<day>\d{1,2})(?:st|nd|rd|th)?,?[\s.-]+"
            r"(?P<year>\d{4}|\d{2})\b",
            re.IGNORECASE,
        ),
        0.9,
        _build_month_name,
    ),
    DateRule(
        "date.day_month_name",
        re.compile(
            r"\b(?P<day>\d{1,2})(?:er|st|nd|rd|th)?[\s.-]+(?P<month>" + _MONTH_ALTERNATION + r")\.?,?[\s.-]+"
            r"(?P<year>\d{4}|\d{2})\b",
            re.IGNORECASE,
        ),
        0.9,
        _build_month_name,
    ),
    DateRule(
        "date.numeric",
        re.compile(
            r"(?<![\d.,/-])(?P<first>\d{1,2})(?P<sep>[-/.])(?P<second>\d{1,2})(?P=sep)"
            r"(?P<year>\d{4}|\d{2})(?![\d/]|[.,]\d)"
        ),
        0.85,
        _build_numeric,
    ),
)


@dataclass(frozen=True)
class DateExtractor:
    field: str = "date"
    rules: tuple[DateRule, ...] = DATE_RULES
    order: DateOrder = "MDY"

    def extract(self, lines: Sequence[str]) -> list[ExtractionCandidate]:
        candidates: list[ExtractionCandidate] = []
        for rule in self.rules:
            for index, line in enumerate(lines):
                found = _first_date_on_line(rule, line, self.order)
                if found is None:
                    continue
                parsed, adjustment = found
                confidence = rule.confidence + adjustment
                if _DATE_KEYWORD.search(line):
                    confidence += 0.05
                candidates.append(ExtractionCandidate(parsed, clamp_confidence(confidence), rule.rule_id, index))
                break
        return candidates


def _first_date_on_line(rule: DateRule, line: str, order: DateOrder) -> tuple[date, float] | None:
    for match in rule.pattern.finditer(line):
        found = rule.build(match, order)
        if found is not None:
            return found
    return None


def extract_date(lines: Sequence[str], date_order: DateOrder = "MDY") -> ExtractionCandidate | None:
    """Extract the transaction date. Unparseable or absent dates yield None."""
    return best_candidate(DateExtractor(order=date_order).extract(lines))


def looks_like_date_line(line: str) -> bool:
    return any(_first_date_on_line(rule, line, "MDY") is not None for rule in DATE_RULES)


# ---------------------------------------------------------------------------
# Merchant
# ---------------------------------------------------------------------------

_PHONE = re.compile(r"\(?\d{3}\)?[\s.-]\d{3}[\s.-]\d{4}")
_TABLE_OR_CLIENT_COUNT = re.compile(r"^(?:table\s*#?|\d+\s*clients?\b)", re.IGNORECASE)
_BUSINESS_SUFFIX = re.compile(
    r"\b(?:inc|ltd|lt[ée]e|llc|corp|restaurant|resto|caf[ée]|bistro|brasserie|pizzeria|grill|bar|"
    r"market|march[ée]|pharmacy|pharmacie|hotel|h[ôo]tel|motel|store|shop|boutique|depot|station|"
    r"supermarket|[ée]picerie|bakery|boulangerie)\b",
    re.IGNORECASE,
)
MERCHANT_MAX_LENGTH = 50


def clean_merchant_name(line: str) -> str:
    """Strip OCR artifacts from a merchant line."""
    cleaned = line.replace(WIDE_GAP, " ")
    cleaned = re.sub(r"[^\w\s&'.-]", "", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned.strip(" .-")


def _is_meaningful_merchant_line(line: str) -> bool:
    cleaned = clean_merchant_name(line)
    if not (2 < len(cleaned) < MERCHANT_MAX_LENGTH) or not has_alpha(cleaned):
        return False
    if re.match(r"^[\d/\-:.\s]+$", line):
        return False
    if _TABLE_OR_CLIENT_COUNT.match(line) or TABLE_LABEL_PATTERN.search(line):
        return False
    if _PHONE.search(line) or find_amounts(line):
        return False
    if looks_like_summary_line(line) or looks_like_date_line(line):
        return False
    return True


@dataclass(frozen=True)
class MerchantExtractor:
    field: str = "merchant"
    known_merchants: tuple[str, ...] = ()
    first_line_window: int = 5
    suffix_window: int = 10

    def extract(self, lines: Sequence[str]) -> list[ExtractionCandidate]:
        candidates: list[ExtractionCandidate] = []

        known = self._known_merchant(lines)
        if known is not None:
            candidates.append(known)

        for index, line in enumerate(lines[: self.suffix_window]):
            if _BUSINESS_SUFFIX.search(line) and _is_meaningful_merchant_line(line):
                confidence = 0.8 - 0.02 * index
                candidates.append(
                    ExtractionCandidate(
                        clean_merchant_name(line), clamp_confidence(confidence), "merchant.business_suffix", index
                    )
                )
                break

        for index, line in enumerate(lines[: self.first_line_window]):
            if _is_meaningful_merchant_line(line):
                confidence = 0.7 - POSITION_WEIGHT * index
                candidates.append(
                    ExtractionCandidate(
                        clean_merchant_name(line), clamp_confidence(confidence), "merchant.first_line", index
                    )
                )
                break
        return candidates

    def _known_merchant(self, lines: Sequence[str]) -> ExtractionCandidate | None:
        # Longer names first so "COSTCO WHOLESALE" beats "COSTCO".
        for merchant in sorted(self.known_merchants, key=len, reverse=True):
            pattern = re.compile(r"\b" + re.escape(merchant) + r"\b", re.IGNORECASE)
            for index, line in enumerate(lines):
                if pattern.search(line):
                    return ExtractionCandidate(merchant, 0.95, "merchant.known", index)
        return None


def extract_merchant(lines: Sequence[str], known_merchants: Sequence[str] = ()) -> ExtractionCandidate | None:
    """Extract the merchant name (known keywords, business suffixes, then first meaningful line)."""
    return best_candidate(MerchantExtractor(known_merchants=tuple(known_merchants)).extract(lines))
