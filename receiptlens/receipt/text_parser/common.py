"""Shared constants and helpers for receipt text parsing."""

import re
from decimal import Decimal, InvalidOperation

# Canonical column gap produced by the normalizer for tab/wide-space runs.
WIDE_GAP = "   "

# Amount tokens must carry two decimals: "3.99", "1,234.56", "12,50".
AMOUNT_NUMBER = r"(?:\d{1,3}(?:,\d{3})+|\d+)[.,]\d{2}"
CURRENCY_PREFIX = r"(?:CA\$|US\$|C\$|[$€£¥])"
CURRENCY_SUFFIX = r"(?:\$|€|£|¥|CAD|USD|EUR)"

AMOUNT_TOKEN = re.compile(
    r"(?<![\w.,])(?P<neg>-\s?)?" + CURRENCY_PREFIX + r"?\s?(?P<number>" + AMOUNT_NUMBER + r")"
    r"(?![\d%]|[.,]\d)(?!\s%)(?P<trail_neg>-)?"
)

BARE_AMOUNT = re.compile(
    r"^" + CURRENCY_PREFIX + r"?\s?-?\s?" + AMOUNT_NUMBER + r"-?\s?" + CURRENCY_SUFFIX + r"?(?:\s[A-Z*])?$",
    re.IGNORECASE,
)

_CURRENCY_STRIP = re.compile(r"CA\$|US\$|C\$|[$€£¥]|\b(?:CAD|USD|EUR)\b", re.IGNORECASE)

SUBTOTAL_PATTERN = re.compile(r"\b(?:sub[\s-]?total|sous[\s-]?total|subtot)\b", re.IGNORECASE)
TOTAL_WORD_PATTERN = re.compile(r"\btotal\b", re.IGNORECASE)

TAX_COMPONENT_PATTERNS = {
    "gst": re.compile(r"\b(?:g\.?\s?s\.?\s?t|t\.?\s?p\.?\s?s)\b", re.IGNORECASE),
    "qst": re.compile(r"\b(?:q\.?\s?s\.?\s?t|t\.?\s?v\.?\s?q)\b", re.IGNORECASE),
    "pst": re.compile(r"\b(?:p\.?\s?s\.?\s?t|t\.?\s?v\.?\s?p)\b", re.IGNORECASE),
    "hst": re.compile(r"\b(?:h\.?\s?s\.?\s?t|t\.?\s?v\.?\s?h)\b", re.IGNORECASE),
}
AGGREGATE_TAX_PATTERN = re.compile(r"\b(?:sales\s+)?tax(?:es|e)?\b", re.IGNORECASE)
NOT_A_TAX_AMOUNT_PATTERN = re.compile(
    r"\b(?:after\s+tax(?:es)?|pre-?tax|before\s+tax(?:es)?|incl(?:\.|uding)?\s+tax(?:es)?|"
    r"tax\s+(?:exempt|free)|avant\s+taxes?|apr[eè]s\s+taxes?)\b|\btax(?:able|ed)\b",
    re.IGNORECASE,
)

FAREWELL_PATTERN = re.compile(
    r"\b(?:thank\s*you|thanks|merci|come\s+again|have\s+a\s+(?:nice|great|good)\s+day|"
    r"bonne\s+journ[ée]e|au\s+revoir|see\s+you|visit\s+us)\b",
    re.IGNORECASE,
)
PAYMENT_PATTERN = re.compile(
    r"\b(?:cash|change|visa|master\s*card|amex|debit|credit|interac|tender(?:ed)?|payment|paiement|"
    r"balance|approved|auth(?:orization)?|card|carte|tip|gratuity|pourboire|rounding)\b",
    re.IGNORECASE,
)
TABLE_LABEL_WORDS = (
    r"(?:table|tbl|server|serveur|serveuse|guests?|clients?|covers?|cashier|caissi[eè]re?|facture|invoice|montant)"
)
TABLE_LABEL_PATTERN = re.compile(r"\b" + TABLE_LABEL_WORDS + r"\b", re.IGNORECASE)


def parse_amount(text: str | None) -> Decimal | None:
    """
    Parse a money string into a Decimal.

    Strips currency symbols/codes, thousands separators and surrounding
    whitespace. A comma followed by exactly two digits is a decimal separator.
    Returns None when the text is not a number (never a zero placeholder).
    """
    if text is None:
        return None
    cleaned = _CURRENCY_STRIP.sub("", str(text)).strip()
    if not cleaned:
        return None

    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative = True
        cleaned = cleaned[1:-1].strip()
    if cleaned.startswith("-") or cleaned.endswith("-"):
        negative = True
        cleaned = cleaned.strip("-").strip()
    cleaned = cleaned.replace(" ", "")

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        head, _, tail = cleaned.rpartition(",")
        if len(tail) == 2 and "," not in head:
            cleaned = f"{head}.{tail}"
        else:
            cleaned = cleaned.replace(",", "")

    if not re.fullmatch(r"\d+(?:\.\d+)?", cleaned):
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return -value if negative else value


def find_amounts(line: str) -> list[Decimal]:
    """Return every amount token on a line, left to right."""
    amounts: list[Decimal] = []
    for match in AMOUNT_TOKEN.finditer(line):
        value = parse_amount(match.group("number"))
        if value is None:
            continue
        if match.group("neg") or match.group("trail_neg"):
            value = -value
        amounts.append(value)
    return amounts


def last_amount(line: str) -> Decimal | None:
    """Return the right-most amount on a line (rates and codes come first)."""
    amounts = find_amounts(line)
    return amounts[-1] if amounts else None


def is_bare_amount(line: str) -> bool:
    """Return True if the line is only a price, e.g. "$5.00" or "5.00 H"."""
    return BARE_AMOUNT.match(line.strip()) is not None


def has_alpha(text: str) -> bool:
    return any(c.isalpha() for c in text)


def has_standalone_total(line: str) -> bool:
    """Return True if the line says TOTAL outside of a SUBTOTAL label."""
    return TOTAL_WORD_PATTERN.search(SUBTOTAL_PATTERN.sub(" ", line)) is not None


def tax_labels_in(line: str) -> list[str]:
    """Return the tax component names whose label appears on the line."""
    return [name for name, pattern in TAX_COMPONENT_PATTERNS.items() if pattern.search(line)]


def looks_like_summary_line(line: str) -> bool:
    """Return True if the line is a subtotal/tax/total summary line."""
    if not line:
        return False
    if SUBTOTAL_PATTERN.search(line) or TOTAL_WORD_PATTERN.search(line):
        return True
    if tax_labels_in(line):
        return True
    return AGGREGATE_TAX_PATTERN.search(line) is not None and NOT_A_TAX_AMOUNT_PATTERN.search(line) is None


def clamp_confidence(value: float) -> float:
    return round(min(1.0, max(0.0, value)), 4)
