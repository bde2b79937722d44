from decimal import Decimal

from receiptlens.receipt.text_parser.common import (
    find_amounts,
    is_bare_amount,
    last_amount,
    looks_like_summary_line,
    parse_amount,
)


def test_parse_amount_strips_currency_and_thousands_separators() -> None:
    assert parse_amount("$1,234.56") == Decimal("1234.56")
    assert parse_amount("CA$ 5.00") == Decimal("5.00")
    assert parse_amount("12.00 CAD") == Decimal("12.00")


def test_parse_amount_reads_comma_decimal_separator() -> None:
    assert parse_amount("12,50") == Decimal("12.50")
    assert parse_amount("1.234,56") == Decimal("1234.56")


def test_parse_amount_handles_negative_forms() -> None:
    assert parse_amount("-3.00") == Decimal("-3.00")
    assert parse_amount("3.00-") == Decimal("-3.00")
    assert parse_amount("(3.00)") == Decimal("-3.00")


def test_parse_amount_returns_none_for_non_numbers() -> None:
    assert parse_amount(None) is None
    assert parse_amount("") is None
    assert parse_amount("$") is None
    assert parse_amount("abc") is None
    assert parse_amount("1.2.3") is None


def test_find_amounts_ignores_percentages_and_integers() -> None:
    assert find_amounts("GST 5% 0.50") == [Decimal("0.50")]
    assert find_amounts("TVQ 9.975% 1.50") == [Decimal("1.50")]
    assert find_amounts("Table 12 Guests 4") == []


def test_last_amount_picks_rightmost_token() -> None:
    assert last_amount("2 @ 1.50 3.00") == Decimal("3.00")
    assert last_amount("no amount here") is None


def test_is_bare_amount() -> None:
    assert is_bare_amount("$5.00")
    assert is_bare_amount("5.00 H")
    assert not is_bare_amount("Milk 5.00")
    assert not is_bare_amount("5")


def test_looks_like_summary_line() -> None:
    assert looks_like_summary_line("SUBTOTAL 10.00")
    assert looks_like_summary_line("TPS 0.50")
    assert looks_like_summary_line("Sales Tax 1.30")
    assert not looks_like_summary_line("Taxable item 3.00")
    assert not looks_like_summary_line("Bananas 3.99")
