from decimal import Decimal

from receiptlens.domain.receipt import LineItem
from receiptlens.receipt.text_parser.items_text_parser import (
    ConsumedLines,
    extract_items,
    parse_item_lines,
    run_item_strategies,
)
from receiptlens.receipt.text_parser.normalizer import normalize_lines


def test_same_line_item_with_double_space() -> None:
    items = extract_items(normalize_lines("Bananas  $3.99"))

    assert items == [LineItem(name="Bananas", price=Decimal("3.99"))]


def test_quantity_name_followed_by_price_line() -> None:
    items = extract_items(["2 Apples", "5.00"])

    assert items == [LineItem(name="Apples", price=Decimal("5.00"), quantity=2)]


def test_same_line_leading_quantity_and_tax_flag() -> None:
    items = extract_items(["2 Coffee 7.00", "Milk 2.50 H"])

    assert items == [
        LineItem(name="Coffee", price=Decimal("7.00"), quantity=2),
        LineItem(name="Milk", price=Decimal("2.50")),
    ]


def test_inline_quantity_at_unit_price_is_validated() -> None:
    items = extract_items(["Apples 3 @ 1.50 4.50"])

    assert items == [LineItem(name="Apples", price=Decimal("4.50"), quantity=3, unit_price=Decimal("1.50"))]


def test_inline_modifier_that_does_not_add_up_stays_in_name() -> None:
    items = extract_items(["Apples 3 @ 1.50 9.99"])

    assert items == [LineItem(name="Apples 3 @ 1.50", price=Decimal("9.99"))]


def test_name_followed_by_quantity_at_unit_line() -> None:
    items = extract_items(["Oranges", "3 @ 0.50"])

    assert items == [LineItem(name="Oranges", price=Decimal("1.50"), quantity=3, unit_price=Decimal("0.50"))]


def test_name_followed_by_quantity_and_price_line() -> None:
    items = extract_items(["Orange Juice", "2 7.98"])

    assert items == [LineItem(name="Orange Juice", price=Decimal("7.98"), quantity=2)]


def test_name_followed_by_bare_price_line() -> None:
    items = extract_items(["Poutine", "$11.50", "Salade", "9,75"])

    assert items == [
        LineItem(name="Poutine", price=Decimal("11.50")),
        LineItem(name="Salade", price=Decimal("9.75")),
    ]


def test_wide_gap_columns() -> None:
    items = extract_items(normalize_lines("Burger\t2\t12.00\nFries      6.00"))

    assert items == [
        LineItem(name="Burger", price=Decimal("12.00"), quantity=2),
        LineItem(name="Fries", price=Decimal("6.00")),
    ]


def test_wide_gap_with_unit_price_column() -> None:
    items = extract_items(normalize_lines("2   Beer   7.00   14.00"))

    assert items == [LineItem(name="Beer", price=Decimal("14.00"), quantity=2, unit_price=Decimal("7.00"))]


def test_decorative_leader_columns() -> None:
    items = extract_items(["Fries.......3.50"])

    assert items == [LineItem(name="Fries", price=Decimal("3.50"))]


def test_summary_tax_and_payment_lines_are_not_items() -> None:
    items = extract_items(["Latte 4.50", "SUBTOTAL 4.50", "TPS 0.23", "Visa 4.73", "Change 0.00"])

    assert [item.name for item in items] == ["Latte"]


def test_products_named_after_payment_words_are_kept() -> None:
    names = ["Greeting Card", "Tip Top Socks", "Cash Register Toy", "Credit Union Mug"]

    items = extract_items([f"{name} 4.00" for name in names])

    assert [item.name for item in items] == names


def test_tender_labels_are_not_items() -> None:
    lines = ["Pillow Covers 12.00", "VISA ****1234 17.25", "Cash Tendered 20.00", "Change Due 2.75", "Debit Card 1.00"]

    items = extract_items(lines)

    assert [item.name for item in items] == ["Pillow Covers"]


def test_negative_and_nameless_lines_are_dropped() -> None:
    items = extract_items(["Discount -2.00", "12345 6.00", "Refill 0.00"])

    assert items == [LineItem(name="Refill", price=Decimal("0.00"))]


def test_overlong_names_are_rejected() -> None:
    items = extract_items([("Long name " * 20) + "5.00", "Tea 2.00"])

    assert [item.name for item in items] == ["Tea"]


def test_repeated_items_on_separate_lines_are_kept() -> None:
    items = extract_items(["Coffee 2.50", "Coffee 2.50"])

    assert len(items) == 2


def test_earlier_strategy_claims_lines_first() -> None:
    # "Soup 5.00" is a same-line item, so it cannot also serve as a price line.
    candidates = run_item_strategies(["Bread", "Soup 5.00", "3.00"])

    assert [(c.strategy_id, c.line_indices) for c in candidates] == [("same_line", (1,))]


def test_items_are_ordered_by_position() -> None:
    candidates = parse_item_lines(["2 Apples", "5.00", "Pears 3.00"])

    assert [c.item.name for c in candidates] == ["Apples", "Pears"]
    assert [c.line_indices for c in candidates] == [(0, 1), (2,)]


def test_consumed_lines_arena() -> None:
    consumed = ConsumedLines()
    consumed.consume((1, 2))

    assert 1 in consumed
    assert not consumed.is_free((2, 3))
    assert consumed.is_free((0, 3))
    assert len(consumed) == 2


def test_no_items_in_empty_section() -> None:
    assert extract_items([]) == []
