import pytest

from receiptlens.receipt.text_parser.common import WIDE_GAP
from receiptlens.receipt.text_parser.normalizer import normalize_line, normalize_lines


def test_normalize_lines_drops_blank_lines_and_keeps_order() -> None:
    raw = "  STORE  \r\n\r\nMilk 2.50\n\n   \nTOTAL 2.50\n"

    assert normalize_lines(raw) == ["STORE", "Milk 2.50", "TOTAL 2.50"]


def test_normalize_line_collapses_short_space_runs() -> None:
    assert normalize_line("\x00Cof\u200bfee\x07 3.50\ufeff") == "Coffee 3.50"


def test_normalize_lines_handles_unicode_line_separators() -> None:
    assert normalize_lines("A 1.00\u2028B 2.00\x0cC 3.00") == ["A 1.00", "B 2.00", "C 3.00"]


def test_normalize_lines_empty_text_yields_no_lines() -> None:
    assert normalize_lines("") == []
    assert normalize_lines(" \n\t\n ") == []


def test_normalize_lines_rejects_none() -> None:
    with pytest.raises(TypeError):
        normalize_lines(None)  # type: ignore[arg-type]
