"""Composable receipt text parser components."""

from .fields_parser import (
    DateOrder,
    extract_date,
    extract_merchant,
    extract_subtotal,
    extract_tax,
    extract_total,
)
from .item_section import locate_item_section
from .items_text_parser import extract_items, parse_item_lines
from .normalizer import normalize_lines

__all__ = [
    "DateOrder",
    "extract_date",
    "extract_items",
    "extract_merchant",
    "extract_subtotal",
    "extract_tax",
    "extract_total",
    "locate_item_section",
    "normalize_lines",
    "parse_item_lines",
]
