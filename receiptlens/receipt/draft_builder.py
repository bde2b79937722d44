"""Regex-only extraction: OCR text -> reconciled ReceiptDraft."""

from __future__ import annotations

from collections.abc import Sequence
from statistics import fmean
from typing import Any

from receiptlens.domain.receipt import ExtractionCandidate, OcrInput, ReceiptDraft, TaxBreakdown
from receiptlens.runtime import get_logger

from .merchant_categories import MerchantCategoryRules, categorize_merchant
from .reconciler import reconcile
from .text_parser import (
    DateOrder,
    extract_date,
    extract_merchant,
    extract_subtotal,
    extract_tax,
    extract_total,
    locate_item_section,
    normalize_lines,
    parse_item_lines,
)

logger = get_logger(__name__)


def empty_draft(ocr: OcrInput) -> ReceiptDraft:
    """Draft for input without usable signal: every optional field absent, confidence 0."""
    return ReceiptDraft(raw_text=ocr.text, ocr_confidence=ocr.confidence, confidence=0.0)


def _value(candidate: ExtractionCandidate | None) -> Any:
    return candidate.value if candidate is not None else None


def build_receipt_draft(
    ocr: OcrInput,
    known_merchants: Sequence[str] = (),
    category_rules: MerchantCategoryRules | None = None,
    date_order: DateOrder = "MDY",
) -> ReceiptDraft:
    """
    Run the deterministic pass over OCR text.

    Args:
        ocr: Text, confidence and success flag from the OCR step.
        known_merchants: Merchant keywords loaded by runtime components.
        category_rules: Optional merchant -> category rules.
        date_order: How to read ambiguous numeric dates like 03/04/2025.

    Returns:
        A reconciled draft. Never raises for malformed text.
    """
    if not ocr.has_signal:
        logger.debug("OCR input has no usable signal (success=%s)", ocr.success)
        return empty_draft(ocr)

    lines = normalize_lines(ocr.text)
    if not lines:
        return empty_draft(ocr)

    merchant = extract_merchant(lines, known_merchants=known_merchants)
    receipt_date = extract_date(lines, date_order=date_order)
    subtotal = extract_subtotal(lines)
    total = extract_total(lines)
    tax_candidates = extract_tax(lines)

    start, end = locate_item_section(lines)
    item_candidates = parse_item_lines(lines[start:end])
    logger.debug(
        "Item section lines %d-%d of %d produced %d items", start, end, len(lines), len(item_candidates)
    )

    tax = TaxBreakdown(**{name: candidate.value for name, candidate in tax_candidates.items()})

    extraction_confidence: dict[str, float] = {}
    for name, candidate in (("merchant", merchant), ("date", receipt_date), ("subtotal", subtotal), ("total", total)):
        if candidate is not None:
            extraction_confidence[name] = candidate.confidence
            logger.debug(
                "%s from %s (line %s, %.2f)", name, candidate.source, candidate.line_index, candidate.confidence
            )
    if tax_candidates:
        extraction_confidence["tax"] = round(fmean(c.confidence for c in tax_candidates.values()), 4)
    if item_candidates:
        extraction_confidence["items"] = round(fmean(c.confidence for c in item_candidates), 4)

    merchant_name = _value(merchant)
    category = None
    if category_rules is not None and merchant_name:
        category = categorize_merchant(merchant_name, category_rules)

    draft = ReceiptDraft(
        raw_text=ocr.text,
        merchant=merchant_name,
        date=_value(receipt_date),
        subtotal=_value(subtotal),
        tax=tax,
        total=_value(total),
        items=tuple(candidate.to_line_item() for candidate in item_candidates),
        category=category,
        extraction_confidence=extraction_confidence,
        ocr_confidence=ocr.confidence,
    )
    return reconcile(draft)
