"""Cross-check extracted amounts and score overall confidence.

Reconciliation only flags problems: items are never dropped or rescaled and
amounts are never rewritten, so extraction bugs stay visible to callers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from decimal import Decimal

from receiptlens.domain.receipt import ReceiptDraft, ReceiptIssue
from receiptlens.runtime import get_logger

logger = get_logger(__name__)

# Sum checks pass within max(1% of the declared amount, $0.05).
RELATIVE_TOLERANCE = Decimal("0.01")
ABSOLUTE_TOLERANCE = Decimal("0.05")

FIELD_WEIGHTS: Mapping[str, float] = {
    "total": 0.35,
    "items": 0.2,
    "merchant": 0.15,
    "date": 0.15,
    "subtotal": 0.1,
    "tax": 0.05,
}

CONSISTENCY_BONUS = 0.05


@dataclass(frozen=True)
class ConsistencyCheck:
    code: str
    multiplier: float
    # Field confidences lowered (by the same multiplier) when the check fails.
    fields: tuple[str, ...]


ITEMS_SUBTOTAL = ConsistencyCheck("items_subtotal_mismatch", 0.75, ("items", "subtotal"))
SUBTOTAL_TAX_TOTAL = ConsistencyCheck("subtotal_tax_total_mismatch", 0.6, ("subtotal", "tax", "total"))
TAX_COMPONENTS = ConsistencyCheck("tax_components_mismatch", 0.85, ("tax",))
TOTAL_BELOW_SUBTOTAL = ConsistencyCheck("total_below_subtotal", 0.7, ("subtotal", "total"))


def tolerance_for(amount: Decimal) -> Decimal:
    return max(abs(amount) * RELATIVE_TOLERANCE, ABSOLUTE_TOLERANCE)


def amounts_agree(actual: Decimal, declared: Decimal) -> bool:
    """Return True if actual is within tolerance of the declared amount."""
    return abs(actual - declared) <= tolerance_for(declared)


def base_confidence(field_confidence: Mapping[str, float], ocr_confidence: float) -> float:
    """Weighted field confidence scaled by OCR confidence; absent fields count as 0."""
    weighted = sum(weight * field_confidence.get(name, 0.0) for name, weight in FIELD_WEIGHTS.items())
    ocr_factor = 0.5 + 0.5 * min(1.0, max(0.0, ocr_confidence))
    return weighted * ocr_factor


def _run_checks(draft: ReceiptDraft) -> tuple[list[tuple[ConsistencyCheck, str]], int]:
    """Return (failed checks with messages, number of passed checks)."""
    failed: list[tuple[ConsistencyCheck, str]] = []
    passed = 0
    tax_total = draft.tax.effective_total

    items_reference = draft.subtotal
    reference_name = "subtotal"
    if items_reference is None and draft.tax.is_empty:
        items_reference = draft.total
        reference_name = "total"
    if draft.items and items_reference is not None:
        if amounts_agree(draft.items_sum, items_reference):
            passed += 1
        else:
            message = f"items sum {draft.items_sum:.2f} does not match {reference_name} {items_reference:.2f}"
            failed.append((ITEMS_SUBTOTAL, message))

    if draft.subtotal is not None and draft.total is not None:
        expected = draft.subtotal + (tax_total or Decimal("0"))
        if amounts_agree(expected, draft.total):
            passed += 1
        else:
            tax_text = f" + tax {tax_total:.2f}" if tax_total is not None else ""
            failed.append(
                (
                    SUBTOTAL_TAX_TOTAL,
                    f"subtotal {draft.subtotal:.2f}{tax_text} does not match total {draft.total:.2f}",
                )
            )
        if draft.total < draft.subtotal:
            failed.append(
                (TOTAL_BELOW_SUBTOTAL, f"total {draft.total:.2f} is below subtotal {draft.subtotal:.2f}")
            )

    component_sum = draft.tax.component_sum
    if draft.tax.total is not None and component_sum is not None:
        if amounts_agree(component_sum, draft.tax.total):
            passed += 1
        else:
            failed.append(
                (
                    TAX_COMPONENTS,
                    f"tax components sum {component_sum:.2f} does not match tax total {draft.tax.total:.2f}",
                )
            )
    return failed, passed


def reconcile(draft: ReceiptDraft) -> ReceiptDraft:
    """Flag inconsistencies and compute the overall confidence of a draft."""
    failed, passed = _run_checks(draft)

    field_confidence = dict(draft.extraction_confidence)
    confidence = base_confidence(field_confidence, draft.ocr_confidence)
    issues: list[ReceiptIssue] = []
    for check, message in failed:
        confidence *= check.multiplier
        for name in check.fields:
            if name in field_confidence:
                field_confidence[name] = round(field_confidence[name] * check.multiplier, 4)
        issues.append(ReceiptIssue(check.code, message))
        logger.debug("Reconciliation issue %s: %s", check.code, message)
    if confidence > 0:
        confidence += CONSISTENCY_BONUS * passed

    return replace(
        draft,
        field_confidence=field_confidence,
        confidence=round(min(1.0, max(0.0, confidence)), 4),
        issues=tuple(issues),
    )
