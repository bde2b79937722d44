"""Final step: freeze a draft into the ReceiptRecord handed to callers."""

from receiptlens.domain.receipt import ReceiptDraft, ReceiptRecord


def assemble_record(draft: ReceiptDraft) -> ReceiptRecord:
    """Copy every field of the draft into an immutable record. Always succeeds."""
    return ReceiptRecord(
        raw_text=draft.raw_text,
        confidence=draft.confidence,
        merchant=draft.merchant,
        date=draft.date,
        subtotal=draft.subtotal,
        tax=draft.tax,
        total=draft.total,
        items=tuple(draft.items),
        category=draft.category,
        field_confidence=draft.field_confidence,
        issues=tuple(draft.issues),
        enhanced_fields=tuple(draft.enhanced_fields),
    )


def empty_record(raw_text: str = "") -> ReceiptRecord:
    """Record for input with no usable signal."""
    return ReceiptRecord(raw_text=raw_text, confidence=0.0)
