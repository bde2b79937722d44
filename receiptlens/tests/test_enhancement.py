import asyncio
from collections.abc import Mapping
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any

from receiptlens.domain.receipt import LineItem, ReceiptDraft, TaxBreakdown
from receiptlens.receipt.enhancement import (
    ENHANCED_FIELD_CONFIDENCE,
    enhance_draft,
    merge_enhancement,
    parse_enhancement_response,
)
from receiptlens.receipt.reconciler import reconcile


class StaticEnhancer:
    def __init__(self, payload: Mapping[str, Any] | None) -> None:
        self.payload = payload
        self.calls: list[tuple[str, Mapping[str, Any]]] = []

    async def enhance(self, raw_text: str, draft_summary: Mapping[str, Any]) -> Mapping[str, Any] | None:
        self.calls.append((raw_text, draft_summary))
        return self.payload


class SlowEnhancer:
    async def enhance(self, raw_text: str, draft_summary: Mapping[str, Any]) -> Mapping[str, Any] | None:
        await asyncio.sleep(5)
        return {"merchant": "Too Late"}


class FailingEnhancer:
    async def enhance(self, raw_text: str, draft_summary: Mapping[str, Any]) -> Mapping[str, Any] | None:
        raise RuntimeError("service down")


def _regex_draft() -> ReceiptDraft:
    return reconcile(
        ReceiptDraft(
            raw_text="REGEX CAFE\nLatte 4.50\nTOTAL 4.50",
            merchant="Regex Cafe",
            total=Decimal("4.50"),
            items=(LineItem("Latte", Decimal("4.50")),),
            extraction_confidence={"merchant": 0.7, "total": 0.9, "items": 0.85},
        )
    )


def test_parse_response_drops_invalid_items_individually() -> None:
    enhanced = parse_enhancement_response(
        {
            "merchant": "Cafe",
            "items": [
                {"name": "Latte", "price": "4.50"},
                {"name": "Refund", "price": -1},
                {"name": "  ", "price": 2},
                {"name": "Scone", "price": "free"},
                {"name": "Muffin", "price": 2.5, "quantity": 2},
                "not an item",
            ],
        }
    )

    assert enhanced is not None
    assert enhanced.merchant == "Cafe"
    assert enhanced.items == (
        LineItem("Latte", Decimal("4.50")),
        LineItem("Muffin", Decimal("2.50"), quantity=2),
    )


def test_parse_response_reads_dates_and_tax() -> None:
    enhanced = parse_enhancement_response(
        {"date": "2025-11-15", "tax": {"gst": "0.50", "qst": 1.0}, "subtotal": "$10.00", "total": None}
    )

    assert enhanced is not None
    assert enhanced.date == date(2025, 11, 15)
    assert enhanced.tax == TaxBreakdown(gst=Decimal("0.50"), qst=Decimal("1.00"))
    assert enhanced.subtotal == Decimal("10.00")
    assert enhanced.total is None


def test_parse_response_rejects_malformed_payloads() -> None:
    assert parse_enhancement_response(["merchant", "Cafe"]) is None
    assert parse_enhancement_response("{}") is None
    assert parse_enhancement_response({"total": "lots"}) is None
    assert parse_enhancement_response({"date": "someday"}) is None
    assert parse_enhancement_response({"tax": {"gst": -0.5}}) is None


def test_merge_never_overwrites_present_fields() -> None:
    draft = _regex_draft()
    enhanced = ReceiptDraft(merchant="Hallucinated Bistro", total=Decimal("99.00"), date=date(2025, 1, 2))

    merged = merge_enhancement(draft, enhanced)

    assert merged.merchant == "Regex Cafe"
    assert merged.total == Decimal("4.50")
    assert merged.date == date(2025, 1, 2)
    assert merged.enhanced_fields == ("date",)
    assert merged.extraction_confidence["date"] == ENHANCED_FIELD_CONFIDENCE


def test_merge_fills_missing_tax_components_only() -> None:
    draft = replace(_regex_draft(), tax=TaxBreakdown(gst=Decimal("0.50")))
    enhanced = ReceiptDraft(tax=TaxBreakdown(gst=Decimal("0.60"), qst=Decimal("1.00")), subtotal=Decimal("4.00"))

    merged = merge_enhancement(draft, enhanced)

    assert merged.tax == TaxBreakdown(gst=Decimal("0.50"), qst=Decimal("1.00"))
    assert merged.subtotal == Decimal("4.00")
    assert merged.enhanced_fields == ("subtotal", "tax.qst")


def test_merge_replaces_items_only_with_a_longer_list() -> None:
    draft = _regex_draft()
    same_length = ReceiptDraft(items=(LineItem("Tea", Decimal("3.00")),))
    longer = ReceiptDraft(items=(LineItem("Latte", Decimal("4.00")), LineItem("Tip", Decimal("0.50"))))

    assert merge_enhancement(draft, same_length) is draft
    merged = merge_enhancement(draft, longer)
    assert merged.items == longer.items
    assert merged.enhanced_fields == ("items",)


def test_merge_without_changes_returns_same_draft() -> None:
    draft = _regex_draft()

    assert merge_enhancement(draft, ReceiptDraft()) is draft


def test_enhance_draft_timeout_returns_regex_draft() -> None:
    draft = _regex_draft()

    result = asyncio.run(enhance_draft(draft, SlowEnhancer(), timeout=0.01))

    assert result is draft


def test_enhance_draft_swallows_enhancer_errors() -> None:
    draft = _regex_draft()

    assert asyncio.run(enhance_draft(draft, FailingEnhancer(), timeout=1.0)) is draft
    assert asyncio.run(enhance_draft(draft, StaticEnhancer(None), timeout=1.0)) is draft
    assert asyncio.run(enhance_draft(draft, StaticEnhancer({"total": "n/a"}), timeout=1.0)) is draft


def test_enhance_draft_sends_raw_text_and_summary() -> None:
    draft = _regex_draft()
    enhancer = StaticEnhancer({})

    asyncio.run(enhance_draft(draft, enhancer, timeout=1.0))

    raw_text, summary = enhancer.calls[0]
    assert raw_text == draft.raw_text
    assert summary["merchant"] == "Regex Cafe"
    assert summary["total"] == "4.50"


def test_enhance_draft_merges_and_never_lowers_confidence() -> None:
    draft = _regex_draft()
    enhancer = StaticEnhancer({"date": "2025-11-15", "subtotal": "4.50", "merchant": "Other"})

    result = asyncio.run(enhance_draft(draft, enhancer, timeout=1.0))

    assert result.date == date(2025, 11, 15)
    assert result.subtotal == Decimal("4.50")
    assert result.merchant == "Regex Cafe"
    assert result.enhanced_fields == ("date", "subtotal")
    assert result.confidence >= draft.confidence
