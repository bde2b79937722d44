"""Receipt extraction workflow orchestration."""

from __future__ import annotations

from dataclasses import dataclass, replace

from receiptlens.domain.receipt import OcrInput, ReceiptDraft, ReceiptRecord
from receiptlens.receipt.assembler import assemble_record, empty_record
from receiptlens.receipt.draft_builder import build_receipt_draft
from receiptlens.receipt.enhancement import ReceiptEnhancer, enhance_draft
from receiptlens.receipt.merchant_categories import categorize_merchant
from receiptlens.runtime import (
    ExtractionSettings,
    get_logger,
    load_known_merchant_keywords,
    load_merchant_category_rules,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReceiptExtractionRequest:
    """Inputs for running the receipt extraction workflow."""

    ocr: OcrInput
    enhance: bool = False


def _regex_draft(request: ReceiptExtractionRequest, settings: ExtractionSettings) -> ReceiptDraft:
    return build_receipt_draft(
        request.ocr,
        known_merchants=load_known_merchant_keywords(),
        category_rules=load_merchant_category_rules(),
        date_order=settings.date_order,
    )


def run_receipt_extraction(
    request: ReceiptExtractionRequest,
    settings: ExtractionSettings | None = None,
) -> ReceiptRecord:
    """Run the deterministic pass only: normalize -> extract -> reconcile -> assemble."""
    settings = settings or ExtractionSettings.from_env()
    if not request.ocr.has_signal:
        return empty_record(request.ocr.text)
    return assemble_record(_regex_draft(request, settings))


async def run_receipt_extraction_async(
    request: ReceiptExtractionRequest,
    settings: ExtractionSettings | None = None,
    enhancer: ReceiptEnhancer | None = None,
) -> ReceiptRecord:
    """
    Run the deterministic pass, then optionally the enhancement stage.

    Enhancement runs only when requested and an enhancer is available; the
    regex result is returned unchanged when it fails or times out.
    """
    settings = settings or ExtractionSettings.from_env()
    if not request.ocr.has_signal:
        return empty_record(request.ocr.text)

    draft = _regex_draft(request, settings)
    if not request.enhance:
        return assemble_record(draft)

    if enhancer is None:
        if not settings.enhancement_configured:
            logger.info("Enhancement requested but RECEIPTLENS_ENHANCEMENT_URL is not set; skipping")
            return assemble_record(draft)
        from receiptlens.runtime.enhancement_client import LLMReceiptEnhancer

        enhancer = LLMReceiptEnhancer.from_settings(settings)

    enhanced = await enhance_draft(draft, enhancer, timeout=settings.enhancement_timeout)
    if enhanced is not draft and enhanced.category is None and enhanced.merchant:
        enhanced = replace(enhanced, category=categorize_merchant(enhanced.merchant, load_merchant_category_rules()))
    return assemble_record(enhanced)
