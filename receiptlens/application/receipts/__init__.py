"""Receipt workflows."""

from receiptlens.application.receipts.extract import (
    ReceiptExtractionRequest,
    run_receipt_extraction,
    run_receipt_extraction_async,
)

__all__ = [
    "ReceiptExtractionRequest",
    "run_receipt_extraction",
    "run_receipt_extraction_async",
]
