"""Core domain models for receiptlens.

This module provides the data models used throughout the project:
- OcrInput: text handed over by the OCR step
- ReceiptDraft: working state of one extraction run
- ReceiptRecord, LineItem, TaxBreakdown: the structured output

Usage:
    from receiptlens.domain import OcrInput, ReceiptRecord
"""

from receiptlens.domain.receipt import (
    SCHEMA_VERSION,
    ExtractionCandidate,
    LineItem,
    OcrInput,
    ReceiptDraft,
    ReceiptIssue,
    ReceiptRecord,
    TaxBreakdown,
)

__all__ = [
    "SCHEMA_VERSION",
    "ExtractionCandidate",
    "LineItem",
    "OcrInput",
    "ReceiptDraft",
    "ReceiptIssue",
    "ReceiptRecord",
    "TaxBreakdown",
]
