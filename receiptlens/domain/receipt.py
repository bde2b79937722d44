"""Data models for receipt text extraction."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Any

SCHEMA_VERSION = "1"
MAX_ITEM_NAME_LENGTH = 150

TAX_COMPONENTS = ("gst", "qst", "pst", "hst")


@dataclass(frozen=True)
class OcrInput:
    """Output of the external OCR step."""

    text: str
    confidence: float = 1.0
    success: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.text, str):
            raise TypeError(f"OCR text must be a string, got {type(self.text).__name__}")

    @property
    def has_signal(self) -> bool:
        return self.success and bool(self.text.strip())


@dataclass(frozen=True)
class LineItem:
    """A single purchased item on a receipt."""

    name: str
    # Aggregate line price as printed on the receipt.
    price: Decimal
    quantity: int | None = None
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class TaxBreakdown:
    """Named tax components plus an optional explicit aggregate.

    GST/TPS and QST/TVQ are the federal/provincial pair; PST/TVP and HST are
    the alternates. `total` is only set when the receipt prints it.
    """

    gst: Decimal | None = None
    qst: Decimal | None = None
    pst: Decimal | None = None
    hst: Decimal | None = None
    total: Decimal | None = None

    def components(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in TAX_COMPONENTS if getattr(self, name) is not None}

    @property
    def component_sum(self) -> Decimal | None:
        present = self.components()
        if not present:
            return None
        return sum(present.values(), Decimal("0"))

    @property
    def effective_total(self) -> Decimal | None:
        if self.total is not None:
            return self.total
        return self.component_sum

    @property
    def is_unclassified(self) -> bool:
        return self.total is not None and not self.components()

    @property
    def is_empty(self) -> bool:
        return self.total is None and not self.components()


@dataclass(frozen=True)
class ExtractionCandidate:
    """A value proposed by one extraction rule, before the best one is chosen."""

    value: Any
    confidence: float
    source: str
    line_index: int | None = None


@dataclass(frozen=True)
class ReceiptIssue:
    """An inconsistency flagged by reconciliation. Values are never changed."""

    code: str
    message: str


@dataclass(frozen=True)
class ReceiptDraft:
    """Working state of one extraction run."""

    raw_text: str = ""
    merchant: str | None = None
    date: date | None = None
    subtotal: Decimal | None = None
    tax: TaxBreakdown = field(default_factory=TaxBreakdown)
    total: Decimal | None = None
    items: tuple[LineItem, ...] = ()
    category: str | None = None
    # Per-field confidence as extracted; reconciliation starts from these.
    extraction_confidence: Mapping[str, float] = field(default_factory=dict)
    # Per-field confidence after reconciliation penalties.
    field_confidence: Mapping[str, float] = field(default_factory=dict)
    ocr_confidence: float = 1.0
    confidence: float = 0.0
    issues: tuple[ReceiptIssue, ...] = ()
    enhanced_fields: tuple[str, ...] = ()

    @property
    def items_sum(self) -> Decimal:
        return sum((item.price for item in self.items), Decimal("0"))

    def summary(self) -> dict[str, Any]:
        """Compact JSON-friendly view sent to the enhancement collaborator."""
        return {
            "merchant": self.merchant,
            "date": self.date.isoformat() if self.date else None,
            "subtotal": _format_amount(self.subtotal),
            "tax": _tax_to_dict(self.tax),
            "total": _format_amount(self.total),
            "items": [_item_to_dict(item) for item in self.items],
        }


@dataclass(frozen=True)
class ReceiptRecord:
    """Final structured record handed to callers. Immutable."""

    raw_text: str
    confidence: float
    merchant: str | None = None
    date: date | None = None
    subtotal: Decimal | None = None
    tax: TaxBreakdown = field(default_factory=TaxBreakdown)
    total: Decimal | None = None
    items: tuple[LineItem, ...] = ()
    category: str | None = None
    field_confidence: Mapping[str, float] = field(default_factory=dict)
    issues: tuple[ReceiptIssue, ...] = ()
    enhanced_fields: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Read-only snapshot; the caller's mapping may keep changing.
        object.__setattr__(self, "field_confidence", MappingProxyType(dict(self.field_confidence)))

    def to_dict(self) -> dict[str, Any]:
        """Serialize with stable field names; absent values stay None."""
        return {
            "schema_version": SCHEMA_VERSION,
            "merchant": self.merchant,
            "date": self.date.isoformat() if self.date else None,
            "subtotal": _format_amount(self.subtotal),
            "tax": _tax_to_dict(self.tax),
            "total": _format_amount(self.total),
            "items": [_item_to_dict(item) for item in self.items],
            "raw_text": self.raw_text,
            "confidence": self.confidence,
            "category": self.category,
            "field_confidence": dict(sorted(self.field_confidence.items())),
            "issues": [{"code": issue.code, "message": issue.message} for issue in self.issues],
            "enhanced_fields": list(self.enhanced_fields),
        }


def _format_amount(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return f"{value:.2f}"


def _tax_to_dict(tax: TaxBreakdown) -> dict[str, str | None]:
    data = {name: _format_amount(getattr(tax, name)) for name in TAX_COMPONENTS}
    data["total"] = _format_amount(tax.total)
    return data


def _item_to_dict(item: LineItem) -> dict[str, Any]:
    return {
        "name": item.name,
        "price": _format_amount(item.price),
        "quantity": item.quantity,
        "unit_price": _format_amount(item.unit_price),
    }
