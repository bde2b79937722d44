"""Optional second pass: merge an external enhancer's answer into the regex draft.

The merge is a pure reducer over two drafts. Values found by the
deterministic pass are never overwritten; the enhancer can only fill gaps
or supply a longer item list.
"""

from __future__ import annotations

import asyncio
import datetime
from collections.abc import Mapping
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Protocol

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from receiptlens.domain.receipt import MAX_ITEM_NAME_LENGTH, TAX_COMPONENTS, LineItem, ReceiptDraft, TaxBreakdown
from receiptlens.runtime import get_logger

from .reconciler import reconcile
from .text_parser.common import parse_amount

logger = get_logger(__name__)

# Extraction confidence assigned to a field supplied by the enhancer.
ENHANCED_FIELD_CONFIDENCE = 0.6


class ReceiptEnhancer(Protocol):
    """External text-understanding collaborator."""

    async def enhance(self, raw_text: str, draft_summary: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """Return a partial record shaped like ReceiptDraft.summary(), or None on explicit failure."""
        ...


def _coerce_amount(value: Any) -> Any:
    if value is None or isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, (int, float)):
        try:
            return Decimal(str(value)).quantize(Decimal("0.01"))
        except InvalidOperation as exc:
            raise ValueError("amount must be a finite number") from exc
    if isinstance(value, str):
        if not value.strip():
            return None
        parsed = parse_amount(value)
        if parsed is None:
            raise ValueError(f"not an amount: {value!r}")
        return parsed
    raise ValueError("amount must be a number")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


NonNegativeDecimal = Annotated[Decimal, Field(ge=0)]
Amount = Annotated[NonNegativeDecimal, BeforeValidator(_coerce_amount)]
OptionalAmount = Annotated[NonNegativeDecimal | None, BeforeValidator(_coerce_amount)]


class EnhancedItem(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=MAX_ITEM_NAME_LENGTH)
    price: Amount
    quantity: Annotated[int, Field(gt=0)] | None = None
    unit_price: OptionalAmount = None


class EnhancedTax(BaseModel):
    model_config = ConfigDict(extra="ignore")

    gst: OptionalAmount = None
    qst: OptionalAmount = None
    pst: OptionalAmount = None
    hst: OptionalAmount = None
    total: OptionalAmount = None


class EnhancementPayload(BaseModel):
    """Top-level response shape. Items are validated one by one afterwards."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    merchant: Annotated[str | None, BeforeValidator(_blank_to_none)] = None
    date: Annotated[datetime.date | None, BeforeValidator(_blank_to_none)] = None
    subtotal: OptionalAmount = None
    tax: EnhancedTax | None = None
    total: OptionalAmount = None
    items: list[Any] | None = None


def _parse_items(raw_items: list[Any]) -> tuple[LineItem, ...]:
    items: list[LineItem] = []
    for index, raw in enumerate(raw_items):
        try:
            item = EnhancedItem.model_validate(raw)
        except ValidationError as exc:
            logger.debug("Dropping enhanced item %d: %s", index, exc.errors()[0].get("msg", "invalid"))
            continue
        items.append(LineItem(name=item.name, price=item.price, quantity=item.quantity, unit_price=item.unit_price))
    return tuple(items)


def parse_enhancement_response(payload: Any) -> ReceiptDraft | None:
    """
    Validate an enhancer response and convert it to a draft.

    Invalid items are dropped individually. A non-mapping payload or an
    invalid top-level field rejects the whole response (returns None).
    """
    if not isinstance(payload, Mapping):
        logger.warning("Enhancement response is not an object: %s", type(payload).__name__)
        return None
    try:
        parsed = EnhancementPayload.model_validate(dict(payload))
    except ValidationError as exc:
        logger.warning("Enhancement response rejected: %d invalid field(s)", exc.error_count())
        return None

    tax = TaxBreakdown()
    if parsed.tax is not None:
        tax = TaxBreakdown(**parsed.tax.model_dump())

    return ReceiptDraft(
        merchant=parsed.merchant,
        date=parsed.date,
        subtotal=parsed.subtotal,
        tax=tax,
        total=parsed.total,
        items=_parse_items(parsed.items or []),
    )


def merge_enhancement(draft: ReceiptDraft, enhanced: ReceiptDraft) -> ReceiptDraft:
    """
    Fill gaps in `draft` from `enhanced`.

    Merchant, date, subtotal and total are taken only when the draft lacks
    them. Each tax component and the tax aggregate likewise. Items are
    replaced only by a strictly longer list. Returns `draft` itself when
    nothing changes.
    """
    changes: dict[str, Any] = {}
    merged_fields: list[str] = []
    confidence = dict(draft.extraction_confidence)

    for name in ("merchant", "date", "subtotal", "total"):
        if getattr(draft, name) is None and getattr(enhanced, name) is not None:
            changes[name] = getattr(enhanced, name)
            merged_fields.append(name)
            confidence[name] = ENHANCED_FIELD_CONFIDENCE

    tax_changes: dict[str, Decimal] = {}
    for name in (*TAX_COMPONENTS, "total"):
        if getattr(draft.tax, name) is None and getattr(enhanced.tax, name) is not None:
            tax_changes[name] = getattr(enhanced.tax, name)
            merged_fields.append(f"tax.{name}")
    if tax_changes:
        changes["tax"] = replace(draft.tax, **tax_changes)
        confidence.setdefault("tax", ENHANCED_FIELD_CONFIDENCE)

    if len(enhanced.items) > len(draft.items):
        changes["items"] = enhanced.items
        merged_fields.append("items")
        confidence["items"] = ENHANCED_FIELD_CONFIDENCE

    if not changes:
        return draft
    return replace(
        draft,
        **changes,
        extraction_confidence=confidence,
        enhanced_fields=draft.enhanced_fields + tuple(merged_fields),
    )


async def enhance_draft(draft: ReceiptDraft, enhancer: ReceiptEnhancer, timeout: float) -> ReceiptDraft:
    """
    Race the enhancer against `timeout` seconds and merge its answer.

    Any failure (timeout, transport error, malformed payload) leaves `draft`
    unchanged. The merged draft is re-reconciled and never scores below the
    original.
    """
    try:
        payload = await asyncio.wait_for(enhancer.enhance(draft.raw_text, draft.summary()), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Enhancement timed out after %.1fs; keeping regex result", timeout)
        return draft
    except Exception as exc:
        logger.warning("Enhancement failed: %s; keeping regex result", exc)
        return draft

    if payload is None:
        logger.debug("Enhancer returned no result")
        return draft

    enhanced = parse_enhancement_response(payload)
    if enhanced is None:
        return draft

    merged = merge_enhancement(draft, enhanced)
    if merged is draft:
        logger.debug("Enhancement added nothing")
        return draft

    merged = reconcile(merged)
    logger.debug("Enhancement filled %s", ", ".join(merged.enhanced_fields))
    if merged.confidence < draft.confidence:
        merged = replace(merged, confidence=draft.confidence)
    return merged
