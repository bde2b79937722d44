"""Environment-driven settings for the extraction pipeline."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import cast

from receiptlens.receipt.text_parser.fields_parser import DateOrder
from receiptlens.runtime.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ENHANCEMENT_TIMEOUT = 8.0
DEFAULT_ENHANCEMENT_MODEL = "gpt-4o-mini"
DATE_ORDERS = ("MDY", "DMY")


@dataclass(frozen=True)
class ExtractionSettings:
    """Knobs for one extraction run.

    Enhancement is only possible when `enhancement_url` is set.
    """

    enhancement_url: str | None = None
    enhancement_api_key: str | None = None
    enhancement_model: str = DEFAULT_ENHANCEMENT_MODEL
    enhancement_timeout: float = DEFAULT_ENHANCEMENT_TIMEOUT
    date_order: DateOrder = "MDY"

    @property
    def enhancement_configured(self) -> bool:
        return bool(self.enhancement_url)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ExtractionSettings:
        """Read RECEIPTLENS_* variables; invalid values fall back to defaults with a warning."""
        env = os.environ if environ is None else environ

        timeout = DEFAULT_ENHANCEMENT_TIMEOUT
        raw_timeout = env.get("RECEIPTLENS_ENHANCEMENT_TIMEOUT", "").strip()
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                logger.warning("Ignoring invalid RECEIPTLENS_ENHANCEMENT_TIMEOUT=%r", raw_timeout)
            else:
                if timeout <= 0:
                    logger.warning("Ignoring non-positive RECEIPTLENS_ENHANCEMENT_TIMEOUT=%r", raw_timeout)
                    timeout = DEFAULT_ENHANCEMENT_TIMEOUT

        date_order = env.get("RECEIPTLENS_DATE_ORDER", "MDY").strip().upper() or "MDY"
        if date_order not in DATE_ORDERS:
            logger.warning("Ignoring invalid RECEIPTLENS_DATE_ORDER=%r", date_order)
            date_order = "MDY"

        return cls(
            enhancement_url=env.get("RECEIPTLENS_ENHANCEMENT_URL", "").strip() or None,
            enhancement_api_key=env.get("RECEIPTLENS_ENHANCEMENT_API_KEY", "").strip() or None,
            enhancement_model=env.get("RECEIPTLENS_ENHANCEMENT_MODEL", "").strip() or DEFAULT_ENHANCEMENT_MODEL,
            enhancement_timeout=timeout,
            date_order=cast(DateOrder, date_order),
        )
